"""Configuration loading, filesystem locations and language detection."""

from __future__ import annotations

import logging
import os
import re
import sys
import threading
import tomllib
from dataclasses import dataclass, field
from typing import Any

import tomli_w

log = logging.getLogger(__name__)

VERSION = "unknown"
"""Version of the program; "unknown" when it was not set at build time."""

DEFAULT_REPO_NAME = "default"
DEFAULT_REPO_URL = "https://github.com/lure-sh/lure-repo.git"

_LANG_RE = re.compile(r"([A-Za-z]{2,3}|[A-Za-z]{5,8})(?:[-_][A-Za-z0-9]{1,8})*")


@dataclass
class Repo:
    """A package repository."""

    name: str
    url: str


def _default_repos() -> list[Repo]:
    return [Repo(DEFAULT_REPO_NAME, DEFAULT_REPO_URL)]


@dataclass
class Config:
    """User configuration."""

    root_cmd: str = "sudo"
    pager_style: str = "native"
    ignore_pkg_updates: list[str] = field(default_factory=list)
    repos: list[Repo] = field(default_factory=_default_repos)

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration in its on-disk TOML layout."""
        return {
            "rootCmd": self.root_cmd,
            "pagerStyle": self.pager_style,
            "ignorePkgUpdates": list(self.ignore_pkg_updates),
            "repo": [{"name": r.name, "url": r.url} for r in self.repos],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a configuration from decoded TOML.

        Missing keys keep their defaults, except repositories, which are
        empty unless the document lists some.
        """
        cfg = cls(repos=[])
        cfg.root_cmd = _expect(data, "rootCmd", str, cfg.root_cmd)
        cfg.pager_style = _expect(data, "pagerStyle", str, cfg.pager_style)
        ignored = _expect(data, "ignorePkgUpdates", list, cfg.ignore_pkg_updates)
        if not all(isinstance(item, str) for item in ignored):
            raise TypeError("ignorePkgUpdates must be a list of strings")
        cfg.ignore_pkg_updates = list(ignored)
        for entry in _expect(data, "repo", list, []):
            if not isinstance(entry, dict):
                raise TypeError("each repo entry must be a table")
            cfg.repos.append(
                Repo(
                    name=_expect(entry, "name", str, ""),
                    url=_expect(entry, "url", str, ""),
                )
            )
        return cfg


def _expect(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, kind):
        raise TypeError(f"{key} must be of type {kind.__name__}")
    return value


@dataclass
class Paths:
    """Filesystem locations used by the program."""

    config_dir: str
    config_path: str
    cache_dir: str
    repo_dir: str
    pkgs_dir: str
    db_path: str


_lock = threading.RLock()
_config: Config | None = None
_paths: Paths | None = None
_lang: str | None = None


def _home() -> str:
    home = os.environ.get("HOME") or os.path.expanduser("~")
    if not home or home == "~":
        raise RuntimeError("$HOME is not defined")
    return home


def _xdg(var: str) -> str | None:
    value = os.environ.get(var, "")
    if not value:
        return None
    if not os.path.isabs(value):
        raise RuntimeError(f"path in ${var} is relative")
    return value


def _user_config_dir() -> str:
    if sys.platform == "win32":
        value = os.environ.get("APPDATA")
        if not value:
            raise RuntimeError("%AppData% is not defined")
        return value
    xdg = _xdg("XDG_CONFIG_HOME")
    if xdg:
        return xdg
    if sys.platform == "darwin":
        return os.path.join(_home(), "Library", "Application Support")
    return os.path.join(_home(), ".config")


def _user_cache_dir() -> str:
    if sys.platform == "win32":
        value = os.environ.get("LocalAppData")
        if not value:
            raise RuntimeError("%LocalAppData% is not defined")
        return value
    xdg = _xdg("XDG_CACHE_HOME")
    if xdg:
        return xdg
    if sys.platform == "darwin":
        return os.path.join(_home(), "Library", "Caches")
    return os.path.join(_home(), ".cache")


def get_paths() -> Paths:
    """Return the program's paths, creating directories and a default config file once."""
    global _paths
    with _lock:
        if _paths is None:
            config_dir = os.path.join(_user_config_dir(), "lure")
            os.makedirs(config_dir, mode=0o755, exist_ok=True)

            config_path = os.path.join(config_dir, "lure.toml")
            if not os.path.exists(config_path):
                with open(config_path, "wb") as fl:
                    tomli_w.dump(Config().to_dict(), fl)

            cache_dir = os.path.join(_user_cache_dir(), "lure")
            repo_dir = os.path.join(cache_dir, "repo")
            pkgs_dir = os.path.join(cache_dir, "pkgs")
            os.makedirs(repo_dir, mode=0o755, exist_ok=True)
            os.makedirs(pkgs_dir, mode=0o755, exist_ok=True)

            _paths = Paths(
                config_dir=config_dir,
                config_path=config_path,
                cache_dir=cache_dir,
                repo_dir=repo_dir,
                pkgs_dir=pkgs_dir,
                db_path=os.path.join(cache_dir, "db"),
            )
        return _paths


def get_config() -> Config:
    """Return the configuration, loading it from disk the first time.

    If the file cannot be read or decoded, defaults are returned and the
    file is tried again on the next call.
    """
    global _config
    with _lock:
        if _config is None:
            path = get_paths().config_path
            try:
                with open(path, "rb") as fl:
                    data = tomllib.load(fl)
            except OSError as exc:
                log.warning("Error opening config file, using defaults: %s", exc)
                return Config()
            except tomllib.TOMLDecodeError as exc:
                log.warning("Error decoding config file, using defaults: %s", exc)
                return Config()
            try:
                _config = Config.from_dict(data)
            except (TypeError, ValueError) as exc:
                log.warning("Error decoding config file, using defaults: %s", exc)
                return Config()
        return _config


def system_lang() -> str:
    """Return the system language from $LANG, defaulting to "en"."""
    lang = os.environ.get("LANG", "").split(".", 1)[0]
    if lang in ("", "C"):
        return "en"
    return lang


def language() -> str:
    """Return the base language subtag of the system language, detected once."""
    global _lang
    with _lock:
        if _lang is None:
            syslang = system_lang()
            match = _LANG_RE.fullmatch(syslang)
            if match is None:
                raise ValueError(f"invalid system language: {syslang!r}")
            _lang = match.group(1).lower()
        return _lang


def reset_cache() -> None:
    """Forget the cached configuration, paths and language."""
    global _config, _paths, _lang
    with _lock:
        _config = None
        _paths = None
        _lang = None