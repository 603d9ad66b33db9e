"""Downloading Git repositories with the git command-line tool."""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from typing import TextIO
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from lure.dl.common import (
    DownloadType,
    Options,
    UpdatingDownloader,
    read_manifest,
    write_manifest,
)

_OPTION_KEYS = frozenset({"~rev", "~name", "~depth", "~recursive"})
_INT_RE = re.compile(r"[+-]?\d+")


@dataclass
class _GitSource:
    url: str
    path: str
    rev: str
    name: str
    depth: int
    recursive: bool


def _parse_source(url: str) -> _GitSource:
    parts = urlsplit(url)
    scheme = parts.scheme.removeprefix("git+")

    options: dict[str, str] = {}
    rest: list[tuple[str, str]] = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key in _OPTION_KEYS:
            options.setdefault(key, value)
        else:
            rest.append((key, value))
    rest.sort(key=lambda kv: kv[0])

    depth_str = options.get("~depth", "")
    depth = 0
    if depth_str:
        if not _INT_RE.fullmatch(depth_str):
            raise ValueError(f"invalid ~depth value: {depth_str!r}")
        depth = int(depth_str)

    clone_url = urlunsplit((scheme, parts.netloc, parts.path, urlencode(rest), parts.fragment))
    return _GitSource(
        url=clone_url,
        path=parts.path,
        rev=options.get("~rev", ""),
        name=options.get("~name", ""),
        depth=depth,
        recursive=options.get("~recursive", "") == "true",
    )


def _path_base(path: str) -> str:
    if path == "":
        return "."
    stripped = path.rstrip("/")
    if stripped == "":
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _git(*args: str, progress: TextIO | None = None) -> str:
    try:
        result = subprocess.run(["git", *args], capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise RuntimeError("git must be installed to download git sources") from exc
    if progress is not None and result.stderr:
        progress.write(result.stderr)
    if result.returncode != 0:
        raise RuntimeError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
    return result.stdout


def _transfer_flags(source: _GitSource, progress: TextIO | None) -> list[str]:
    flags: list[str] = []
    if source.depth > 0:
        flags += ["--depth", str(source.depth)]
    if source.recursive:
        flags.append("--recurse-submodules")
    if progress is not None:
        flags.append("--progress")
    return flags


class GitDownloader(UpdatingDownloader):
    """Downloads Git repositories from URLs prefixed with ``git+``."""

    name = "git"

    def match_url(self, url: str) -> bool:
        """Match URLs that start with ``git+``."""
        return url.startswith("git+")

    def download(self, opts: Options) -> tuple[DownloadType, str]:
        """Clone the repository, honouring ``~rev``, ``~name``, ``~depth`` and ``~recursive``."""
        source = _parse_source(opts.url)
        dest = opts.destination

        _git(
            "clone",
            *_transfer_flags(source, opts.progress),
            "--",
            source.url,
            dest,
            progress=opts.progress,
        )
        _git("-C", dest, "fetch", "--update-head-ok", "origin", "+refs/*:refs/*")

        if source.rev:
            commit = _git("-C", dest, "rev-parse", "--verify", f"{source.rev}^{{commit}}").strip()
            _git("-C", dest, "checkout", "--quiet", commit)

        name = source.name or _path_base(source.path).removesuffix(".git")
        return DownloadType.DIR, name

    def update(self, opts: Options) -> bool:
        """Pull the latest changes; return False if the repository was already up to date."""
        source = _parse_source(opts.url)
        dest = opts.destination

        _git("-C", dest, "rev-parse", "--git-dir")

        try:
            manifest = read_manifest(dest)
        except (OSError, ValueError):
            manifest = None

        before = _git("-C", dest, "rev-parse", "HEAD").strip()
        _git("-C", dest, "pull", *_transfer_flags(source, opts.progress), progress=opts.progress)
        after = _git("-C", dest, "rev-parse", "HEAD").strip()
        if before == after:
            return False

        if manifest is not None:
            write_manifest(dest, manifest)
        return True