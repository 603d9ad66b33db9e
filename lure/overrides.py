"""Resolution of distro-, architecture- and language-specific overrides."""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from lure import cpu
from lure.db import Package

_LANG_RE = re.compile(r"([A-Za-z]{2,3}|[A-Za-z]{5,8})(?:[-_][A-Za-z0-9]{1,8})*")


class OSInfo(Protocol):
    """What override resolution needs to know about the running system."""

    id: str
    like: Sequence[str]


@dataclass
class Opts:
    """Options controlling which override names are generated."""

    name: str = ""
    overrides: bool = True
    like_distros: bool = True
    languages: list[str] = field(default_factory=list)
    language_tags: list[str] = field(default_factory=list)

    def _copy(self, **changes: object) -> Opts:
        out = dataclasses.replace(
            self, languages=list(self.languages), language_tags=list(self.language_tags)
        )
        for key, value in changes.items():
            setattr(out, key, value)
        return out

    def with_name(self, name: str) -> Opts:
        """Return a copy with the given name."""
        return self._copy(name=name)

    def with_overrides(self, value: bool) -> Opts:
        """Return a copy with overrides switched on or off."""
        return self._copy(overrides=value)

    def with_like_distros(self, value: bool) -> Opts:
        """Return a copy with like-distros switched on or off."""
        return self._copy(like_distros=value)

    def with_languages(self, langs: Sequence[str]) -> Opts:
        """Return a copy with the given languages."""
        return self._copy(languages=list(langs))

    def with_language_tags(self, langs: Sequence[str]) -> Opts:
        """Return a copy whose languages are replaced by ``langs``."""
        return self._copy(languages=list(langs))


DEFAULT_OPTS = Opts(overrides=True, like_distros=True, languages=["en"])


def _base_language(tag: str) -> str:
    match = _LANG_RE.fullmatch(tag)
    if match is None:
        raise ValueError(f"invalid language tag: {tag!r}")
    return match.group(1).lower()


def _parse_langs(langs: Sequence[str], tags: Sequence[str]) -> list[str]:
    bases = [_base_language(t) for t in tags] + [_base_language(l) for l in langs]
    return sorted(set(bases))


def resolve(info: OSInfo, opts: Opts | None = None) -> list[str]:
    """Return the possible override names in the order they should be checked."""
    if opts is None:
        opts = DEFAULT_OPTS

    if not opts.overrides:
        return [opts.name]

    langs = _parse_langs(opts.languages, opts.language_tags)
    architectures = cpu.compatible_arches(cpu.arch())

    distros = [info.id]
    if opts.like_distros:
        distros.extend(info.like)

    name = opts.name
    out: list[str] = []
    for lang in langs:
        for distro in distros:
            out.extend(f"{name}_{a}_{distro}_{lang}" for a in architectures)
            out.append(f"{name}_{distro}_{lang}")
        out.extend(f"{name}_{a}_{lang}" for a in architectures)
        out.append(f"{name}_{lang}")

    for distro in distros:
        out.extend(f"{name}_{a}_{distro}" for a in architectures)
        out.append(f"{name}_{distro}")

    out.extend(f"{name}_{a}" for a in architectures)
    out.append(name)

    return [item.replace("-", "_").removeprefix("_") for item in out]


@dataclass
class ResolvedPackage:
    """A package with its overrides resolved."""

    name: str = ""
    version: str = ""
    release: int = 0
    epoch: int = 0
    description: str = ""
    homepage: str = ""
    maintainer: str = ""
    architectures: list[str] = field(default_factory=list)
    licenses: list[str] = field(default_factory=list)
    provides: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    replaces: list[str] = field(default_factory=list)
    depends: list[str] = field(default_factory=list)
    build_depends: list[str] = field(default_factory=list)
    opt_depends: list[str] = field(default_factory=list)


def _pick(mapping: dict, overrides: Sequence[str], default):
    for override in overrides:
        if override in mapping:
            return mapping[override]
    return default


def resolve_package(pkg: Package, overrides: Sequence[str]) -> ResolvedPackage:
    """Pick, for each overridable field, the value of the first matching override."""
    return ResolvedPackage(
        name=pkg.name,
        version=pkg.version,
        release=pkg.release,
        epoch=pkg.epoch,
        description=_pick(pkg.description, overrides, ""),
        homepage=_pick(pkg.homepage, overrides, ""),
        maintainer=_pick(pkg.maintainer, overrides, ""),
        architectures=list(pkg.architectures),
        licenses=list(pkg.licenses),
        provides=list(pkg.provides),
        conflicts=list(pkg.conflicts),
        replaces=list(pkg.replaces),
        depends=list(_pick(pkg.depends, overrides, [])),
        build_depends=list(_pick(pkg.build_depends, overrides, [])),
        opt_depends=list(_pick(pkg.opt_depends, overrides, [])),
    )