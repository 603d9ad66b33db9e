"""CPU architecture detection and compatibility."""

from __future__ import annotations

import os
import platform
import re

_MACHINE_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i486": "386",
    "i586": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "aarch64_be": "arm64be",
    "riscv64": "riscv64",
    "ppc64le": "ppc64le",
    "ppc64": "ppc64",
    "s390x": "s390x",
    "mips": "mips",
    "mipsel": "mipsle",
    "mips64": "mips64",
    "mips64el": "mips64le",
    "loongarch64": "loong64",
}

_INT_RE = re.compile(r"[+-]?\d+")


def _arm_features() -> set[str]:
    try:
        with open("/proc/cpuinfo", encoding="utf-8", errors="replace") as fl:
            for line in fl:
                key, _, value = line.partition(":")
                if key.strip().lower() == "features":
                    return set(value.split())
    except OSError:
        pass
    return set()


def _arm_variant() -> str:
    env = os.environ.get("LURE_ARM_VARIANT", "")
    if env.startswith("arm"):
        return env
    features = _arm_features()
    if "vfpv3" in features:
        return "arm7"
    if "vfp" in features:
        return "arm6"
    return "arm5"


def _native_arch() -> str:
    machine = platform.machine().lower()
    if machine.startswith("arm") and machine != "arm64":
        return "arm"
    return _MACHINE_MAP.get(machine, machine)


def arch() -> str:
    """Return the canonical CPU architecture of the system."""
    result = os.environ.get("LURE_ARCH", "") or _native_arch()
    if result == "arm":
        result = _arm_variant()
    return result


def _arm_version(name: str) -> int:
    version = name.removeprefix("arm")
    if version == "":
        return 5
    if not _INT_RE.fullmatch(version):
        raise ValueError(f"invalid ARM version in {name!r}")
    return int(version)


def is_compatible_with(target: str, arches: list[str]) -> bool:
    """Report whether ``target`` can run packages built for any of ``arches``."""
    if target == "all" or "all" in arches:
        return True
    for candidate in arches:
        if target.startswith("arm") and candidate.startswith("arm"):
            try:
                target_ver = _arm_version(target)
                candidate_ver = _arm_version(candidate)
            except ValueError:
                return False
            if target_ver >= candidate_ver:
                return True
        if target == candidate:
            return True
    return False


def compatible_arches(arch: str) -> list[str]:  # noqa: F811 - parameter shadows arch()
    """Return the architectures compatible with ``arch``, most specific first."""
    if arch.startswith("arm"):
        version = _arm_version(arch)
        if version > 5:
            return [f"arm{v}" for v in range(version, 4, -1)]
    return [arch]