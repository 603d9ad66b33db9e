"""Shared types for downloading sources: options, manifests and downloader interfaces."""

from __future__ import annotations

import enum
import hashlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, TextIO

import msgpack

MANIFEST_FILE_NAME = ".lure_cache_manifest"


class ChecksumMismatchError(Exception):
    """The checksum of a downloaded file did not match the expected one."""

    def __init__(self, message: str = "dl: checksums did not match") -> None:
        super().__init__(message)


class NoSuchHashAlgorithmError(ValueError):
    """The requested hashing algorithm is not supported."""

    def __init__(self, algorithm: str) -> None:
        super().__init__(f"dl: invalid hashing algorithm: {algorithm}")
        self.algorithm = algorithm


class DownloadType(enum.IntEnum):
    """Whether a download produced a single file or a directory."""

    FILE = 0
    DIR = 1

    def __str__(self) -> str:
        return "file" if self is DownloadType.FILE else "dir"


def _hash_factories() -> dict[str, Any]:
    return {
        "": hashlib.sha256,
        "sha256": hashlib.sha256,
        "sha224": hashlib.sha224,
        "sha512": hashlib.sha512,
        "sha384": hashlib.sha384,
        "sha1": hashlib.sha1,
        "md5": hashlib.md5,
        # blake2s-128 has always produced a 256-bit digest here.
        "blake2s-128": lambda: hashlib.blake2s(digest_size=32),
        "blake2s-256": lambda: hashlib.blake2s(digest_size=32),
        "blake2b-256": lambda: hashlib.blake2b(digest_size=32),
        "blake2b-512": lambda: hashlib.blake2b(digest_size=64),
    }


@dataclass
class Options:
    """Options for downloading a file or directory."""

    url: str = ""
    destination: str = ""
    name: str = ""
    hash: bytes | None = None
    hash_algorithm: str = ""
    cache_disabled: bool = False
    postproc_disabled: bool = False
    progress: TextIO | None = None
    local_dir: str = ""

    def new_hash(self) -> Any:
        """Return a fresh hash object for the configured algorithm."""
        factory = _hash_factories().get(self.hash_algorithm)
        if factory is None:
            raise NoSuchHashAlgorithmError(self.hash_algorithm)
        return factory()


@dataclass(frozen=True)
class Manifest:
    """The type and name of a cached download, stored in its cache directory."""

    type: DownloadType
    name: str


class Downloader(ABC):
    """Something that can fetch sources from URLs it recognises."""

    name: ClassVar[str] = ""

    @abstractmethod
    def match_url(self, url: str) -> bool:
        """Report whether this downloader handles ``url``."""

    @abstractmethod
    def download(self, opts: Options) -> tuple[DownloadType, str]:
        """Fetch ``opts.url`` into ``opts.destination``; return the type and a name."""


class UpdatingDownloader(Downloader):
    """A downloader that can update an existing download in place."""

    @abstractmethod
    def update(self, opts: Options) -> bool:
        """Update the download in ``opts.destination``; return True if anything changed."""


def write_manifest(cache_dir: str, manifest: Manifest) -> None:
    """Write ``manifest`` into ``cache_dir``."""
    data = msgpack.packb({"Type": int(manifest.type), "Name": manifest.name})
    with open(os.path.join(cache_dir, MANIFEST_FILE_NAME), "wb") as fl:
        fl.write(data)


def read_manifest(cache_dir: str) -> Manifest:
    """Read the manifest stored in ``cache_dir``."""
    with open(os.path.join(cache_dir, MANIFEST_FILE_NAME), "rb") as fl:
        raw = fl.read()
    try:
        data = msgpack.unpackb(raw, raw=False)
    except (msgpack.ExtraData, msgpack.FormatError, msgpack.StackError, ValueError) as exc:
        raise ValueError(f"invalid cache manifest: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("invalid cache manifest: expected a map")
    kind = data.get("Type", 0)
    name = data.get("Name", "")
    if not isinstance(kind, int) or not isinstance(name, str):
        raise ValueError("invalid cache manifest: wrong field types")
    try:
        download_type = DownloadType(kind)
    except ValueError as exc:
        raise ValueError(f"invalid cache manifest: unknown type {kind}") from exc
    return Manifest(download_type, name)