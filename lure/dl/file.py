"""Downloading single files over HTTP or from a local directory."""

from __future__ import annotations

import bz2
import gzip
import logging
import lzma
import os
import posixpath
import shutil
import tarfile
import zipfile
from collections.abc import Callable, Iterator
from contextlib import ExitStack
from email.message import Message
from typing import IO, Any
from urllib.parse import parse_qsl, unquote, urlencode, urlsplit, urlunsplit

import requests
from tqdm import tqdm

from lure.dl.common import ChecksumMismatchError, Downloader, DownloadType, Options

log = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_OPTION_KEYS = frozenset({"~name", "~archive"})

# Single-stream compression formats, recognised by their file extension.
_DECOMPRESSORS: dict[str, Callable[..., IO[bytes]]] = {
    ".gz": gzip.open,
    ".bz2": bz2.open,
    ".xz": lzma.open,
    ".lzma": lzma.open,
}


def _split_options(query: str) -> tuple[dict[str, str], str]:
    options: dict[str, str] = {}
    rest: list[tuple[str, str]] = []
    for key, value in parse_qsl(query, keep_blank_values=True):
        if key in _OPTION_KEYS:
            options.setdefault(key, value)
        else:
            rest.append((key, value))
    rest.sort(key=lambda kv: kv[0])
    return options, urlencode(rest)


def _path_base(path: str) -> str:
    if path == "":
        return "."
    stripped = path.rstrip("/")
    if stripped == "":
        return "/"
    return posixpath.basename(stripped)


def get_filename(response: Any) -> str:
    """Return the file name from Content-Disposition, else the last element of the URL path."""
    header = response.headers.get("Content-Disposition", "") or ""
    if header:
        msg = Message()
        msg["Content-Disposition"] = header
        try:
            filename = msg.get_filename()
        except (ValueError, LookupError):
            filename = None
        if filename:
            return filename
    return _path_base(unquote(urlsplit(response.url).path))


def _target_path(destination: str, member_name: str) -> str:
    root = os.path.normpath(destination)
    target = os.path.normpath(os.path.join(root, member_name.lstrip("/")))
    if os.path.commonpath([root, target]) != root:
        raise ValueError(f"archive member escapes destination: {member_name!r}")
    return target


def _write_file(target: str, src: IO[bytes], mode: int) -> None:
    fd = os.open(target, os.O_RDWR | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as dst:
        shutil.copyfileobj(src, dst)


def _is_tar(path: str) -> bool:
    try:
        with tarfile.open(path, "r:*"):
            return True
    except (tarfile.TarError, OSError, EOFError, lzma.LZMAError):
        return False


def _extract_tar(path: str, destination: str) -> None:
    with tarfile.open(path, "r:*") as tar:
        for member in tar:
            target = _target_path(destination, member.name)
            os.makedirs(os.path.dirname(target), mode=0o755, exist_ok=True)
            if member.isdir():
                os.makedirs(target, mode=0o755, exist_ok=True)
            elif member.isfile():
                src = tar.extractfile(member)
                if src is None:
                    continue
                with src:
                    _write_file(target, src, member.mode & 0o777)


def _extract_zip(path: str, destination: str) -> None:
    with zipfile.ZipFile(path) as archive:
        for info in archive.infolist():
            target = _target_path(destination, info.filename)
            os.makedirs(os.path.dirname(target), mode=0o755, exist_ok=True)
            if info.is_dir():
                os.makedirs(target, mode=0o755, exist_ok=True)
            else:
                mode = (info.external_attr >> 16) & 0o777 or 0o644
                with archive.open(info) as src:
                    _write_file(target, src, mode)


def extract_archive(path: str, name: str, destination: str) -> bool:
    """Extract or decompress the file at ``path`` into ``destination``.

    Returns False when the file is not a recognised archive or compressed file.
    """
    if zipfile.is_zipfile(path):
        _extract_zip(path, destination)
        return True
    if _is_tar(path):
        _extract_tar(path, destination)
        return True
    for suffix, opener in _DECOMPRESSORS.items():
        if name.endswith(suffix):
            out_path = os.path.join(destination, name.removesuffix(suffix))
            with opener(path, "rb") as src, open(out_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
            return True
    return False


def _read_chunks(fl: IO[bytes]) -> Iterator[bytes]:
    yield from iter(lambda: fl.read(_CHUNK_SIZE), b"")


def _local_path(local_dir: str, url_path: str) -> str:
    path = unquote(url_path)
    if not local_dir:
        return os.path.normpath(path) if path else path
    return os.path.normpath(os.path.join(local_dir, path.lstrip("/")))


class FileDownloader(Downloader):
    """Downloads files over HTTP, or from the local directory with the ``local`` scheme.

    It matches every URL, so it is used when no other downloader does.
    """

    name = "file"

    def match_url(self, url: str) -> bool:
        """Always True."""
        return True

    def download(self, opts: Options) -> tuple[DownloadType, str]:
        """Download the file; archives and compressed files are extracted unless ``~archive=false``."""
        parts = urlsplit(opts.url)
        options, query = _split_options(parts.query)
        name = options.get("~name", "")
        archive = options.get("~archive", "")
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))

        hasher = opts.new_hash()

        with ExitStack() as stack:
            size: int | None
            if parts.scheme == "local":
                local_path = _local_path(opts.local_dir, parts.path)
                src = stack.enter_context(open(local_path, "rb"))
                size = os.fstat(src.fileno()).st_size
                if not name:
                    name = os.path.basename(local_path)
                chunks: Iterator[bytes] = _read_chunks(src)
            else:
                response = requests.get(url, stream=True)
                stack.callback(response.close)
                length = response.headers.get("Content-Length")
                size = int(length) if length and length.isdigit() else None
                if not name:
                    name = get_filename(response)
                chunks = response.iter_content(_CHUNK_SIZE)

            path = os.path.join(opts.destination, name)
            dst = stack.enter_context(open(path, "wb"))

            bar = None
            if opts.progress is not None:
                bar = stack.enter_context(
                    tqdm(
                        total=size,
                        desc=name,
                        unit="B",
                        unit_scale=True,
                        unit_divisor=1024,
                        file=opts.progress,
                        mininterval=0.065,
                    )
                )

            for chunk in chunks:
                if not chunk:
                    continue
                dst.write(chunk)
                if opts.hash is not None:
                    hasher.update(chunk)
                if bar is not None:
                    bar.update(len(chunk))

        if opts.hash is not None and hasher.digest() != opts.hash:
            raise ChecksumMismatchError()

        if archive == "false" or opts.postproc_disabled:
            return DownloadType.FILE, name

        if not extract_archive(path, name, opts.destination):
            return DownloadType.FILE, name

        log.debug("Extracted %s into %s", name, opts.destination)
        os.remove(path)
        return DownloadType.DIR, ""