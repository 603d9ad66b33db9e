"""Cached downloading of sources through the matching downloader."""

from __future__ import annotations

import dataclasses
import ipaddress
import logging
import os
import re
import shutil
import stat
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from lure import dlcache
from lure.dl.common import (
    MANIFEST_FILE_NAME,
    Downloader,
    DownloadType,
    Manifest,
    Options,
    UpdatingDownloader,
    read_manifest,
    write_manifest,
)
from lure.dl.file import FileDownloader
from lure.dl.git import GitDownloader
from lure.dl.torrent import TorrentDownloader

log = logging.getLogger(__name__)

DOWNLOADERS: list[Downloader] = [GitDownloader(), TorrentDownloader(), FileDownloader()]
"""All downloaders, in the order in which they are checked."""

_DEFAULT_PORTS = {"http": "80", "https": "443"}
_UNRESERVED = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~")
_ESCAPE_RE = re.compile(r"%([0-9A-Fa-f]{2})")
_HEX_HOST_RE = re.compile(r"0x[0-9a-f]{1,8}")
_OCTAL_HOST_RE = re.compile(r"(0\d*)\.(0\d*)\.(0\d*)\.(0\d*)")
_PORT_RE = re.compile(r"\d+")


def get_downloader(url: str) -> Downloader | None:
    """Return the first downloader that matches ``url``."""
    for downloader in DOWNLOADERS:
        if downloader.match_url(url):
            return downloader
    return None


def _decode_escape(match: re.Match[str]) -> str:
    char = chr(int(match.group(1), 16))
    if char in _UNRESERVED:
        return char
    return "%" + match.group(1).upper()


def _decode_numeric_host(host: str) -> str:
    if _HEX_HOST_RE.fullmatch(host):
        return str(ipaddress.IPv4Address(int(host, 16)))
    match = _OCTAL_HOST_RE.fullmatch(host)
    if match:
        try:
            octets = [int(part, 8) for part in match.groups()]
        except ValueError:
            return host
        if all(o <= 255 for o in octets):
            return ".".join(str(o) for o in octets)
    return host


def _normalize_netloc(scheme: str, netloc: str) -> str:
    if not netloc:
        return netloc
    userinfo, at, hostport = netloc.rpartition("@")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"invalid IPv6 host: {hostport!r}")
        host, rest = hostport[: end + 1], hostport[end + 1 :]
        port = rest[1:] if rest.startswith(":") else ""
        if rest and not rest.startswith(":"):
            raise ValueError(f"invalid host: {hostport!r}")
    else:
        host, _, port = hostport.partition(":")
        host = _decode_numeric_host(host.lower().strip("."))
    host = host.lower()
    if port and not _PORT_RE.fullmatch(port):
        raise ValueError(f"invalid port: {port!r}")
    if port and _DEFAULT_PORTS.get(scheme) == port:
        port = ""
    out = host + (":" + port if port else "")
    return f"{userinfo}@{out}" if at else out


def _sort_query(query: str) -> str:
    if not query:
        return ""
    pairs = parse_qsl(query, keep_blank_values=True)
    pairs.sort(key=lambda kv: kv[0])
    return urlencode(pairs)


def normalize_url(url: str) -> str:
    """Normalise ``url`` so that insignificant differences do not change its cache key."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    netloc = _normalize_netloc(scheme, parts.netloc)
    path = _ESCAPE_RE.sub(_decode_escape, parts.path)
    path = re.sub(r"/{2,}", "/", path)
    if path.endswith("/"):
        path = path[:-1]
    result = urlunsplit((scheme, netloc, path, _sort_query(parts.query), ""))
    return result.replace("magnet://", "magnet:", 1)


def link_dir(src: str, dest: str) -> None:
    """Recreate ``src`` under ``dest``: directories are created, files are hard-linked.

    The cache manifest is skipped.
    """

    def _raise(exc: OSError) -> None:
        raise exc

    for root, dirnames, filenames in os.walk(src, onerror=_raise):
        rel = os.path.relpath(root, src)
        target_root = os.path.normpath(os.path.join(dest, rel))
        os.makedirs(target_root, mode=stat.S_IMODE(os.stat(root).st_mode), exist_ok=True)

        dirnames.sort()
        for dirname in list(dirnames):
            full = os.path.join(root, dirname)
            if dirname == MANIFEST_FILE_NAME:
                dirnames.remove(dirname)
            elif os.path.islink(full):
                os.link(full, os.path.join(target_root, dirname), follow_symlinks=False)
                dirnames.remove(dirname)

        for filename in sorted(filenames):
            if filename == MANIFEST_FILE_NAME:
                continue
            os.link(
                os.path.join(root, filename),
                os.path.join(target_root, filename),
                follow_symlinks=False,
            )


def handle_cache(cache_dir: str, dest: str, name: str, kind: DownloadType) -> bool:
    """Link a cached download into ``dest``; return False if the cached file is missing."""
    if kind == DownloadType.FILE:
        if name in os.listdir(cache_dir):
            os.link(os.path.join(cache_dir, name), dest)
            return True
        return False
    if kind == DownloadType.DIR:
        link_dir(cache_dir, dest)
        return True
    return False


def _remove_all(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.remove(path)


def _cache_opts(opts: Options, cache_dir: str) -> Options:
    return Options(
        url=opts.url,
        destination=cache_dir,
        name=opts.name,
        hash=opts.hash,
        hash_algorithm=opts.hash_algorithm,
        progress=opts.progress,
        local_dir=opts.local_dir,
    )


def download(opts: Options) -> None:
    """Download a source into ``opts.destination``, using and filling the download cache.

    A cached copy is updated when its downloader supports it, then hard-linked
    into the destination. An unreadable cache entry is discarded and fetched again.
    """
    opts = dataclasses.replace(opts, url=normalize_url(opts.url))
    downloader = get_downloader(opts.url)
    if downloader is None:
        raise ValueError(f"no downloader for {opts.url!r}")

    if opts.cache_disabled:
        downloader.download(opts)
        return

    cache_dir = dlcache.get(opts.url)
    if cache_dir is not None:
        updated = False
        if isinstance(downloader, UpdatingDownloader):
            log.info(
                "Source can be updated, updating if required (source=%s, downloader=%s)",
                opts.name,
                downloader.name,
            )
            updated = downloader.update(_cache_opts(opts, cache_dir))

        try:
            manifest = read_manifest(cache_dir)
        except (OSError, ValueError):
            # The cache entry is unusable; fetch the source again.
            _remove_all(cache_dir)
        else:
            dest = os.path.join(opts.destination, manifest.name)
            if handle_cache(cache_dir, dest, manifest.name, manifest.type):
                if updated:
                    log.info("Source updated and linked to destination (source=%s)", opts.name)
                else:
                    log.info(
                        "Source found in cache and linked to destination (source=%s, type=%s)",
                        opts.name,
                        manifest.type,
                    )
                return

    log.info("Downloading source (source=%s, downloader=%s)", opts.name, downloader.name)

    cache_dir = dlcache.create(opts.url)
    kind, name = downloader.download(_cache_opts(opts, cache_dir))
    write_manifest(cache_dir, Manifest(kind, name))
    handle_cache(cache_dir, os.path.join(opts.destination, name), name, kind)