"""Downloading over BitTorrent with aria2c."""

from __future__ import annotations

import glob
import os
import re
import shutil
import subprocess

from lure.dl.common import Downloader, DownloadType, Options

_URL_MATCH_RE = re.compile(r"(magnet|torrent\+https?):.*")


class Aria2NotFoundError(FileNotFoundError):
    """aria2c is not installed."""

    def __init__(self) -> None:
        super().__init__("aria2 must be installed for torrent functionality")


class DestinationEmptyError(Exception):
    """The download produced no files."""

    def __init__(self) -> None:
        super().__init__("the destination directory is empty")


class TorrentDownloader(Downloader):
    """Downloads magnet links and ``torrent+http(s)`` URLs."""

    name = "torrent"

    def match_url(self, url: str) -> bool:
        """Match magnet links and http(s) links prefixed with ``torrent+``."""
        return _URL_MATCH_RE.search(url) is not None

    def download(self, opts: Options) -> tuple[DownloadType, str]:
        """Download with aria2c, then drop any .torrent files left behind."""
        aria2 = shutil.which("aria2c")
        if aria2 is None:
            raise Aria2NotFoundError()

        url = opts.url.removeprefix("torrent+")
        cmd = [
            aria2,
            "--summary-interval=0",
            "--log-level=warn",
            "--seed-time=0",
            f"--dir={opts.destination}",
            url,
        ]
        try:
            result = subprocess.run(cmd)
        except OSError as exc:
            raise RuntimeError(f"aria2c returned an error: {exc}") from exc
        if result.returncode != 0:
            raise RuntimeError(f"aria2c returned an error: exit status {result.returncode}")

        remove_torrent_files(opts.destination)
        return determine_type(opts.destination)


def remove_torrent_files(path: str) -> None:
    """Delete every ``*.torrent`` file directly inside ``path``."""
    for file_path in glob.glob(os.path.join(glob.escape(path), "*.torrent")):
        os.remove(file_path)


def determine_type(path: str) -> tuple[DownloadType, str]:
    """Classify the contents of ``path`` as one file, one directory or many entries."""
    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)
    if len(entries) > 1:
        return DownloadType.DIR, ""
    if len(entries) == 1:
        entry = entries[0]
        if entry.is_dir(follow_symlinks=False):
            return DownloadType.DIR, entry.name
        return DownloadType.FILE, entry.name
    raise DestinationEmptyError()