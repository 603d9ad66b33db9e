"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import stat


def move(source: str, dest: str) -> None:
    """Move ``source`` to ``dest``, copying and deleting when a rename fails."""
    try:
        os.rename(source, dest)
        return
    except OSError:
        pass
    _copy_any(source, dest)
    if os.path.isdir(source) and not os.path.islink(source):
        shutil.rmtree(source)
    elif os.path.lexists(source):
        os.remove(source)


def _copy_any(source: str, dest: str) -> None:
    info = os.stat(source)
    if stat.S_ISDIR(info.st_mode):
        _copy_dir(source, dest, info)
    elif stat.S_ISREG(info.st_mode):
        _copy_file(source, dest, info)
    # Other file types are skipped.


def _copy_dir(source: str, dest: str, info: os.stat_result) -> None:
    os.makedirs(dest, mode=stat.S_IMODE(info.st_mode), exist_ok=True)
    with os.scandir(source) as entries:
        names = sorted(entry.name for entry in entries)
    for name in names:
        _copy_any(os.path.join(source, name), os.path.join(dest, name))


def _copy_file(source: str, dest: str, info: os.stat_result) -> None:
    fd = os.open(dest, os.O_CREAT | os.O_TRUNC | os.O_RDWR, stat.S_IMODE(info.st_mode))
    with open(source, "rb") as src, os.fdopen(fd, "wb") as dst:
        shutil.copyfileobj(src, dst)