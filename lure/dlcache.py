"""A download cache keyed by the SHA-1 of an identifier."""

from __future__ import annotations

import hashlib
import os
import shutil

from lure.config import get_paths


def base_path() -> str:
    """Return the base directory of the download cache."""
    return os.path.join(get_paths().cache_dir, "dl")


def _hash_id(item_id: str) -> str:
    return hashlib.sha1(item_id.encode("utf-8")).hexdigest()


def create(item_id: str) -> str:
    """Create an empty cache directory for ``item_id``, replacing any existing one."""
    item_path = os.path.join(base_path(), _hash_id(item_id))
    if os.path.isdir(item_path) and not os.path.islink(item_path):
        shutil.rmtree(item_path)
    elif os.path.lexists(item_path):
        os.remove(item_path)
    os.makedirs(item_path, mode=0o755, exist_ok=True)
    return item_path


def get(item_id: str) -> str | None:
    """Return the cache directory for ``item_id`` if it exists, else None."""
    item_path = os.path.join(base_path(), _hash_id(item_id))
    if not os.path.exists(item_path):
        return None
    return item_path