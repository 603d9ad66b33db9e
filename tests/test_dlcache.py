import hashlib
import os

import pytest

from lure import config, dlcache


@pytest.fixture(autouse=True)
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    config.reset_cache()
    yield tmp_path
    config.reset_cache()


def sha1sum(item_id):
    return hashlib.sha1(item_id.encode()).hexdigest()


def test_new():
    item_id = "https://example.com"
    path = dlcache.create(item_id)
    assert path == os.path.join(dlcache.base_path(), sha1sum(item_id))
    assert os.path.isdir(path)
    assert dlcache.get(item_id) == path


def test_base_path_under_cache_dir():
    assert dlcache.base_path() == os.path.join(config.get_paths().cache_dir, "dl")


def test_get_missing():
    assert dlcache.get("https://example.com/missing") is None


def test_create_replaces_existing():
    item_id = "https://example.com/a"
    path = dlcache.create(item_id)
    with open(os.path.join(path, "file"), "w") as fl:
        fl.write("data")
    again = dlcache.create(item_id)
    assert again == path
    assert os.listdir(again) == []


def test_distinct_ids_distinct_dirs():
    assert dlcache.create("a") != dlcache.create("b")