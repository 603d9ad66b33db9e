import hashlib
import os

import msgpack
import pytest

from lure.dl.common import (
    MANIFEST_FILE_NAME,
    ChecksumMismatchError,
    Downloader,
    DownloadType,
    Manifest,
    NoSuchHashAlgorithmError,
    Options,
    UpdatingDownloader,
    read_manifest,
    write_manifest,
)


@pytest.mark.parametrize(
    "algorithm, reference",
    [
        ("", hashlib.sha256),
        ("sha256", hashlib.sha256),
        ("sha224", hashlib.sha224),
        ("sha512", hashlib.sha512),
        ("sha384", hashlib.sha384),
        ("sha1", hashlib.sha1),
        ("md5", hashlib.md5),
        ("blake2s-256", lambda: hashlib.blake2s(digest_size=32)),
        ("blake2b-256", lambda: hashlib.blake2b(digest_size=32)),
        ("blake2b-512", lambda: hashlib.blake2b(digest_size=64)),
    ],
)
def test_new_hash_matches_reference(algorithm, reference):
    h = Options(hash_algorithm=algorithm).new_hash()
    h.update(b"lure source data")
    ref = reference()
    ref.update(b"lure source data")
    assert h.digest() == ref.digest()


def test_blake2s_128_uses_256_bit_digest():
    h = Options(hash_algorithm="blake2s-128").new_hash()
    assert h.digest_size == hashlib.blake2s().digest_size


def test_unknown_hash_algorithm():
    with pytest.raises(NoSuchHashAlgorithmError) as info:
        Options(hash_algorithm="crc32").new_hash()
    assert "crc32" in str(info.value)
    assert info.value.algorithm == "crc32"


def test_download_type_strings():
    assert str(DownloadType(0)) == "file"
    assert str(DownloadType(1)) == "dir"


def test_manifest_round_trip(tmp_path):
    manifest = Manifest(DownloadType.DIR, "source-dir")
    write_manifest(str(tmp_path), manifest)
    assert read_manifest(str(tmp_path)) == manifest


def test_manifest_wire_format(tmp_path):
    write_manifest(str(tmp_path), Manifest(DownloadType.FILE, "archive.tar.gz"))
    with open(tmp_path / MANIFEST_FILE_NAME, "rb") as fl:
        data = msgpack.unpackb(fl.read())
    assert data == {"Type": 0, "Name": "archive.tar.gz"}


def test_manifest_written_under_fixed_name(tmp_path):
    write_manifest(str(tmp_path), Manifest(DownloadType.FILE, "a"))
    assert os.listdir(tmp_path) == [".lure_cache_manifest"]


def test_read_manifest_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_manifest(str(tmp_path))


def test_read_manifest_invalid_type(tmp_path):
    with open(os.path.join(tmp_path, MANIFEST_FILE_NAME), "wb") as fl:
        fl.write(msgpack.packb({"Type": 7, "Name": "x"}))
    with pytest.raises(ValueError):
        read_manifest(str(tmp_path))


def test_read_manifest_not_a_map(tmp_path):
    with open(os.path.join(tmp_path, MANIFEST_FILE_NAME), "wb") as fl:
        fl.write(msgpack.packb([1, 2]))
    with pytest.raises(ValueError):
        read_manifest(str(tmp_path))


def test_downloader_is_abstract():
    with pytest.raises(TypeError):
        Downloader()
    with pytest.raises(TypeError):
        UpdatingDownloader()


def test_checksum_mismatch_message():
    assert str(ChecksumMismatchError()) == "dl: checksums did not match"