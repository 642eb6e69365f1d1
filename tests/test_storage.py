import pytest

from fingerprinter.errors import StorageError
from fingerprinter.storage import InMemoryStorage, LocalStorage


@pytest.fixture(params=["memory", "local"])
def storage(request, tmp_path):
    if request.param == "memory":
        return InMemoryStorage()
    return LocalStorage(tmp_path / "objects")


def test_upload_then_download(storage):
    storage.upload("songs/abc.wav", b"RIFF....")

    assert storage.download("songs/abc.wav") == b"RIFF...."


def test_upload_overwrites(storage):
    storage.upload("k", b"one")
    storage.upload("k", b"two")

    assert storage.download("k") == b"two"


def test_delete_removes_object(storage):
    storage.upload("songs/abc.wav", b"x")

    storage.delete("songs/abc.wav")

    with pytest.raises(StorageError):
        storage.download("songs/abc.wav")


def test_missing_objects(storage):
    with pytest.raises(StorageError):
        storage.download("missing")
    with pytest.raises(StorageError):
        storage.delete("missing")


def test_local_storage_writes_under_root(tmp_path):
    storage = LocalStorage(tmp_path)

    storage.upload("songs/abc.wav", b"data")

    assert (tmp_path / "songs" / "abc.wav").read_bytes() == b"data"


@pytest.mark.parametrize("key", ["../escape.wav", "songs/../../escape.wav", "/etc/passwd"])
def test_local_storage_rejects_keys_outside_root(tmp_path, key):
    storage = LocalStorage(tmp_path / "objects")

    with pytest.raises(StorageError, match="invalid object key"):
        storage.upload(key, b"data")
