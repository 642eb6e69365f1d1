from datetime import datetime, timezone

import pytest

from fingerprinter.database import (
    InMemoryFingerprintRepository,
    InMemorySongRepository,
    SQLiteDatabase,
    SQLiteFingerprintRepository,
    SQLiteSongRepository,
    pack_fingerprints,
    unpack_fingerprints,
    validate_song,
)
from fingerprinter.errors import RepositoryError
from fingerprinter.models import Fingerprint, Song


def make_song(song_id="song-1", **overrides):
    fields = dict(
        id=song_id,
        title="Test Title",
        artist="Test Artist",
        album="Test Album",
        year=2020,
        s3_key=f"songs/{song_id}.wav",
        fingerprint=b"",
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Song(**fields)


@pytest.fixture(params=["memory", "sqlite"])
def repos(request, tmp_path):
    if request.param == "memory":
        fingerprint_repo = InMemoryFingerprintRepository()
        song_repo = InMemorySongRepository(fingerprint_repo)
    else:
        database = SQLiteDatabase(tmp_path / "db" / "fingerprints.sqlite3")
        fingerprint_repo = SQLiteFingerprintRepository(database)
        song_repo = SQLiteSongRepository(database)
    return song_repo, fingerprint_repo


# --- PACKING ---


def test_pack_layout():
    blob = pack_fingerprints([Fingerprint(hash=0x01020304, time_offset=7)])

    assert blob == bytes([4, 3, 2, 1, 7, 0, 0, 0])


def test_unpack_restores_pairs():
    fingerprints = [Fingerprint(hash=0xFFFFFFFF, time_offset=0), Fingerprint(hash=5, time_offset=27)]

    restored = unpack_fingerprints(pack_fingerprints(fingerprints), song_id="abc")

    assert [(fp.hash, fp.time_offset, fp.song_id) for fp in restored] == [
        (0xFFFFFFFF, 0, "abc"),
        (5, 27, "abc"),
    ]


def test_pack_empty():
    assert pack_fingerprints([]) == b""
    assert unpack_fingerprints(b"") == []


# --- VALIDATION ---


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"id": ""}, "song ID is required"),
        ({"title": "  "}, "song title is required"),
        ({"artist": ""}, "song artist is required"),
        ({"s3_key": ""}, "S3 key is required"),
        ({"year": 1799}, "invalid year"),
        ({"year": datetime.now().year + 2}, "invalid year"),
        ({"created_at": None}, "created_at"),
    ],
)
def test_validate_song_rejects(overrides, message):
    with pytest.raises(RepositoryError, match=message):
        validate_song(make_song(**overrides))


def test_validate_song_accepts_next_year():
    validate_song(make_song(year=datetime.now().year + 1))


# --- REPOSITORIES ---


def test_save_and_find_song(repos):
    song_repo, _ = repos
    song = make_song(fingerprint=b"\x01\x00\x00\x00\x02\x00\x00\x00")

    song_repo.save_song(song)
    found = song_repo.find_by_id(song.id)

    assert found.to_dict() == song.to_dict()
    assert found.fingerprint == song.fingerprint


def test_missing_song_is_none(repos):
    song_repo, _ = repos

    assert song_repo.find_by_id("nope") is None


def test_duplicate_song_is_rejected(repos):
    song_repo, _ = repos
    song_repo.save_song(make_song())

    with pytest.raises(RepositoryError):
        song_repo.save_song(make_song(title="Other"))


def test_invalid_song_is_not_saved(repos):
    song_repo, _ = repos

    with pytest.raises(RepositoryError):
        song_repo.save_song(make_song(year=1500))

    assert song_repo.find_by_id("song-1") is None


def test_fingerprints_get_ids_and_are_found_by_hash(repos):
    song_repo, fingerprint_repo = repos
    song_repo.save_song(make_song())

    count = fingerprint_repo.save_fingerprints(
        [
            Fingerprint(hash=42, time_offset=0, song_id="song-1"),
            Fingerprint(hash=42, time_offset=3, song_id="song-1"),
            Fingerprint(hash=7, time_offset=1, song_id="song-1"),
        ]
    )

    assert count == 3
    first = fingerprint_repo.find_by_hash(42)
    assert first.time_offset == 0
    assert first.id is not None
    assert [fp.time_offset for fp in fingerprint_repo.find_all_by_hash(42)] == [0, 3]
    assert fingerprint_repo.find_by_id(first.id).hash == 42
    assert fingerprint_repo.find_by_song_id("song-1").hash == 42


def test_unknown_fingerprint_lookups(repos):
    _, fingerprint_repo = repos

    assert fingerprint_repo.find_by_hash(1) is None
    assert fingerprint_repo.find_all_by_hash(1) == []
    assert fingerprint_repo.find_by_id(999) is None
    assert fingerprint_repo.find_by_song_id("nope") is None


def test_find_song_by_fingerprint(repos):
    song_repo, fingerprint_repo = repos
    song_repo.save_song(make_song("a"))
    song_repo.save_song(make_song("b"))
    fingerprint_repo.save_fingerprint(Fingerprint(hash=99, time_offset=2, song_id="b"))

    assert song_repo.find_by_fingerprint(99).id == "b"
    assert song_repo.find_by_fingerprint(100) is None


def test_sqlite_data_survives_reopen(tmp_path):
    path = tmp_path / "fingerprints.sqlite3"
    database = SQLiteDatabase(path)
    SQLiteSongRepository(database).save_song(make_song())
    SQLiteFingerprintRepository(database).save_fingerprint(
        Fingerprint(hash=5, time_offset=1, song_id="song-1")
    )

    reopened = SQLiteDatabase(path)

    assert SQLiteSongRepository(reopened).find_by_id("song-1").title == "Test Title"
    assert SQLiteFingerprintRepository(reopened).find_by_hash(5).song_id == "song-1"


def test_in_memory_stats():
    repo = InMemoryFingerprintRepository()
    repo.save_fingerprints(
        [Fingerprint(hash=h, time_offset=0) for h in (1, 1, 2)]
    )

    assert repo.get_stats() == {
        "unique_hashes": 2,
        "total_hash_entries": 3,
        "avg_collisions": 1.5,
    }


def test_delete_song_and_its_fingerprints(repos):
    song_repo, fingerprint_repo = repos
    song_repo.save_song(make_song("a"))
    song_repo.save_song(make_song("b"))
    fingerprint_repo.save_fingerprints(
        [
            Fingerprint(hash=1, time_offset=0, song_id="a"),
            Fingerprint(hash=1, time_offset=1, song_id="b"),
            Fingerprint(hash=2, time_offset=2, song_id="a"),
        ]
    )

    assert fingerprint_repo.delete_by_song_id("a") == 2
    assert song_repo.delete_song("a") is True

    assert song_repo.find_by_id("a") is None
    assert fingerprint_repo.find_by_song_id("a") is None
    assert fingerprint_repo.find_by_hash(2) is None
    assert [fp.song_id for fp in fingerprint_repo.find_all_by_hash(1)] == ["b"]
    assert song_repo.find_by_id("b") is not None


def test_delete_missing_song(repos):
    song_repo, fingerprint_repo = repos

    assert song_repo.delete_song("nope") is False
    assert fingerprint_repo.delete_by_song_id("nope") == 0
