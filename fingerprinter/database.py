"""
Song and fingerprint repositories.

Two implementations of each: an in-memory hash table (used by tests and as a
scratch index) and a SQLite store with the schema

    songs(id PK, title, artist, album, year, s3_key, fingerprint, created_at)
    fingerprints(id PK, song_id FK, hash, time_offset)  -- indexed on hash
"""
import sqlite3
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Iterable, List, Optional

import numpy as np

from .errors import RepositoryError
from .logging_config import setup_logger
from .models import Fingerprint, Song

# setting up logger
logger = setup_logger(__name__)

MIN_SONG_YEAR = 1800


def pack_fingerprints(fingerprints):
    """Serialize fingerprints as little-endian uint32 (hash, time_offset) pairs."""
    table = np.array(
        [(fp.hash, fp.time_offset) for fp in fingerprints], dtype="<u4"
    ).reshape(-1, 2)
    return table.tobytes()


def unpack_fingerprints(blob, song_id=None):
    table = np.frombuffer(blob, dtype="<u4").reshape(-1, 2)
    return [
        Fingerprint(hash=int(h), time_offset=int(t), song_id=song_id)
        for h, t in table
    ]


def validate_song(song):
    if not song.id or not song.id.strip():
        raise RepositoryError("song ID is required")
    if not song.title or not song.title.strip():
        raise RepositoryError("song title is required")
    if not song.artist or not song.artist.strip():
        raise RepositoryError("song artist is required")
    if not song.s3_key or not song.s3_key.strip():
        raise RepositoryError("S3 key is required")
    if song.year < MIN_SONG_YEAR or song.year > datetime.now().year + 1:
        raise RepositoryError(
            f"invalid year: must be between {MIN_SONG_YEAR} and next year"
        )
    if song.created_at is None:
        raise RepositoryError("created_at timestamp is required")


class SongRepository(ABC):
    @abstractmethod
    def save_song(self, song: Song) -> None:
        pass

    @abstractmethod
    def find_by_id(self, song_id: str) -> Optional[Song]:
        pass

    @abstractmethod
    def find_by_fingerprint(self, hash_val: int) -> Optional[Song]:
        """First song holding a fingerprint with this hash, or None."""
        pass

    @abstractmethod
    def delete_song(self, song_id: str) -> bool:
        """Remove a song; returns False when it did not exist."""
        pass


class FingerprintRepository(ABC):
    @abstractmethod
    def save_fingerprint(self, fingerprint: Fingerprint) -> None:
        pass

    def save_fingerprints(self, fingerprints: Iterable[Fingerprint]) -> int:
        count = 0
        for fp in fingerprints:
            self.save_fingerprint(fp)
            count += 1
        return count

    @abstractmethod
    def find_by_hash(self, hash_val: int) -> Optional[Fingerprint]:
        pass

    @abstractmethod
    def find_all_by_hash(self, hash_val: int) -> List[Fingerprint]:
        pass

    @abstractmethod
    def find_by_id(self, fingerprint_id: int) -> Optional[Fingerprint]:
        pass

    @abstractmethod
    def find_by_song_id(self, song_id: str) -> Optional[Fingerprint]:
        pass

    @abstractmethod
    def delete_by_song_id(self, song_id: str) -> int:
        pass


class InMemoryFingerprintRepository(FingerprintRepository):
    """
    In-memory hash database for fingerprints.

    Structure:
        hash_table: {hash: [Fingerprint, ...]}
        by_id:      {fingerprint id: Fingerprint}
    """

    def __init__(self):
        self.hash_table = defaultdict(list)
        self.by_id = {}
        self.next_id = 1

    def save_fingerprint(self, fingerprint):
        stored = Fingerprint(
            hash=fingerprint.hash,
            time_offset=fingerprint.time_offset,
            song_id=fingerprint.song_id,
            id=self.next_id,
        )
        self.next_id += 1

        self.hash_table[stored.hash].append(stored)
        self.by_id[stored.id] = stored

    def find_by_hash(self, hash_val):
        matches = self.hash_table.get(hash_val)
        return matches[0] if matches else None

    def find_all_by_hash(self, hash_val):
        return list(self.hash_table.get(hash_val, []))

    def find_by_id(self, fingerprint_id):
        return self.by_id.get(fingerprint_id)

    def find_by_song_id(self, song_id):
        for fp in self.by_id.values():
            if fp.song_id == song_id:
                return fp
        return None

    def delete_by_song_id(self, song_id):
        doomed = [fp for fp in self.by_id.values() if fp.song_id == song_id]
        for fp in doomed:
            del self.by_id[fp.id]
            self.hash_table[fp.hash].remove(fp)
            if not self.hash_table[fp.hash]:
                del self.hash_table[fp.hash]
        return len(doomed)

    def get_stats(self):
        total_hashes = sum(len(v) for v in self.hash_table.values())
        unique_hashes = len(self.hash_table)
        return {
            "unique_hashes": unique_hashes,
            "total_hash_entries": total_hashes,
            "avg_collisions": total_hashes / max(1, unique_hashes),
        }


class InMemorySongRepository(SongRepository):
    def __init__(self, fingerprint_repo=None):
        self.songs = {}
        self.fingerprint_repo = fingerprint_repo

    def save_song(self, song):
        validate_song(song)
        if song.id in self.songs:
            raise RepositoryError(f"song {song.id} already exists")
        self.songs[song.id] = song

    def find_by_id(self, song_id):
        return self.songs.get(song_id)

    def find_by_fingerprint(self, hash_val):
        if self.fingerprint_repo is None:
            return None
        fp = self.fingerprint_repo.find_by_hash(hash_val)
        if fp is None:
            return None
        return self.songs.get(fp.song_id)

    def delete_song(self, song_id):
        return self.songs.pop(song_id, None) is not None


class SQLiteDatabase:
    """
    Thread-safe SQLite connection factory shared by both repositories.
    Uses WAL mode and a connection per operation.
    """

    def __init__(self, db_path):
        self.db_path = str(db_path)
        self._lock = Lock()
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self):
        """Initialize database with schema."""
        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS songs (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    artist TEXT NOT NULL,
                    album TEXT,
                    year INTEGER,
                    s3_key TEXT NOT NULL,
                    fingerprint BLOB,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS fingerprints (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    song_id TEXT REFERENCES songs(id),
                    hash INTEGER NOT NULL,
                    time_offset INTEGER NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_fingerprints_hash ON fingerprints(hash)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_fingerprints_song ON fingerprints(song_id)"
            )
        logger.info(f"Database initialized: {self.db_path}")

    @contextmanager
    def connection(self):
        """Connection context manager; commits on success, rolls back on error."""
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def locked(self):
        with self._lock, self.connection() as conn:
            yield conn


class SQLiteSongRepository(SongRepository):
    def __init__(self, database):
        self.database = database

    def save_song(self, song):
        validate_song(song)
        try:
            with self.database.locked() as conn:
                conn.execute(
                    """
                    INSERT INTO songs
                        (id, title, artist, album, year, s3_key, fingerprint, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        song.id,
                        song.title,
                        song.artist,
                        song.album,
                        song.year,
                        song.s3_key,
                        song.fingerprint,
                        song.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise RepositoryError(f"could not save song {song.id}: {e}") from e
        logger.debug(f"Saved song: {song.id}")

    def find_by_id(self, song_id):
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM songs WHERE id = ?", (song_id,)
            ).fetchone()
        return _row_to_song(row) if row else None

    def find_by_fingerprint(self, hash_val):
        with self.database.connection() as conn:
            row = conn.execute(
                """
                SELECT s.* FROM songs s
                JOIN fingerprints f ON s.id = f.song_id
                WHERE f.hash = ?
                ORDER BY f.id
                LIMIT 1
                """,
                (hash_val,),
            ).fetchone()
        return _row_to_song(row) if row else None

    def delete_song(self, song_id):
        with self.database.locked() as conn:
            cursor = conn.execute("DELETE FROM songs WHERE id = ?", (song_id,))
            deleted = cursor.rowcount > 0
        logger.debug(f"Deleted song: {song_id}")
        return deleted


class SQLiteFingerprintRepository(FingerprintRepository):
    def __init__(self, database):
        self.database = database

    def save_fingerprint(self, fingerprint):
        self.save_fingerprints([fingerprint])

    def save_fingerprints(self, fingerprints):
        rows = [(fp.song_id, fp.hash, fp.time_offset) for fp in fingerprints]
        with self.database.locked() as conn:
            conn.executemany(
                "INSERT INTO fingerprints (song_id, hash, time_offset) VALUES (?, ?, ?)",
                rows,
            )
        logger.debug(f"Saved {len(rows)} fingerprints")
        return len(rows)

    def find_by_hash(self, hash_val):
        return self._find_one("WHERE hash = ? ORDER BY id LIMIT 1", hash_val)

    def find_all_by_hash(self, hash_val):
        with self.database.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM fingerprints WHERE hash = ? ORDER BY id", (hash_val,)
            ).fetchall()
        return [_row_to_fingerprint(row) for row in rows]

    def find_by_id(self, fingerprint_id):
        return self._find_one("WHERE id = ?", fingerprint_id)

    def find_by_song_id(self, song_id):
        return self._find_one("WHERE song_id = ? ORDER BY id LIMIT 1", song_id)

    def delete_by_song_id(self, song_id):
        with self.database.locked() as conn:
            cursor = conn.execute(
                "DELETE FROM fingerprints WHERE song_id = ?", (song_id,)
            )
            deleted = cursor.rowcount
        return deleted

    def _find_one(self, where, value):
        with self.database.connection() as conn:
            row = conn.execute(
                f"SELECT * FROM fingerprints {where}", (value,)
            ).fetchone()
        return _row_to_fingerprint(row) if row else None


def _row_to_song(row):
    return Song(
        id=row["id"],
        title=row["title"],
        artist=row["artist"],
        album=row["album"] or "",
        year=row["year"] or 0,
        s3_key=row["s3_key"],
        fingerprint=row["fingerprint"] or b"",
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _row_to_fingerprint(row):
    return Fingerprint(
        id=row["id"],
        song_id=row["song_id"],
        hash=row["hash"],
        time_offset=row["time_offset"],
    )
