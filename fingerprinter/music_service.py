"""Upload orchestration: fingerprint a song, store the audio, persist the records."""
import uuid
from datetime import datetime, timezone

from .config import DatabaseConfig
from .database import pack_fingerprints
from .logging_config import setup_logger
from .models import IdentifyResult, IdentifyStatus, Song, UploadResult

logger = setup_logger(__name__)


class MusicService:
    def __init__(
        self,
        storage,
        song_repo,
        fingerprint_repo,
        audio_processor,
        fingerprint_generator,
        storage_prefix=DatabaseConfig.storage_prefix,
    ):
        self.storage = storage
        self.song_repo = song_repo
        self.fingerprint_repo = fingerprint_repo
        self.audio_processor = audio_processor
        self.fingerprint_generator = fingerprint_generator
        self.storage_prefix = storage_prefix

    def handle_upload(self, data, title, artist, album="", year=None):
        """
        Fingerprint an uploaded WAV and persist it as a new song.

        The raw bytes are stored first; if saving the song or its
        fingerprints fails afterwards, the song, any fingerprints already
        written and the stored object are removed again.

        Args:
            data: WAV bytes
            title: Song title
            artist: Song artist
            album: Optional album name
            year: Release year, defaults to the current year

        Returns:
            result: UploadResult with the saved song and its fingerprints
        """
        self.audio_processor.validate_file(data)
        audio_data = self.audio_processor.process(data)
        fingerprints = self.fingerprint_generator.generate_fingerprints(
            audio_data.spectrogram
        )

        song_id = uuid.uuid4().hex
        for fp in fingerprints:
            fp.song_id = song_id

        song = Song(
            id=song_id,
            title=title,
            artist=artist,
            album=album or "",
            year=year if year is not None else datetime.now().year,
            s3_key=f"{self.storage_prefix}/{song_id}.wav",
            fingerprint=pack_fingerprints(fingerprints),
            created_at=datetime.now(timezone.utc),
        )

        self.storage.upload(song.s3_key, data)
        song_saved = False
        try:
            self.song_repo.save_song(song)
            song_saved = True
            self.fingerprint_repo.save_fingerprints(fingerprints)
        except Exception:
            logger.error(f"✗ Failed to persist song {song_id}, rolling back")
            if song_saved:
                self.fingerprint_repo.delete_by_song_id(song_id)
                self.song_repo.delete_song(song_id)
            self.storage.delete(song.s3_key)
            raise

        logger.info(
            f"✓ Added song {song_id}: {title} - {artist} "
            f"({len(fingerprints)} fingerprints)"
        )
        return UploadResult(
            song=song, metadata=audio_data.metadata, fingerprints=fingerprints
        )

    def get_song(self, song_id):
        return self.song_repo.find_by_id(song_id)

    def get_fingerprint(self, hash_val):
        return self.fingerprint_repo.find_by_hash(hash_val)

    def identify(self, hash_val):
        """
        Look a query hash up in the index.

        Ranking candidate songs is not implemented, so a known hash yields
        NOT_IMPLEMENTED rather than a guessed answer.
        """
        if not self.fingerprint_repo.find_all_by_hash(hash_val):
            return IdentifyResult(
                status=IdentifyStatus.NO_MATCH, message="hash is not indexed"
            )
        return IdentifyResult(
            status=IdentifyStatus.NOT_IMPLEMENTED,
            message="candidate ranking is not implemented",
        )
