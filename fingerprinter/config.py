import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioConfig:
    """Configuration parameters for audio processing"""

    # Analysis rate every upload is converted to
    target_sample_rate: int = 16000

    # Spectrogram parameters
    window_size: int = 2048
    hop_size: int = 512

    # Frames windowed and transformed per FFT call
    stft_batch_frames: int = 1024

    # Upload limits
    max_file_size: int = 10 * 1024 * 1024

    # Normalization
    target_peak_ratio: float = 0.95
    scale_tolerance: float = 0.01


@dataclass(frozen=True)
class HashConfig:
    """Configuration for peak picking and hash generation"""

    # Frequency bands (bin indices): [0, low), [low, mid), [mid, num_bins)
    low_band_max: int = 64
    mid_band_max: int = 256

    # Adaptive threshold = frame mean * peak_threshold
    peak_threshold: float = 1.5

    # Target zone width in frames and fan-out per anchor
    target_zone: int = 5
    max_pairs_per_peak: int = 5

    # Hash packing
    freq1_bits: int = 12
    freq2_bits: int = 10
    delta_bits: int = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """Configuration for database and blob storage"""

    db_path: str = "./data/db/fingerprints.sqlite3"
    storage_path: str = "./data/storage"
    storage_prefix: str = "songs"


@dataclass(frozen=True)
class AppConfig:
    """Process-level settings, read once at startup"""

    environment: str = "dev"
    port: int = 5000
    log_level: str = "INFO"
    database: DatabaseConfig = DatabaseConfig()
    audio: AudioConfig = AudioConfig()
    hashing: HashConfig = HashConfig()

    @property
    def debug(self):
        return self.environment == "dev"

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ

        database = DatabaseConfig(
            db_path=env.get("DATABASE_PATH", DatabaseConfig.db_path),
            storage_path=env.get("STORAGE_PATH", DatabaseConfig.storage_path),
            storage_prefix=env.get("S3_BUCKET", DatabaseConfig.storage_prefix),
        )
        return cls(
            environment=env.get("ENVIRONMENT", "dev"),
            port=int(env.get("PORT", 5000)),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            database=database,
        )
