"""Landmark audio fingerprinting for PCM WAV uploads."""

from .audio_utils import AudioProcessor
from .config import AppConfig, AudioConfig, DatabaseConfig, HashConfig
from .errors import (
    DecodeError,
    FingerprinterError,
    RepositoryError,
    StageError,
    StorageError,
    ValidationError,
)
from .fingerprint import FingerprintGenerator, fingerprint_audio
from .models import AudioMetadata, Fingerprint, LandmarkPair, Peak, Spectrogram

__all__ = [
    "AppConfig",
    "AudioConfig",
    "AudioMetadata",
    "AudioProcessor",
    "DatabaseConfig",
    "DecodeError",
    "Fingerprint",
    "FingerprintGenerator",
    "FingerprinterError",
    "HashConfig",
    "LandmarkPair",
    "Peak",
    "RepositoryError",
    "Spectrogram",
    "StageError",
    "StorageError",
    "ValidationError",
    "fingerprint_audio",
]
