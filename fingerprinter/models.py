"""Data structures shared across the fingerprinting pipeline."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import numpy as np


@dataclass(frozen=True)
class AudioMetadata:
    """Format of the uploaded container, derived once per input buffer."""

    original_format: str
    channels: int
    sample_rate: int
    bits_per_sample: int
    duration: float
    file_size: int
    total_samples: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True, eq=False)
class SampleBuffer:
    """
    Integer PCM samples shaped (frames, channels).

    Stages never write into ``samples``; they hand back either this object or
    a new buffer.
    """

    samples: np.ndarray
    sample_rate: int
    bits_per_sample: int

    @property
    def channels(self) -> int:
        return self.samples.shape[1]

    @property
    def num_frames(self) -> int:
        return self.samples.shape[0]

    @property
    def full_scale(self) -> int:
        return 1 << (self.bits_per_sample - 1)

    @property
    def duration(self) -> float:
        return self.num_frames / float(self.sample_rate)


@dataclass(frozen=True, eq=False)
class Spectrogram:
    """Magnitude STFT: ``frames[t, k]`` is the magnitude of bin k in frame t."""

    frames: np.ndarray
    frequency_bins: np.ndarray
    time_frames: np.ndarray
    sample_rate: int

    @property
    def num_frames(self) -> int:
        return self.frames.shape[0]

    @property
    def num_bins(self) -> int:
        return self.frames.shape[1]


@dataclass(frozen=True)
class Peak:
    time_frame: int
    freq_bin: int
    magnitude: float


@dataclass(frozen=True)
class LandmarkPair:
    freq1: int
    freq2: int
    time_delta: int
    anchor_time: int


@dataclass
class Fingerprint:
    """A packed landmark hash; song_id is filled in by whoever persists it."""

    hash: int
    time_offset: int
    song_id: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "song_id": self.song_id,
            "hash": self.hash,
            "time_offset": self.time_offset,
        }


@dataclass(frozen=True, eq=False)
class ProcessedAudio:
    """The 16 kHz mono, normalized signal the spectrogram was computed from."""

    buffer: SampleBuffer
    original_bits_per_sample: int
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sample_rate(self) -> int:
        return self.buffer.sample_rate

    @property
    def num_samples(self) -> int:
        return self.buffer.num_frames

    @property
    def duration(self) -> float:
        return self.buffer.duration

    def to_dict(self) -> dict:
        return {
            "sample_rate": self.sample_rate,
            "duration": self.duration,
            "num_samples": self.num_samples,
            "original_bits_per_sample": self.original_bits_per_sample,
            "processed_at": self.processed_at.isoformat(),
        }


@dataclass(frozen=True, eq=False)
class AudioData:
    metadata: AudioMetadata
    audio: ProcessedAudio
    spectrogram: Spectrogram


@dataclass
class Song:
    id: str
    title: str
    artist: str
    s3_key: str
    created_at: Optional[datetime]
    album: str = ""
    year: int = 0
    fingerprint: bytes = b""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "year": self.year,
            "s3_key": self.s3_key,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class IdentifyStatus(str, Enum):
    NO_MATCH = "no_match"
    NOT_IMPLEMENTED = "not_implemented"


@dataclass
class IdentifyResult:
    status: IdentifyStatus
    songs: List[Song] = field(default_factory=list)
    message: str = ""


@dataclass
class UploadResult:
    song: Song
    metadata: AudioMetadata
    fingerprints: List[Fingerprint]

    @property
    def num_fingerprints(self) -> int:
        return len(self.fingerprints)
