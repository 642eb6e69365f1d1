"""
Shared fixtures: WAV uploads built in memory with scipy.
"""

import io

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest
from scipy.io import wavfile

from fingerprinter.audio_utils import AudioProcessor
from fingerprinter.database import (
    InMemoryFingerprintRepository,
    InMemorySongRepository,
)
from fingerprinter.fingerprint import FingerprintGenerator
from fingerprinter.music_service import MusicService
from fingerprinter.storage import InMemoryStorage


def wav_bytes(samples, sample_rate):
    """Serialize an int16/uint8/int32/float32 array with scipy's writer."""
    buf = io.BytesIO()
    wavfile.write(buf, sample_rate, samples)
    return buf.getvalue()


def sine(freq, sample_rate, duration=1.0, amplitude=10000):
    t = np.arange(int(sample_rate * duration)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.int16)


@pytest.fixture
def sine_wav():
    """1 second, 16 kHz, mono, 440 Hz at amplitude 10000."""
    return wav_bytes(sine(440, 16000), 16000)


@pytest.fixture
def silent_wav():
    """2 seconds of digital silence, 16 kHz mono."""
    return wav_bytes(np.zeros(32000, dtype=np.int16), 16000)


@pytest.fixture
def stereo_wav():
    """1 second, 44.1 kHz stereo, 440 Hz left and 880 Hz right."""
    left = sine(440, 44100)
    right = sine(880, 44100)
    return wav_bytes(np.column_stack([left, right]), 44100)


@pytest.fixture
def processor():
    return AudioProcessor()


@pytest.fixture
def generator():
    return FingerprintGenerator()


@pytest.fixture
def music_service(processor, generator):
    fingerprint_repo = InMemoryFingerprintRepository()
    return MusicService(
        storage=InMemoryStorage(),
        song_repo=InMemorySongRepository(fingerprint_repo),
        fingerprint_repo=fingerprint_repo,
        audio_processor=processor,
        fingerprint_generator=generator,
    )
