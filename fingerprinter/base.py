"""
Capability interfaces for the fingerprinting pipeline.

The HTTP layer and the music service depend only on these, so either side
can be swapped for an in-memory fake in tests.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import (
    AudioData,
    AudioMetadata,
    Fingerprint,
    SampleBuffer,
    Spectrogram,
)


class AudioProcessorInterface(ABC):
    """Decode a WAV upload and turn it into a magnitude spectrogram."""

    @abstractmethod
    def validate_file(self, raw: bytes):
        """
        Reject empty, oversized or non-PCM input.

        Raises:
            ValidationError: empty or oversized input
            DecodeError: malformed container or unsupported encoding
        """
        pass

    @abstractmethod
    def read_wav_properties(self, raw: bytes) -> AudioMetadata:
        """Return the container metadata without decoding samples."""
        pass

    @abstractmethod
    def convert_to_mono(self, buffer: SampleBuffer) -> SampleBuffer:
        pass

    @abstractmethod
    def resample(
        self, buffer: SampleBuffer, target_sample_rate: Optional[int] = None
    ) -> SampleBuffer:
        pass

    @abstractmethod
    def normalize(self, buffer: SampleBuffer) -> SampleBuffer:
        pass

    @abstractmethod
    def spectrogram(
        self,
        buffer: SampleBuffer,
        window_size: Optional[int] = None,
        hop_size: Optional[int] = None,
    ) -> Spectrogram:
        pass

    @abstractmethod
    def process(self, raw: bytes) -> AudioData:
        """
        Run decode, mixdown, resample, normalize and spectrogram in order.

        Args:
            raw: WAV bytes

        Returns:
            AudioData with the container metadata, the processed signal and
            its spectrogram
        """
        pass


class FingerprintGeneratorInterface(ABC):
    """Turn a spectrogram into landmark fingerprints."""

    @abstractmethod
    def generate_fingerprints(self, spectrogram: Spectrogram) -> List[Fingerprint]:
        """
        Args:
            spectrogram: Magnitude spectrogram

        Returns:
            Fingerprints with song_id unset; empty for silence
        """
        pass
