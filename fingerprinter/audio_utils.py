import functools

import librosa
import numpy as np
from scipy import signal

from . import wav
from .base import AudioProcessorInterface
from .config import AudioConfig
from .errors import FingerprinterError, StageError
from .logging_config import setup_logger
from .models import AudioData, ProcessedAudio, SampleBuffer, Spectrogram

logger = setup_logger(__name__)


def stage(name):
    """Report failures inside a processing stage as StageError(name)."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except FingerprinterError:
                raise
            except Exception as e:
                logger.error(f"✗ Stage '{name}' failed: {e}")
                raise StageError(name, e) from e

        return wrapper

    return decorator


class AudioProcessor(AudioProcessorInterface):
    """
    WAV upload -> 16 kHz mono normalized signal -> magnitude spectrogram.

    Every stage returns its input object untouched when there is nothing to
    do, and a new SampleBuffer otherwise.
    """

    def __init__(self, config=None):
        self.config = config or AudioConfig()

    def validate_file(self, raw):
        return wav.validate_file(raw, max_file_size=self.config.max_file_size)

    def read_wav_properties(self, raw):
        header = self.validate_file(raw)
        return wav.read_wav_properties(raw, header)

    def decode(self, raw):
        return wav.decode(raw, max_file_size=self.config.max_file_size)

    @stage("mixdown")
    def convert_to_mono(self, buffer):
        """
        Average all channels into one, truncating toward zero.

        Args:
            buffer: SampleBuffer with any channel count

        Returns:
            mono: the same buffer when already mono, else a new one
        """
        if buffer.channels == 1:
            return buffer

        total = buffer.samples.astype(np.int64).sum(axis=1)
        # floor division rounds toward -inf; divide magnitudes to truncate
        mono = np.sign(total) * (np.abs(total) // buffer.channels)

        logger.debug(f"Mixed {buffer.channels} channels down to mono")
        return SampleBuffer(
            samples=mono.astype(buffer.samples.dtype).reshape(-1, 1),
            sample_rate=buffer.sample_rate,
            bits_per_sample=buffer.bits_per_sample,
        )

    @stage("resample")
    def resample(self, buffer, target_sample_rate=None):
        """
        Convert to the analysis sample rate with a windowed-sinc resampler.

        Args:
            buffer: SampleBuffer (mixed down first if it is not mono)
            target_sample_rate: Defaults to AudioConfig.target_sample_rate

        Returns:
            resampled: the same buffer when the rate already matches
        """
        target = target_sample_rate
        if target is None:
            target = self.config.target_sample_rate
        if target <= 0:
            raise ValueError(f"target sample rate must be positive, got {target}")
        if buffer.sample_rate == target:
            return buffer

        mono = self.convert_to_mono(buffer)
        full_scale = mono.full_scale

        y = mono.samples[:, 0].astype(np.float64)
        if len(y):
            resampled = librosa.resample(
                y, orig_sr=mono.sample_rate, target_sr=target, res_type="soxr_hq"
            )
        else:
            resampled = y

        samples = np.clip(np.rint(resampled), -full_scale, full_scale - 1)

        logger.debug(
            f"Resampled {mono.sample_rate} Hz -> {target} Hz "
            f"({mono.num_frames} -> {len(samples)} frames)"
        )
        return SampleBuffer(
            samples=samples.astype(mono.samples.dtype).reshape(-1, 1),
            sample_rate=target,
            bits_per_sample=mono.bits_per_sample,
        )

    @stage("normalize")
    def normalize(self, buffer):
        """
        Peak-scale toward target_peak_ratio of full scale.

        Silence, and audio whose scale factor is already within
        scale_tolerance of 1, are returned unchanged.
        """
        if buffer.num_frames == 0:
            return buffer

        peak = int(np.abs(buffer.samples.astype(np.int64)).max())
        if peak == 0:
            return buffer

        full_scale = buffer.full_scale
        scale = self.config.target_peak_ratio * full_scale / peak

        tolerance = self.config.scale_tolerance
        if 1.0 - tolerance <= scale <= 1.0 + tolerance:
            return buffer

        scaled = np.trunc(buffer.samples * scale)
        scaled = np.clip(scaled, -full_scale, full_scale - 1)

        logger.debug(f"Normalized peak {peak} with scale {scale:.4f}")
        return SampleBuffer(
            samples=scaled.astype(buffer.samples.dtype),
            sample_rate=buffer.sample_rate,
            bits_per_sample=buffer.bits_per_sample,
        )

    @stage("spectrogram")
    def spectrogram(self, buffer, window_size=None, hop_size=None):
        """
        Magnitude STFT with a symmetric Hann window.

        Frames that would run past the end of the signal are dropped, not
        zero-padded. Only bins [0, window_size/2) are kept. Any window size
        works; numpy's FFT is mixed radix.

        Args:
            buffer: SampleBuffer, usually mono and normalized
            window_size: Samples per frame
            hop_size: Samples between frame starts

        Returns:
            spec: Spectrogram
        """
        if window_size is None:
            window_size = self.config.window_size
        if hop_size is None:
            hop_size = self.config.hop_size
        if window_size < 2:
            raise ValueError(f"window size must be at least 2, got {window_size}")
        if hop_size < 1:
            raise ValueError(f"hop size must be positive, got {hop_size}")

        samples = buffer.samples.mean(axis=1)
        samples /= buffer.full_scale
        num_bins = window_size // 2

        if len(samples) >= window_size:
            num_frames = (len(samples) - window_size) // hop_size + 1
        else:
            num_frames = 0

        magnitudes = np.empty((num_frames, num_bins))
        if num_frames:
            window = signal.get_window("hann", window_size, fftbins=False)
            frames = np.lib.stride_tricks.sliding_window_view(samples, window_size)
            frames = frames[::hop_size][:num_frames]

            # one batch of windowed frames in memory at a time
            batch = self.config.stft_batch_frames
            for start in range(0, num_frames, batch):
                spectrum = np.fft.rfft(frames[start : start + batch] * window, axis=1)
                magnitudes[start : start + batch] = np.abs(spectrum[:, :num_bins])

        frequency_bins = np.arange(num_bins) * buffer.sample_rate / window_size
        time_frames = np.arange(num_frames) * hop_size / buffer.sample_rate

        logger.info(
            f"✓ Spectrogram generated: {num_frames} frames × {num_bins} bins "
            f"(window={window_size}, hop={hop_size})"
        )
        return Spectrogram(
            frames=magnitudes,
            frequency_bins=frequency_bins,
            time_frames=time_frames,
            sample_rate=buffer.sample_rate,
        )

    def process(self, raw):
        """
        Complete pipeline: decode → mono → resample → normalize → spectrogram

        Args:
            raw: WAV bytes

        Returns:
            data: AudioData
        """
        logger.info(f"\n{'='*60}")
        logger.info(f"Processing upload ({len(raw)} bytes)")
        logger.info(f"{'='*60}")

        logger.info("\n[1/5] Decoding WAV...")
        metadata, buffer = self.decode(raw)

        logger.info("[2/5] Converting to mono...")
        mono = self.convert_to_mono(buffer)

        logger.info(f"[3/5] Resampling to {self.config.target_sample_rate} Hz...")
        resampled = self.resample(mono, self.config.target_sample_rate)

        logger.info("[4/5] Normalizing...")
        normalized = self.normalize(resampled)

        logger.info("[5/5] Generating spectrogram...")
        spec = self.spectrogram(
            normalized, self.config.window_size, self.config.hop_size
        )

        audio = ProcessedAudio(
            buffer=normalized, original_bits_per_sample=metadata.bits_per_sample
        )
        logger.info(
            f"✓ Processed {metadata.duration:.2f}s of audio into "
            f"{spec.num_frames} frames"
        )
        return AudioData(metadata=metadata, audio=audio, spectrogram=spec)
