import sys
from collections import defaultdict

import numpy as np

from .audio_utils import AudioProcessor
from .base import FingerprintGeneratorInterface
from .config import HashConfig
from .logging_config import setup_logger
from .models import Fingerprint, LandmarkPair, Peak

# setting up logger
logger = setup_logger(__name__)


class FingerprintGenerator(FingerprintGeneratorInterface):
    """
    Landmark fingerprinting over a magnitude spectrogram.

    Peaks are picked per frame in three fixed frequency bands, each peak is
    paired with peaks in the next few frames, and every pair is packed into
    a 32-bit hash.
    """

    def __init__(self, config=None):
        self.config = config or HashConfig()

    def bands(self, num_bins):
        return [
            (0, self.config.low_band_max),
            (self.config.low_band_max, self.config.mid_band_max),
            (self.config.mid_band_max, num_bins),
        ]

    def find_peaks(self, spectrogram):
        """
        Pick at most one peak per band per frame.

        The threshold for a frame is its mean magnitude times peak_threshold;
        a band's loudest bin only counts if it is strictly above it.

        Args:
            spectrogram: Spectrogram

        Returns:
            peaks: List of Peak, in frame order, low band first
        """
        peaks = []
        if spectrogram.num_frames == 0:
            return peaks

        num_bins = spectrogram.num_bins
        bands = self.bands(num_bins)

        for frame_idx, frame in enumerate(spectrogram.frames):
            mean = frame.mean()
            if mean <= 0:
                continue
            threshold = mean * self.config.peak_threshold

            for start, end in bands:
                end = min(end, num_bins)
                if start >= end:
                    continue

                band = frame[start:end]
                local_idx = int(np.argmax(band))
                magnitude = float(band[local_idx])

                if magnitude > threshold:
                    peaks.append(
                        Peak(
                            time_frame=frame_idx,
                            freq_bin=start + local_idx,
                            magnitude=magnitude,
                        )
                    )

        logger.info(f"✓ Peaks found: {len(peaks)} over {spectrogram.num_frames} frames")
        return peaks

    def create_landmark_pairs(self, peaks):
        """
        Pair every anchor with peaks in the following target_zone frames.

        Targets are visited frame by frame and, within a frame, in the order
        the peaks were found. An anchor stops pairing after
        max_pairs_per_peak pairs.

        Args:
            peaks: List of Peak

        Returns:
            pairs: List of LandmarkPair
        """
        peaks_by_frame = defaultdict(list)
        for peak in peaks:
            peaks_by_frame[peak.time_frame].append(peak)

        target_zone = self.config.target_zone
        max_pairs = self.config.max_pairs_per_peak

        pairs = []
        for anchor in peaks:
            pair_count = 0

            for t in range(anchor.time_frame + 1, anchor.time_frame + target_zone + 1):
                for target in peaks_by_frame.get(t, []):
                    if pair_count >= max_pairs:
                        break
                    pairs.append(
                        LandmarkPair(
                            freq1=anchor.freq_bin,
                            freq2=target.freq_bin,
                            time_delta=target.time_frame - anchor.time_frame,
                            anchor_time=anchor.time_frame,
                        )
                    )
                    pair_count += 1

                if pair_count >= max_pairs:
                    break

        logger.info(f"✓ Landmark pairs: {len(pairs)} from {len(peaks)} peaks")
        return pairs

    def hash_pair(self, pair):
        """
        Pack a landmark pair into 32 bits.

        Layout (MSB → LSB):
            [12 bits freq1][10 bits freq2][10 bits time_delta]

        Out-of-range fields are clamped, so distinct pairs can collide.
        """
        cfg = self.config
        freq1 = _clamp(pair.freq1, (1 << cfg.freq1_bits) - 1)
        freq2 = _clamp(pair.freq2, (1 << cfg.freq2_bits) - 1)
        time_delta = _clamp(pair.time_delta, (1 << cfg.delta_bits) - 1)

        return (
            (freq1 << (cfg.freq2_bits + cfg.delta_bits))
            | (freq2 << cfg.delta_bits)
            | time_delta
        )

    def generate_fingerprints(self, spectrogram):
        peaks = self.find_peaks(spectrogram)
        if not peaks:
            # silence or no qualifying peaks
            return []

        pairs = self.create_landmark_pairs(peaks)
        if not pairs:
            return []

        fingerprints = [
            Fingerprint(hash=self.hash_pair(pair), time_offset=pair.anchor_time)
            for pair in pairs
        ]

        logger.info(f"✓ Generated {len(fingerprints)} fingerprints")
        return fingerprints


def _clamp(value, upper):
    return max(0, min(int(value), upper))


def analyze_hash_distribution(fingerprints):
    """
    Analyze the hash distribution to check for good entropy.

    Args:
        fingerprints: List of Fingerprint

    Returns:
        stats: Dict with totals, uniqueness and collision counts
    """
    hash_counts = defaultdict(int)
    for fp in fingerprints:
        hash_counts[fp.hash] += 1

    total_hashes = len(fingerprints)
    unique_hashes = len(hash_counts)
    duplicates = {h: c for h, c in hash_counts.items() if c > 1}

    stats = {
        "total_hashes": total_hashes,
        "unique_hashes": unique_hashes,
        "uniqueness": unique_hashes / total_hashes if total_hashes else 0.0,
        "collisions": len(duplicates),
        "max_collision": max(duplicates.values()) if duplicates else 0,
    }

    logger.info(f"\n{'='*60}")
    logger.info(f"Hash Distribution Analysis")
    logger.info(f"{'='*60}")
    logger.info(f"Total hashes:    {total_hashes}")
    logger.info(f"Unique hashes:   {unique_hashes}")
    logger.info(f"Uniqueness:      {stats['uniqueness']*100:.1f}%")
    logger.info(f"Collisions:      {stats['collisions']}")
    if duplicates:
        logger.info(
            f"Max collision:   {stats['max_collision']} "
            f"(same hash appears {stats['max_collision']} times)"
        )

    if total_hashes:
        offsets = [fp.time_offset for fp in fingerprints]
        logger.info(f"Frame coverage:  {min(offsets)} - {max(offsets)}")
    logger.info(f"{'='*60}\n")

    return stats


def fingerprint_audio(raw, audio_processor=None, generator=None):
    """
    Complete pipeline: WAV bytes → spectrogram → fingerprints

    Args:
        raw: WAV bytes
        audio_processor: AudioProcessorInterface (defaults to AudioProcessor)
        generator: FingerprintGeneratorInterface (defaults to FingerprintGenerator)

    Returns:
        fingerprints: List of Fingerprint
        data: AudioData the fingerprints were computed from
    """
    audio_processor = audio_processor or AudioProcessor()
    generator = generator or FingerprintGenerator()

    data = audio_processor.process(raw)
    fingerprints = generator.generate_fingerprints(data.spectrogram)

    logger.info(f"\n{'='*60}")
    logger.info(f"✓ Audio fingerprinting complete!")
    logger.info(f"  Duration: {data.metadata.duration:.2f}s")
    logger.info(f"  Frames: {data.spectrogram.num_frames}")
    logger.info(f"  Fingerprints: {len(fingerprints)}")
    logger.info(f"{'='*60}\n")

    return fingerprints, data


if __name__ == "__main__":
    """
    Fingerprint a WAV file: python -m fingerprinter.fingerprint song.wav
    """

    AUDIO_FILE = sys.argv[1] if len(sys.argv) > 1 else "./data/db_tracks/sample1.wav"

    with open(AUDIO_FILE, "rb") as f:
        fingerprints, _ = fingerprint_audio(f.read())

    analyze_hash_distribution(fingerprints)
