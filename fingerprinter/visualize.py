
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

from .config import HashConfig
from .logging_config import setup_logger

logger = setup_logger(__name__)


def _to_db(spectrogram):
    # Add small epsilon to avoid log(0)
    return 20 * np.log10(spectrogram.frames.T + 1e-10)


def _finish(fig, save_path, show):
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        logger.info(f"✓ Visualization saved to: {save_path}")

    if show:
        plt.show()
    else:
        plt.close(fig)


def visualize_constellation_map(spectrogram, peaks, samples=None, save_path=None, show=False):
    """
    Visualize the constellation map (peaks on spectrogram).
    This should look like a "star field".

    Args:
        spectrogram: Spectrogram
        peaks: List of Peak
        samples: Optional 1-D signal the spectrogram was computed from
        save_path: Optional path to save figure
        show: Whether to open an interactive window

    Returns:
        fig: The matplotlib figure
    """
    n_plots = 3 if samples is not None else 2
    fig, axes = plt.subplots(n_plots, 1, figsize=(14, 4 * n_plots))
    axes = list(axes)

    times = spectrogram.time_frames
    freqs = spectrogram.frequency_bins

    # Plot 1: Waveform
    if samples is not None:
        ax = axes.pop(0)
        time_audio = np.arange(len(samples)) / spectrogram.sample_rate
        ax.plot(time_audio, samples, linewidth=0.5, color="steelblue")
        ax.set_xlabel("Time (s)")
        ax.set_ylabel("Amplitude")
        ax.set_title("Audio Waveform")
        ax.grid(True, alpha=0.3)

    # Plot 2: Full Spectrogram
    ax_spec, ax_peaks = axes
    if spectrogram.num_frames:
        spec_db = _to_db(spectrogram)
        im = ax_spec.pcolormesh(times, freqs, spec_db, shading="auto", cmap="viridis")
        fig.colorbar(im, ax=ax_spec, label="Magnitude (dB)")

        # Plot 3: Constellation Map, spectrogram faintly in background
        ax_peaks.pcolormesh(
            times, freqs, spec_db, shading="auto", cmap="gray", alpha=0.3
        )
    ax_spec.set_ylabel("Frequency (Hz)")
    ax_spec.set_xlabel("Time (s)")
    ax_spec.set_title("Spectrogram (Log Scale)")

    if peaks:
        peak_times = [times[p.time_frame] for p in peaks]
        peak_freqs = [freqs[p.freq_bin] for p in peaks]
        ax_peaks.scatter(
            peak_times, peak_freqs, c="red", s=5, alpha=0.8, label=f"{len(peaks)} peaks"
        )
        ax_peaks.legend()

    ax_peaks.set_ylabel("Frequency (Hz)")
    ax_peaks.set_xlabel("Time (s)")
    ax_peaks.set_title('Constellation Map ("Star Field")')

    _finish(fig, save_path, show)
    return fig


def visualize_landmark_pairs(
    spectrogram, peaks, pairs, num_examples=5, config=None, save_path=None, show=False
):
    """
    Visualize how hashes are created from peak pairs.
    Shows anchor points and their target zones.

    Args:
        spectrogram: Spectrogram the peaks came from
        peaks: List of Peak
        pairs: List of LandmarkPair
        num_examples: Number of anchor points to highlight
        config: HashConfig used for pairing (for the target zone width)
        save_path: Optional path to save figure
        show: Whether to open an interactive window

    Returns:
        fig: The matplotlib figure
    """
    config = config or HashConfig()
    times = spectrogram.time_frames
    freqs = spectrogram.frequency_bins

    fig, ax = plt.subplots(figsize=(14, 6))

    # Plot all peaks as gray dots
    if peaks:
        ax.scatter(
            [times[p.time_frame] for p in peaks],
            [freqs[p.freq_bin] for p in peaks],
            c="gray",
            s=20,
            alpha=0.5,
            label="All peaks",
        )

    # Pick evenly spaced anchors that actually produced pairs
    anchors = sorted({(pair.anchor_time, pair.freq1) for pair in pairs})
    step = max(1, len(anchors) // max(1, num_examples))
    examples = anchors[::step][:num_examples]

    colors = plt.cm.tab10(np.linspace(0, 1, max(1, len(examples))))
    hop = times[1] - times[0] if len(times) > 1 else 0.0

    for idx, ((anchor_frame, anchor_bin), color) in enumerate(zip(examples, colors)):
        anchor_t = times[anchor_frame]
        anchor_f = freqs[anchor_bin]

        ax.scatter(
            [anchor_t],
            [anchor_f],
            c=[color],
            s=200,
            marker="*",
            edgecolors="black",
            linewidths=1.5,
            label=f"Anchor {idx + 1}",
            zorder=5,
        )

        # Target zone spans the next target_zone frames over all frequencies
        rect = Rectangle(
            (anchor_t + hop, freqs[0]),
            hop * (config.target_zone - 1),
            freqs[-1] - freqs[0],
            linewidth=2,
            edgecolor=color,
            facecolor="none",
            linestyle="--",
            alpha=0.7,
        )
        ax.add_patch(rect)

        targets = [
            pair
            for pair in pairs
            if pair.anchor_time == anchor_frame and pair.freq1 == anchor_bin
        ]
        for pair in targets:
            target_t = times[min(anchor_frame + pair.time_delta, len(times) - 1)]
            target_f = freqs[pair.freq2]
            ax.plot(
                [anchor_t, target_t],
                [anchor_f, target_f],
                color=color,
                alpha=0.3,
                linewidth=1,
                zorder=3,
            )
            ax.scatter(
                [target_t],
                [target_f],
                c=[color],
                s=100,
                marker="o",
                edgecolors="black",
                linewidths=1,
                alpha=0.7,
                zorder=4,
            )

    ax.set_xlabel("Time (s)", fontsize=12)
    ax.set_ylabel("Frequency (Hz)", fontsize=12)
    ax.set_title(
        "Landmark Pair Generation\n"
        + "(Stars = Anchors, Lines = Hash Pairs, Dashed boxes = Target Zones)",
        fontsize=13,
    )
    if peaks:
        ax.legend(loc="upper right", fontsize=9)
    ax.grid(True, alpha=0.3)

    _finish(fig, save_path, show)
    return fig
