"""
RIFF/WAVE container handling: validation, metadata, PCM decode and encode.

Only linear PCM (format tag 1) is accepted. The header is walked chunk by
chunk so the declared data length can be checked against what is actually
present in the buffer; sample data itself is read with scipy.
"""
import io
import struct
from collections import namedtuple

import numpy as np
from scipy.io import wavfile

from .config import AudioConfig
from .errors import DecodeError, ValidationError
from .logging_config import setup_logger
from .models import AudioMetadata, SampleBuffer

logger = setup_logger(__name__)

WAVE_FORMAT_PCM = 0x0001
SUPPORTED_BIT_DEPTHS = (8, 16, 24, 32)

WavHeader = namedtuple(
    "WavHeader",
    [
        "audio_format",
        "channels",
        "sample_rate",
        "byte_rate",
        "block_align",
        "bits_per_sample",
        "data_offset",
        "data_size",
    ],
)


def validate_file(raw, max_file_size=AudioConfig.max_file_size):
    """
    Reject empty or oversized input, then make sure the container is PCM WAV.

    Args:
        raw: Uploaded bytes
        max_file_size: Size ceiling in bytes

    Returns:
        header: Parsed WavHeader
    """
    if len(raw) == 0:
        raise ValidationError("empty file")
    if len(raw) > max_file_size:
        raise ValidationError(
            f"file is too large: {len(raw)} bytes (limit {max_file_size})"
        )
    return parse_header(raw)


def parse_header(raw):
    """Walk the RIFF chunks up to the start of the data chunk."""
    if len(raw) < 12:
        raise DecodeError("riff header", "file is too small")

    riff, _, wave = struct.unpack("<4sI4s", raw[:12])
    if riff != b"RIFF" or wave != b"WAVE":
        raise DecodeError("riff header", "not a RIFF/WAVE container")

    fmt = None
    pos = 12
    while pos + 8 <= len(raw):
        chunk_id, size = struct.unpack("<4sI", raw[pos : pos + 8])
        body = pos + 8

        if chunk_id == b"fmt ":
            if size < 16 or body + 16 > len(raw):
                raise DecodeError("fmt chunk", "truncated format chunk")
            fmt = struct.unpack("<HHIIHH", raw[body : body + 16])
        elif chunk_id == b"data":
            if fmt is None:
                raise DecodeError("fmt chunk", "data chunk precedes format chunk")
            header = WavHeader(*fmt, data_offset=body, data_size=size)
            _check_format(header)
            return header

        # chunks are word aligned
        pos = body + size + (size & 1)

    if fmt is None:
        raise DecodeError("fmt chunk", "missing format chunk")
    raise DecodeError("data chunk", "missing data chunk")


def _check_format(header):
    if header.audio_format != WAVE_FORMAT_PCM:
        raise DecodeError(
            "fmt chunk", f"unsupported audio format: {header.audio_format}"
        )
    if header.channels == 0:
        raise DecodeError("fmt chunk", "channel count is zero")
    if header.sample_rate == 0:
        raise DecodeError("fmt chunk", "sample rate is zero")
    if header.bits_per_sample not in SUPPORTED_BIT_DEPTHS:
        raise DecodeError(
            "fmt chunk", f"unsupported bit depth: {header.bits_per_sample}"
        )


def get_total_samples(raw, header=None):
    """Sample frames declared by the data chunk length."""
    header = header or parse_header(raw)
    bytes_per_frame = (header.bits_per_sample // 8) * header.channels
    return header.data_size // bytes_per_frame


def read_wav_properties(raw, header=None):
    """
    Derive metadata from the container header.

    Args:
        raw: WAV bytes
        header: Already parsed header, if the caller has one

    Returns:
        metadata: AudioMetadata
    """
    header = header or parse_header(raw)
    total_frames = get_total_samples(raw, header)

    bytes_per_frame = (header.bits_per_sample // 8) * header.channels
    available = max(0, len(raw) - header.data_offset)
    if header.data_size > available:
        logger.warning(
            f"Data chunk declares {header.data_size} bytes but only {available} "
            f"are present ({available // bytes_per_frame} of {total_frames} frames)"
        )

    return AudioMetadata(
        original_format="WAV",
        channels=header.channels,
        sample_rate=header.sample_rate,
        bits_per_sample=header.bits_per_sample,
        duration=total_frames / float(header.sample_rate),
        file_size=len(raw),
        total_samples=total_frames,
    )


def decode(raw, max_file_size=AudioConfig.max_file_size):
    """
    Validate and decode a PCM WAV upload.

    Args:
        raw: WAV bytes
        max_file_size: Size ceiling in bytes

    Returns:
        metadata: AudioMetadata for the container
        buffer: SampleBuffer with signed integer samples
    """
    header = validate_file(raw, max_file_size=max_file_size)
    metadata = read_wav_properties(raw, header)

    try:
        _, data = wavfile.read(io.BytesIO(_trim_to_whole_frames(raw, header)))
    except (ValueError, EOFError, struct.error) as e:
        raise DecodeError("samples", str(e)) from e

    samples = _to_signed(data, header.bits_per_sample)
    samples = samples.reshape(-1, header.channels)

    if samples.shape[0] != metadata.total_samples:
        logger.debug(
            f"Decoded {samples.shape[0]} frames, header declares {metadata.total_samples}"
        )

    logger.info(
        f"✓ Decoded WAV: {header.channels} ch, {header.sample_rate} Hz, "
        f"{header.bits_per_sample} bit, {metadata.duration:.2f}s"
    )

    buffer = SampleBuffer(
        samples=samples,
        sample_rate=header.sample_rate,
        bits_per_sample=header.bits_per_sample,
    )
    return metadata, buffer


def _trim_to_whole_frames(raw, header):
    """
    Cut a truncated data chunk back to its last complete frame and rewrite
    the RIFF and data sizes to match, so scipy reads what is present.
    """
    available = max(0, len(raw) - header.data_offset)
    if header.data_size <= available:
        return raw

    bytes_per_frame = (header.bits_per_sample // 8) * header.channels
    usable = available // bytes_per_frame * bytes_per_frame
    trimmed = bytearray(raw[: header.data_offset + usable])
    struct.pack_into("<I", trimmed, 4, len(trimmed) - 8)
    struct.pack_into("<I", trimmed, header.data_offset - 4, usable)
    return bytes(trimmed)


def _to_signed(data, bits_per_sample):
    # 8-bit PCM is unsigned; scipy returns wider odd depths left-justified
    if bits_per_sample == 8:
        return data.astype(np.int16) - 128
    shift = data.dtype.itemsize * 8 - bits_per_sample
    data = data.astype(np.int32)
    if shift:
        data = data >> shift
    return data


def encode(buffer):
    """
    Serialize a SampleBuffer as a canonical 44-byte-header PCM WAV.

    Args:
        buffer: SampleBuffer

    Returns:
        raw: WAV bytes
    """
    bits = buffer.bits_per_sample
    samples = np.asarray(buffer.samples, dtype=np.int64)

    if bits == 8:
        payload = (samples + 128).astype(np.uint8).tobytes()
    elif bits == 24:
        as_bytes = samples.astype("<i4").view(np.uint8).reshape(-1, 4)
        payload = as_bytes[:, :3].tobytes()
    else:
        payload = samples.astype(f"<i{bits // 8}").tobytes()

    pad = b"\x00" if len(payload) & 1 else b""
    block_align = buffer.channels * bits // 8
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + len(payload) + len(pad),
        b"WAVE",
        b"fmt ",
        16,
        WAVE_FORMAT_PCM,
        buffer.channels,
        buffer.sample_rate,
        buffer.sample_rate * block_align,
        block_align,
        bits,
        b"data",
        len(payload),
    )
    return header + payload + pad
