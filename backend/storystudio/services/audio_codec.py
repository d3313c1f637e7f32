"""WAV container encoding for raw speech PCM and chunked base64 helpers.

The TTS model returns headerless signed 16-bit little-endian mono PCM.
encode_wav() prepends the canonical 44-byte RIFF/WAVE header so the result
plays in any standard audio player without further framing.

Usage:
    from storystudio.services.audio_codec import encode_wav, b64encode_chunked

    wav = encode_wav(pcm_bytes, sample_rate=24000)
    audio_data = b64encode_chunked(wav)
"""

import base64
import io
import sys
import wave
from array import array
from dataclasses import dataclass
from typing import Sequence, Union

WAV_HEADER_SIZE = 44
NUM_CHANNELS = 1
BITS_PER_SAMPLE = 16
DEFAULT_SAMPLE_RATE = 24000

# Multiple of 3 so every encoded chunk is padding-free except the last.
B64_CHUNK_SIZE = 8192 * 3

PcmInput = Union[bytes, bytearray, memoryview, Sequence[int]]


@dataclass(frozen=True)
class WavInfo:
    """Header fields and sample payload recovered from a WAV byte stream."""

    num_channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    pcm: bytes


def _pcm_bytes(pcm: PcmInput) -> bytes:
    """Normalise raw bytes or int samples to little-endian 16-bit bytes."""
    if isinstance(pcm, (bytes, bytearray, memoryview)):
        data = bytes(pcm)
        if len(data) % 2:
            raise ValueError(f"PCM byte length must be even, got {len(data)}")
        return data
    samples = array("h", pcm)
    if samples.itemsize != 2:
        raise ValueError("Platform short is not 16 bits")
    if sys.byteorder == "big":
        samples.byteswap()
    return samples.tobytes()


def encode_wav(pcm: PcmInput, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Wrap mono 16-bit PCM in a 44-byte RIFF/WAVE header.

    Args:
        pcm: Raw little-endian sample bytes, or a sequence of int samples
            in the signed 16-bit range.
        sample_rate: Samples per second declared in the header.

    Returns:
        Complete WAV file bytes: header immediately followed by the samples.

    Raises:
        ValueError: If the byte payload has odd length or sample_rate <= 0.
    """
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    data = _pcm_bytes(pcm)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(NUM_CHANNELS)
        wf.setsampwidth(BITS_PER_SAMPLE // 8)
        wf.setframerate(sample_rate)
        wf.writeframes(data)
    return buf.getvalue()


def parse_wav(data: bytes) -> WavInfo:
    """Read back a WAV stream produced by encode_wav().

    Raises:
        ValueError: If the stream is shorter than the header or is not a
            PCM RIFF/WAVE file.
    """
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError("Data shorter than WAV header")
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            pcm = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as e:
        raise ValueError(f"Not a PCM RIFF/WAVE stream: {e}") from e
    block_align = channels * sample_width
    return WavInfo(
        num_channels=channels,
        sample_rate=sample_rate,
        byte_rate=sample_rate * block_align,
        block_align=block_align,
        bits_per_sample=sample_width * 8,
        pcm=pcm,
    )


def b64encode_chunked(data: bytes, chunk_size: int = B64_CHUNK_SIZE) -> str:
    """Base64-encode a large payload in fixed-size chunks.

    chunk_size must be a multiple of 3 so the concatenated output equals a
    single-pass encoding.
    """
    if chunk_size <= 0 or chunk_size % 3:
        raise ValueError("chunk_size must be a positive multiple of 3")
    view = memoryview(data)
    parts = [
        base64.b64encode(view[i:i + chunk_size]).decode("ascii")
        for i in range(0, len(view), chunk_size)
    ]
    return "".join(parts)


def b64decode_chunked(text: str, chunk_size: int = B64_CHUNK_SIZE // 3 * 4) -> bytes:
    """Decode base64 text (optionally a data URL) in fixed-size chunks.

    chunk_size must be a multiple of 4. Whitespace is ignored.
    """
    if chunk_size <= 0 or chunk_size % 4:
        raise ValueError("chunk_size must be a positive multiple of 4")
    if text.startswith("data:") and "," in text:
        text = text.split(",", 1)[1]
    text = "".join(text.split())
    out = bytearray()
    for i in range(0, len(text), chunk_size):
        out += base64.b64decode(text[i:i + chunk_size], validate=True)
    return bytes(out)


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{b64encode_chunked(data)}"
