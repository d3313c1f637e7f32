"""WAV container and chunked base64 tests."""

import base64
import struct

import pytest

from storystudio.services.audio_codec import (
    WAV_HEADER_SIZE,
    b64decode_chunked,
    b64encode_chunked,
    encode_wav,
    parse_wav,
    to_data_url,
)


def test_01_header_layout_for_three_samples():
    wav = encode_wav([0, 1000, -1000], sample_rate=24000)

    assert len(wav) == WAV_HEADER_SIZE + 6
    assert wav[0:4] == b"RIFF"
    assert struct.unpack("<I", wav[4:8])[0] == 36 + 6
    assert wav[8:16] == b"WAVEfmt "
    fmt_size, audio_format, channels, rate, byte_rate, block_align, bits = struct.unpack(
        "<IHHIIHH", wav[16:36]
    )
    assert (fmt_size, audio_format, channels) == (16, 1, 1)
    assert rate == 24000
    assert byte_rate == 48000
    assert (block_align, bits) == (2, 16)
    assert wav[36:40] == b"data"
    assert struct.unpack("<I", wav[40:44])[0] == 6
    assert wav[44:] == struct.pack("<hhh", 0, 1000, -1000)


def test_02_bytes_and_samples_encode_identically():
    samples = [0, 1, -1, 32767, -32768]
    raw = struct.pack("<5h", *samples)
    assert encode_wav(raw, 16000) == encode_wav(samples, 16000)


def test_03_parse_recovers_rate_and_payload():
    pcm = struct.pack("<4h", 10, -20, 30, -40)
    info = parse_wav(encode_wav(pcm, sample_rate=22050))

    assert info.sample_rate == 22050
    assert info.byte_rate == 44100
    assert info.num_channels == 1
    assert info.bits_per_sample == 16
    assert info.pcm == pcm


def test_04_empty_pcm_is_header_only():
    wav = encode_wav(b"")
    assert len(wav) == WAV_HEADER_SIZE
    assert parse_wav(wav).pcm == b""


def test_05_rejects_odd_length_and_bad_rate():
    with pytest.raises(ValueError):
        encode_wav(b"\x00\x01\x02")
    with pytest.raises(ValueError):
        encode_wav(b"", sample_rate=0)
    with pytest.raises(ValueError):
        parse_wav(b"RIFF")


def test_06_chunked_base64_matches_single_pass():
    payload = bytes(range(256)) * 97  # not a multiple of the chunk size
    encoded = b64encode_chunked(payload, chunk_size=300)

    assert encoded == base64.b64encode(payload).decode("ascii")
    assert b64decode_chunked(encoded, chunk_size=400) == payload


def test_07_decode_accepts_data_url_and_whitespace():
    url = to_data_url(b"hello world", "image/png")
    assert url.startswith("data:image/png;base64,")
    assert b64decode_chunked(url) == b"hello world"
    assert b64decode_chunked("aGVs\nbG8=") == b"hello"


def test_08_chunk_sizes_must_align():
    with pytest.raises(ValueError):
        b64encode_chunked(b"abc", chunk_size=4)
    with pytest.raises(ValueError):
        b64decode_chunked("YWJj", chunk_size=3)


def test_09_parse_rejects_non_wav_payload():
    with pytest.raises(ValueError, match="Not a PCM RIFF/WAVE stream"):
        parse_wav(b"OggS" + bytes(60))
