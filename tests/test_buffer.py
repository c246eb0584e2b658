import numpy as np
import pytest

from livepanel.infrastructure.audio.processing import OutboundChunk, RollingAudioBuffer


def _fill(buffer, total, slice_size):
    values = np.arange(total, dtype=np.int16)
    for start in range(0, total, slice_size):
        buffer.append(values[start:start + slice_size])
    return values


def test_full_chunks_come_out_in_order_and_remainder_is_kept():
    buffer = RollingAudioBuffer()
    values = _fill(buffer, 3 * 1000 + 437, 256)

    chunks = [buffer.drain(1000) for _ in range(3)]

    assert [c.size for c in chunks] == [1000, 1000, 1000]
    assert np.array_equal(np.concatenate(chunks), values[:3000])
    assert len(buffer) == 437


def test_short_remainder_is_sent_as_is_then_buffer_is_empty():
    buffer = RollingAudioBuffer()
    values = _fill(buffer, 300, 128)

    remainder = buffer.drain(1000)

    assert np.array_equal(remainder, values)
    assert len(buffer) == 0
    assert buffer.drain(1000) is None


def test_empty_slices_are_ignored():
    buffer = RollingAudioBuffer()
    buffer.append(np.array([], dtype=np.int16))
    assert len(buffer) == 0
    assert buffer.drain(10) is None


def test_drain_rejects_non_positive_chunk_size():
    with pytest.raises(ValueError):
        RollingAudioBuffer().drain(0)


def test_clear_discards_everything():
    buffer = RollingAudioBuffer()
    _fill(buffer, 500, 100)
    buffer.clear()
    assert len(buffer) == 0


def test_outbound_chunk_wire_encoding():
    chunk = OutboundChunk(sequence=3, samples=np.array([0, 1, -2], dtype=np.int16), sample_rate=16000)
    assert chunk.sample_count == 3
    assert chunk.duration_seconds == pytest.approx(3 / 16000)
    assert chunk.to_bytes() == b"\x00\x00\x01\x00\xfe\xff"
