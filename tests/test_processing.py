import numpy as np
import pytest
from scipy.signal import resample_poly

from livepanel.infrastructure.audio.processing import (
    StreamResampler, deinterleave, float_to_pcm16, pcm16_to_bytes, stereo_to_mono,
)


def test_pcm16_conversion_hits_both_ends_of_the_range():
    out = float_to_pcm16(np.array([0.0, 1.0, -1.0], dtype=np.float32))
    assert out.dtype == np.int16
    assert out.tolist() == [0, 32767, -32768]


def test_pcm16_conversion_clamps_and_rounds_half_up():
    samples = np.array([0.5, -0.5, 2.0, -3.0, np.nan], dtype=np.float64)
    assert float_to_pcm16(samples).tolist() == [16384, -16384, 32767, -32768, 0]


def test_pcm16_conversion_is_deterministic_and_in_range():
    rng = np.random.default_rng(7)
    samples = rng.uniform(-1.5, 1.5, size=10_000).astype(np.float32)
    first = float_to_pcm16(samples)
    second = float_to_pcm16(samples)
    assert np.array_equal(first, second)
    assert first.min() >= -32768
    assert first.max() <= 32767


def test_pcm16_bytes_are_little_endian_without_header():
    assert pcm16_to_bytes(np.array([1, -1, 256], dtype=np.int16)) == b"\x01\x00\xff\xff\x00\x01"


def test_interleaved_stereo_is_averaged_to_mono():
    frames = deinterleave(np.array([1.0, 2.0, 3.0, 4.0], dtype=np.float32), 2)
    assert frames.shape == (2, 2)
    assert stereo_to_mono(frames).tolist() == [1.5, 3.5]


def test_mono_passthrough():
    samples = np.arange(5, dtype=np.float32)
    assert deinterleave(samples, 1).tolist() == samples.tolist()
    assert stereo_to_mono(samples) is samples


@pytest.mark.parametrize("source_rate,target_rate,blocks", [
    (48000, 16000, 10),
    (44100, 16000, 7),
    (8000, 16000, 9),
])
def test_block_resampling_matches_whole_signal(source_rate, target_rate, blocks):
    signal = np.random.default_rng(0).standard_normal(source_rate // 10)
    resampler = StreamResampler(source_rate, target_rate)

    streamed = np.concatenate([resampler.process(block) for block in np.array_split(signal, blocks)])

    factor = np.gcd(source_rate, target_rate)
    expected = resample_poly(signal, target_rate // factor, source_rate // factor)
    assert streamed.dtype == np.float32
    assert streamed.size > 0.95 * expected.size
    np.testing.assert_allclose(streamed, expected[:streamed.size], atol=1e-5)


def test_resampler_passes_through_matching_rates():
    resampler = StreamResampler(16000, 16000)
    block = np.linspace(-1, 1, 480, dtype=np.float32)
    assert resampler.process(block).tolist() == block.tolist()


def test_short_blocks_are_held_until_enough_input_arrives():
    resampler = StreamResampler(48000, 16000)
    assert resampler.process(np.zeros(12, dtype=np.float32)).size == 0
    assert resampler.process(np.zeros(480, dtype=np.float32)).size > 0
