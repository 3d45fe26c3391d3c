"""
Sampling Tests
==============

Tests for grayscale reduction, bounded waits, and the frame sampler.
"""

import asyncio

import numpy as np
import pytest

from clipguard.errors import InvalidMatrixError, SeekError
from clipguard.sampling.grayscale import average_matrices, rgb_to_gray_matrix, round_half_up
from clipguard.sampling.sampler import FrameSampler
from clipguard.sampling.waits import wait_first, wait_until

from conftest import FakeFrameSource, solid_frame, textured_frame


class TestGrayscale:
    """Tests for luma conversion and averaging."""

    def test_luma_weights(self):
        rgb = np.zeros((2, 2, 3), dtype=np.uint8)
        rgb[0, 0] = (255, 0, 0)
        rgb[0, 1] = (0, 255, 0)
        rgb[1, 0] = (0, 0, 255)
        rgb[1, 1] = (255, 255, 255)
        gray = rgb_to_gray_matrix(rgb, 2)
        assert gray.tolist() == [[76, 150], [29, 255]]
        assert gray.dtype == np.int32

    def test_alpha_channel_ignored(self):
        rgba = np.full((4, 4, 4), 200, dtype=np.uint8)
        rgba[..., 3] = 0
        assert (rgb_to_gray_matrix(rgba, 4) == 200).all()

    def test_wrong_shape_rejected(self):
        with pytest.raises(InvalidMatrixError):
            rgb_to_gray_matrix(np.zeros((4, 5, 3)), 4)

    def test_round_half_up(self):
        assert round_half_up(np.array([0.5, 1.5, 2.49, 2.5])).tolist() == [1, 2, 2, 3]

    def test_average_rounds_half_up(self):
        a = np.array([[1, 10], [0, 255]])
        b = np.array([[2, 10], [1, 254]])
        assert average_matrices([a, b]).tolist() == [[2, 10], [1, 255]]

    def test_average_single_matrix_is_identity(self):
        m = np.arange(9).reshape(3, 3)
        assert (average_matrices([m]) == m).all()

    def test_average_empty_rejected(self):
        with pytest.raises(ValueError):
            average_matrices([])

    def test_average_shape_mismatch(self):
        with pytest.raises(InvalidMatrixError):
            average_matrices([np.zeros((2, 2)), np.zeros((3, 3))])


class TestWaits:
    """Tests for wait_first and wait_until."""

    def test_event_already_set(self):
        event = asyncio.Event()
        event.set()
        assert asyncio.run(wait_first(event, timeout=5.0))

    def test_event_fires_before_timeout(self):
        async def scenario():
            event = asyncio.Event()
            asyncio.get_running_loop().call_later(0.01, event.set)
            return await wait_first(event, timeout=5.0)

        assert asyncio.run(scenario())

    def test_timeout_wins(self):
        assert not asyncio.run(wait_first(asyncio.Event(), timeout=0.01))

    def test_no_event_waits_full_timeout(self):
        assert not asyncio.run(wait_first(None, timeout=0.01))

    def test_wait_until(self):
        calls = []

        def predicate():
            calls.append(1)
            return len(calls) >= 3

        assert asyncio.run(wait_until(predicate, timeout=1.0, interval=0.001))
        assert not asyncio.run(wait_until(lambda: False, timeout=0.02, interval=0.005))


class TestFrameSampler:
    """Tests for FrameSampler."""

    def test_single_frame(self, sampler):
        source = FakeFrameSource([textured_frame()])
        matrix = asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert matrix.shape == (32, 32)
        assert (matrix == rgb_to_gray_matrix(textured_frame(), 32)).all()

    def test_averaging_reduces_noise(self, sampler):
        """Verify the average of noisy frames is closer to the clean frame."""
        clean = np.full((32, 32, 3), 128, dtype=np.uint8)
        rng = np.random.default_rng(0)
        noisy = [
            np.clip(clean.astype(int) + rng.integers(-20, 21, size=clean.shape), 0, 255).astype(np.uint8)
            for _ in range(3)
        ]
        source = FakeFrameSource(noisy)
        averaged = asyncio.run(sampler.sample(source, frame_count=3, frame_delay=0))

        single_error = np.abs(rgb_to_gray_matrix(noisy[0], 32) - 128).mean()
        averaged_error = np.abs(averaged - 128).mean()
        assert averaged_error < single_error
        assert source.draw_count == 3

    def test_failed_frames_are_skipped(self, sampler):
        source = FakeFrameSource([None, textured_frame(), None])
        matrix = asyncio.run(sampler.sample(source, frame_count=3, frame_delay=0))
        assert (matrix == rgb_to_gray_matrix(textured_frame(), 32)).all()

    def test_no_frames_returns_none(self, sampler):
        source = FakeFrameSource([None])
        assert asyncio.run(sampler.sample(source, frame_count=3, frame_delay=0)) is None

    def test_muted_during_capture_and_restored(self, sampler):
        source = FakeFrameSource([textured_frame()])
        asyncio.run(sampler.sample(source, frame_count=2, frame_delay=0))
        assert source.muted_during_draw == [True, True]
        assert source.muted is False

    def test_muted_restored_after_failure(self, sampler):
        source = FakeFrameSource([None])
        source.muted = True
        asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert source.muted is True

    def test_not_ready_returns_none(self, sampler):
        source = FakeFrameSource([textured_frame()], ready_state=1)
        assert asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0)) is None
        assert source.draw_count == 0

    def test_no_dimensions_returns_none(self, sampler):
        source = FakeFrameSource([textured_frame()], width=0)
        assert asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0)) is None

    def test_long_clip_seeks_past_poster(self, sampler):
        source = FakeFrameSource([textured_frame()], duration=30.0)
        asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert source.seeks == [2.0]

    def test_proportional_seek(self, sampler):
        source = FakeFrameSource([textured_frame()], duration=8.0)
        asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert source.seeks == [pytest.approx(0.8)]

    def test_no_seek_when_near_target(self, sampler):
        source = FakeFrameSource([textured_frame()], duration=30.0, current_time=1.8)
        asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert source.seeks == []

    def test_short_clip_nudge(self, sampler):
        source = FakeFrameSource([textured_frame()], duration=1.0)
        asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert source.seeks == [0.3]

    def test_unknown_duration_skips_seek(self, sampler):
        source = FakeFrameSource([textured_frame()], duration=float("nan"))
        asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert source.seeks == []

    def test_seek_failure_is_not_fatal(self, sampler):
        source = FakeFrameSource(
            [textured_frame()],
            duration=30.0,
            seek_error=SeekError("rejected"),
        )
        matrix = asyncio.run(sampler.sample(source, frame_count=1, frame_delay=0))
        assert matrix is not None
        assert source.seeks == [2.0]

    def test_invalid_frame_count(self, sampler):
        with pytest.raises(ValueError):
            asyncio.run(sampler.sample(FakeFrameSource([textured_frame()]), frame_count=0))

    def test_solid_frames_are_captured(self):
        """Verify solid frames still produce a matrix; triviality is the gate's call."""
        sampler = FrameSampler(sample_size=32, ready_timeout=0.05)
        matrix = asyncio.run(sampler.sample(FakeFrameSource([solid_frame(0)]), frame_count=1))
        assert (matrix == 0).all()

    def test_foreign_source_error_is_skipped(self, sampler):
        """Verify an error outside the capture hierarchy only loses that frame."""
        class TaintedFirstFrame(FakeFrameSource):
            async def draw(self, size):
                if self.draw_count == 0:
                    self.draw_count += 1
                    raise RuntimeError("SecurityError: tainted canvas")
                return await super().draw(size)

        source = TaintedFirstFrame([textured_frame()])
        matrix = asyncio.run(sampler.sample(source, frame_count=3, frame_delay=0))
        assert matrix is not None
        assert (matrix == rgb_to_gray_matrix(textured_frame(), 32)).all()
        assert source.draw_count == 3

    def test_frame_advance_cuts_delay_short(self, sampler):
        source = FakeFrameSource([textured_frame()], frame_interval=0.001)

        async def scenario():
            loop = asyncio.get_running_loop()
            started = loop.time()
            matrix = await asyncio.wait_for(
                sampler.sample(source, frame_count=3, frame_delay=5.0),
                timeout=1.0,
            )
            return matrix, loop.time() - started

        matrix, elapsed = asyncio.run(scenario())
        assert matrix is not None
        assert elapsed < 1.0
        assert source.frame_events == 2
        assert source.draw_count == 3
