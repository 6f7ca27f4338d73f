"""Tests for the playback clock."""

import asyncio

from spotty.player.clock import PlaybackClock


class TestElapsed:
    """Elapsed-time arithmetic against a fake time source."""

    def test_start_at_offset(self, fake_time):
        clock = PlaybackClock(180_000, time_func=fake_time)
        clock.start(42_000)
        assert clock.elapsed_ms() == 42_000

        fake_time.advance(1.5)
        assert clock.elapsed_ms() == 43_500
        assert clock.running

    def test_pause_then_resume_is_continuous(self, fake_time):
        """Should pick up exactly where pause left off."""
        clock = PlaybackClock(180_000, time_func=fake_time)
        clock.start()
        fake_time.advance(30)
        offset = clock.pause()
        assert offset == 30_000
        assert not clock.running

        fake_time.advance(100)
        assert clock.elapsed_ms() == 30_000

        clock.start(offset)
        assert clock.elapsed_ms() == 30_000
        fake_time.advance(2)
        assert clock.elapsed_ms() == 32_000

    def test_seek_forward_and_back_restores(self, fake_time):
        clock = PlaybackClock(180_000, time_func=fake_time)
        clock.start(60_000)
        assert clock.seek(10_000) == 70_000
        assert clock.seek(-10_000) == 60_000
        assert clock.elapsed_ms() == 60_000

    def test_seek_is_clamped(self, fake_time):
        clock = PlaybackClock(20_000, time_func=fake_time)
        clock.start(5_000)
        assert clock.seek(-10_000) == 0
        assert clock.seek(60_000) == 20_000

    def test_seek_while_stopped_moves_offset(self, fake_time):
        clock = PlaybackClock(180_000, time_func=fake_time)
        assert clock.seek(10_000) == 10_000
        assert not clock.running
        clock.start(clock.elapsed_ms())
        assert clock.elapsed_ms() == 10_000

    def test_finished_only_past_duration(self, fake_time):
        clock = PlaybackClock(10_000, time_func=fake_time)
        clock.start()
        fake_time.advance(10)
        assert not clock.is_finished
        fake_time.advance(0.5)
        assert clock.is_finished
        assert clock.elapsed_ms() == 10_000

    def test_snapshot_and_restore(self, fake_time):
        clock = PlaybackClock(180_000, time_func=fake_time)
        clock.start(1_000)
        state = clock.snapshot()

        clock.reset(90_000)
        assert clock.duration_ms == 90_000
        assert clock.elapsed_ms() == 0

        clock.restore(state)
        assert clock.duration_ms == 180_000
        assert clock.elapsed_ms() == 1_000
        assert clock.running


class TestTicking:
    """The periodic tick task."""

    def test_ticks_while_running_and_stops_on_pause(self, fake_time):
        async def scenario():
            ticks = []
            clock = PlaybackClock(
                180_000, on_tick=ticks.append, interval=0.01, time_func=fake_time
            )
            clock.start(5_000)
            assert clock.ticking
            await asyncio.sleep(0.05)
            clock.pause()
            assert not clock.ticking
            count = len(ticks)
            await asyncio.sleep(0.03)
            return ticks, count

        ticks, count = asyncio.run(scenario())
        assert count > 0
        assert len(ticks) == count
        assert set(ticks) == {5_000}

    def test_no_task_without_callback(self, fake_time):
        async def scenario():
            clock = PlaybackClock(180_000, time_func=fake_time)
            clock.start()
            return clock.ticking

        assert asyncio.run(scenario()) is False

    def test_aclose_cancels_task(self, fake_time):
        async def scenario():
            clock = PlaybackClock(180_000, on_tick=lambda _: None, interval=10, time_func=fake_time)
            clock.start()
            await clock.aclose()
            return clock.ticking

        assert asyncio.run(scenario()) is False
