"""Tests for the progress sampler."""

import asyncio

import pytest
from fakes import FakeRemote, wait_until

from omxplayer_controller.domain.playback.exceptions import CommandError
from omxplayer_controller.domain.playback.sampler import ProgressSample, ProgressSampler
from omxplayer_controller.domain.playback.triggers import PositionTrigger

DBUS_ID = "org.mpris.MediaPlayer2.omxplayer"


def make_sampler(remote, triggers=None, interval_ms=1000):
    progress: list[ProgressSample] = []
    errors: list[Exception] = []
    sampler = ProgressSampler(
        remote=remote,
        dbus_id=DBUS_ID,
        interval_ms=interval_ms,
        triggers=triggers if triggers is not None else [],
        on_progress=progress.append,
        on_error=errors.append,
    )
    return sampler, progress, errors


class TestTick:
    """Tests for a single sample."""

    def test_progress_ratio(self):
        remote = FakeRemote(positions=[5000], duration=10000)
        sampler, progress, errors = make_sampler(remote)

        asyncio.run(sampler.tick())

        assert progress == [ProgressSample(position=5000, duration=10000, progress=0.5)]
        assert errors == []

    def test_zero_duration_reports_zero_progress(self):
        remote = FakeRemote(positions=[0], duration=0)
        sampler, progress, _ = make_sampler(remote)

        asyncio.run(sampler.tick())

        assert progress[0].progress == 0.0

    def test_queries_position_before_duration(self):
        remote = FakeRemote()
        sampler, _, _ = make_sampler(remote)

        asyncio.run(sampler.tick())

        assert remote.names() == ["Position", "Duration"]

    def test_duration_not_queried_when_position_fails(self):
        remote = FakeRemote(failing={"Position"})
        sampler, progress, errors = make_sampler(remote)

        asyncio.run(sampler.tick())

        assert remote.names() == ["Position"]
        assert progress == []
        assert len(errors) == 1
        assert isinstance(errors[0], CommandError)

    def test_duration_failure_reports_error(self):
        remote = FakeRemote(failing={"Duration"})
        sampler, progress, errors = make_sampler(remote)

        asyncio.run(sampler.tick())

        assert progress == []
        assert [e.command for e in errors] == ["Duration"]

    def test_disabled_tick_is_noop(self):
        remote = FakeRemote()
        sampler, progress, _ = make_sampler(remote)
        sampler.stop()

        assert asyncio.run(sampler.tick()) is None
        assert remote.calls == []
        assert progress == []

    def test_error_suppressed_when_stopped_mid_sample(self):
        """An in-flight sample that fails after stop() reports nothing."""
        remote = FakeRemote(failing={"Duration"})
        sampler, progress, errors = make_sampler(remote)
        remote.before_reply = lambda name: sampler.stop() if name == "Duration" else None

        asyncio.run(sampler.tick())

        assert errors == []
        assert progress == []

    def test_success_discarded_when_stopped_mid_sample(self):
        """No trailing progress or trigger once stop() has been requested."""
        fired = []
        remote = FakeRemote(positions=[3_000_000])
        sampler, progress, errors = make_sampler(
            remote, triggers=[PositionTrigger(position_ms=1000, handler=fired.append)]
        )
        remote.before_reply = lambda name: sampler.stop() if name == "Duration" else None

        assert asyncio.run(sampler.tick()) is None
        assert progress == []
        assert fired == []
        assert errors == []


class TestTriggers:
    """Trigger evaluation through the sampler."""

    def test_trigger_scenario(self):
        """Fires on 2500, re-arms on 1800, fires again on 2600."""
        fired = []
        positions_ms = [0, 1000, 2500, 1800, 2600]
        remote = FakeRemote(positions=[ms * 1000 for ms in positions_ms])
        triggers = [PositionTrigger(position_ms=2000, handler=fired.append)]
        sampler, progress, _ = make_sampler(remote, triggers=triggers)

        async def run():
            for _ in positions_ms:
                await sampler.tick()

        asyncio.run(run())

        assert fired == [2500, 2600]
        assert [p.position for p in progress] == [ms * 1000 for ms in positions_ms]

    def test_triggers_run_before_progress(self):
        order = []
        remote = FakeRemote(positions=[5_000_000])
        triggers = [PositionTrigger(position_ms=1000, handler=lambda _: order.append("trigger"))]
        sampler = ProgressSampler(
            remote, DBUS_ID, 1000, triggers,
            on_progress=lambda _: order.append("progress"),
            on_error=lambda _: order.append("error"),
        )

        asyncio.run(sampler.tick())

        assert order == ["trigger", "progress"]

    def test_failing_handler_reports_error_and_still_emits_progress(self):
        def explode(_):
            raise RuntimeError("handler bug")

        remote = FakeRemote(positions=[5_000_000])
        sampler, progress, errors = make_sampler(
            remote, triggers=[PositionTrigger(position_ms=1000, handler=explode)]
        )

        asyncio.run(sampler.tick())

        assert len(progress) == 1
        assert isinstance(errors[0], RuntimeError)

    def test_triggers_registered_later_are_seen(self):
        """The sampler shares the caller's trigger list."""
        fired = []
        triggers: list[PositionTrigger] = []
        remote = FakeRemote(positions=[5_000_000])
        sampler, _, _ = make_sampler(remote, triggers=triggers)

        triggers.append(PositionTrigger(position_ms=1000, handler=fired.append))
        asyncio.run(sampler.tick())

        assert fired == [5000]


class TestPeriodicSampling:
    """Tests for start/stop scheduling."""

    def test_samples_periodically_until_stopped(self):
        remote = FakeRemote()
        sampler, progress, _ = make_sampler(remote, interval_ms=5)

        async def run():
            sampler.start()
            await wait_until(lambda: len(progress) >= 3)
            sampler.stop()
            count = len(progress)
            await asyncio.sleep(0.05)
            return count

        count = asyncio.run(run())
        assert len(progress) == count

    def test_skips_tick_while_sample_in_flight(self):
        """A slow channel never has two samples outstanding."""
        remote = FakeRemote()
        gate = None
        concurrent = []
        active = 0

        original = remote.get_float

        async def slow_get_float(dbus_id, prop):
            nonlocal active
            active += 1
            concurrent.append(active)
            await gate.wait()
            active -= 1
            return await original(dbus_id, prop)

        remote.get_float = slow_get_float
        sampler, progress, _ = make_sampler(remote, interval_ms=1)

        async def run():
            nonlocal gate
            gate = asyncio.Event()
            sampler.start()
            await asyncio.sleep(0.05)
            gate.set()
            await wait_until(lambda: len(progress) >= 1)
            sampler.cancel()

        asyncio.run(run())
        assert max(concurrent) == 1

    def test_unexpected_failure_reported(self):
        remote = FakeRemote()

        async def broken_get_float(dbus_id, prop):
            raise TypeError("malformed bus name")

        remote.get_float = broken_get_float
        sampler, progress, errors = make_sampler(remote, interval_ms=5)

        async def run():
            sampler.start()
            await wait_until(lambda: bool(errors))
            sampler.cancel()

        asyncio.run(run())

        assert isinstance(errors[0], TypeError)
        assert progress == []

    @pytest.mark.parametrize("method", ["stop", "cancel"])
    def test_stop_is_idempotent(self, method):
        sampler, _, _ = make_sampler(FakeRemote())
        getattr(sampler, method)()
        getattr(sampler, method)()
        assert sampler.disabled is True
