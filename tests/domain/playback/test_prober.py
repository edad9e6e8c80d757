"""Tests for control readiness probing."""

import asyncio

import pytest
from fakes import FakeRemote

from omxplayer_controller.domain.playback.exceptions import ControlTimeoutError
from omxplayer_controller.domain.playback.prober import ProbeResult, wait_for_control

DBUS_ID = "org.mpris.MediaPlayer2.omxplayer"


def test_gives_up_after_max_attempts_plus_one():
    remote = FakeRemote(status_failures=None)

    with pytest.raises(ControlTimeoutError) as exc_info:
        asyncio.run(wait_for_control(remote, DBUS_ID, interval_ms=0, max_attempts=5))

    assert exc_info.value.attempts == 6
    assert remote.status_calls == 6
    assert exc_info.value.last_error is not None


@pytest.mark.parametrize("succeed_on", [1, 3, 5])
def test_resolves_with_attempt_count(succeed_on):
    """Success on attempt K stops probing with attempts == K."""
    remote = FakeRemote(status_failures=succeed_on - 1)

    result = asyncio.run(wait_for_control(remote, DBUS_ID, interval_ms=0, max_attempts=5))

    assert result == ProbeResult(result="Playing", attempts=succeed_on)
    assert remote.status_calls == succeed_on


def test_uses_module_defaults(fast_probe, monkeypatch):
    from omxplayer_controller.domain.playback import settings

    monkeypatch.setattr(settings, "CONTROL_CHECK_MAX_ATTEMPTS", 2)
    remote = FakeRemote(status_failures=None)

    with pytest.raises(ControlTimeoutError) as exc_info:
        asyncio.run(wait_for_control(remote, DBUS_ID))

    assert exc_info.value.attempts == 3


def test_queries_the_configured_channel():
    remote = FakeRemote()
    asyncio.run(wait_for_control(remote, "org.mpris.MediaPlayer2.omxplayer7", interval_ms=0))
    assert remote.calls == [("PlaybackStatus", "org.mpris.MediaPlayer2.omxplayer7")]


def test_slow_queries_do_not_stretch_the_period():
    """Attempts start one period apart even when each query takes a full period."""
    started = []

    class SlowRemote(FakeRemote):
        async def get_play_status(self, dbus_id):
            started.append(asyncio.get_running_loop().time())
            await asyncio.sleep(0.1)
            return await super().get_play_status(dbus_id)

    remote = SlowRemote(status_failures=None)

    with pytest.raises(ControlTimeoutError):
        asyncio.run(wait_for_control(remote, DBUS_ID, interval_ms=100, max_attempts=3))

    gaps = [later - earlier for earlier, later in zip(started, started[1:])]
    assert len(gaps) == 3
    # Sleeping a full period after each query would space attempts 0.2s apart
    assert max(gaps) < 0.17
