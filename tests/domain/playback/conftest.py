"""Shared fixtures for playback tests.

No player binary or D-Bus is needed: see fakes.py.
"""

import pytest

from omxplayer_controller.domain.playback import settings as playback_settings


@pytest.fixture
def fast_probe(monkeypatch) -> None:
    """Probe without waiting between attempts."""
    monkeypatch.setattr(playback_settings, "CONTROL_CHECK_INTERVAL_MS", 0)


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00")
    return path
