"""Tests for playback settings and option merging."""

from dataclasses import asdict, replace

import pytest

from omxplayer_controller.domain.playback.settings import (
    PROGRESS_INTERVAL_MS,
    AudioOutput,
    PlaybackSettings,
    build_settings,
)


class TestBuildSettings:
    """Tests for build_settings."""

    def test_defaults(self):
        settings = build_settings()
        assert settings == PlaybackSettings()
        assert settings.audio_output is AudioOutput.HDMI
        assert settings.test_mode_only is False
        assert settings.progress_interval_ms == PROGRESS_INTERVAL_MS

    def test_loop_override_only_changes_loop(self):
        """Overrides win key by key; everything else keeps its default."""
        settings = build_settings({"loop": True})

        expected = asdict(PlaybackSettings())
        expected["loop"] = True
        assert asdict(settings) == expected

    def test_several_overrides(self):
        settings = build_settings(
            {"layer": 3, "dbus_id": "org.mpris.MediaPlayer2.omxplayer3", "no_background_color": True}
        )
        assert settings.layer == 3
        assert settings.dbus_id == "org.mpris.MediaPlayer2.omxplayer3"
        assert settings.no_background_color is True

    def test_audio_output_accepts_string(self):
        settings = build_settings({"audio_output": "both"})
        assert settings.audio_output is AudioOutput.BOTH

    def test_invalid_audio_output(self):
        with pytest.raises(ValueError, match="Invalid audio_output"):
            build_settings({"audio_output": "spdif"})

    def test_unknown_option(self):
        with pytest.raises(ValueError, match="Unknown playback options"):
            build_settings({"volume": 50})

    @pytest.mark.parametrize("key", ["test_mode_only", "progress_interval_ms"])
    def test_runtime_settings_cannot_be_overridden(self, key):
        with pytest.raises(ValueError, match="cannot be overridden"):
            build_settings({key: 1})

    def test_empty_dbus_id_rejected(self):
        with pytest.raises(ValueError, match="dbus_id"):
            build_settings({"dbus_id": ""})

    @pytest.mark.parametrize("dbus_id", ["my player", "omxplayer"])
    def test_invalid_bus_name_rejected(self, dbus_id):
        with pytest.raises(ValueError, match="dbus_id"):
            build_settings({"dbus_id": dbus_id})

    def test_background_color_optional_when_disabled(self):
        settings = build_settings({"background_color": "", "no_background_color": True})
        assert settings.no_background_color is True

        with pytest.raises(ValueError, match="background_color"):
            build_settings({"background_color": ""})


class TestPlaybackSettings:
    """Tests for PlaybackSettings itself."""

    def test_frozen(self):
        settings = PlaybackSettings()
        with pytest.raises(AttributeError):
            settings.loop = True  # type: ignore[misc]

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError, match="progress_interval_ms"):
            replace(PlaybackSettings(), progress_interval_ms=0).validate()
