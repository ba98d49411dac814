"""Tests for the mapsprites.config module."""

from unittest.mock import MagicMock, patch

from mapsprites import config


class TestGet:
    """Tests for config.get."""

    @patch.object(config, "settings")
    def test_defaults(self, mock_settings):
        mock_settings.get = MagicMock(side_effect=lambda key, default=None: default)

        assert config.get("tile_size") == 1024
        assert config.get("output_dir") == "./output"
        assert config.get("default_variants") == "128"

    @patch.object(config, "settings")
    def test_settings_override_defaults(self, mock_settings):
        mock_settings.get = MagicMock(return_value=256)

        assert config.get("tile_size") == 256
        mock_settings.get.assert_called_once_with("tile_size", 1024)

    @patch.object(config, "settings")
    def test_unknown_key(self, mock_settings):
        mock_settings.get = MagicMock(side_effect=lambda key, default=None: default)

        assert config.get("no_such_key") is None

    def test_all_defaults_present(self):
        for key in ["output_dir", "cache_dir", "base_url", "tile_size", "max_side",
                    "workers", "timeout", "default_variants"]:
            assert key in config.DEFAULTS


class TestChangeEnv:
    """Tests for config.change_env."""

    @patch.object(config, "settings")
    def test_switches_and_reloads(self, mock_settings):
        config.change_env("production")

        mock_settings.setenv.assert_called_once_with("production")
        mock_settings.reload.assert_called_once()
