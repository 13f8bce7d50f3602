"""Unit tests for option parsing and settings."""

import pytest

from subminer.core.config_manager import ConfigManager
from subminer.core.constants import DEFAULT_PORTS
from subminer.core.errors import ConfigurationError
from subminer.core.settings import ClientSettings, MediaSettings, ScriptOptions, parse_ports


class TestParsePorts:

    def test_comma_string(self):
        assert parse_ports("61777, 61778") == [61777, 61778]

    def test_native_list(self):
        assert parse_ports([61777]) == [61777]
        assert parse_ports(["61777", 61778]) == [61777, 61778]

    def test_invalid_entries_are_skipped(self):
        assert parse_ports("0, 61777, 70000, x, ,61778") == [61777, 61778]

    def test_boundaries(self):
        assert parse_ports([1, 65535]) == [1, 65535]

    def test_booleans_are_not_ports(self):
        assert parse_ports([True, 61777]) == [61777]

    def test_empty_result_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_ports("0, x")
        with pytest.raises(ConfigurationError):
            parse_ports("")


class TestScriptOptions:

    def test_defaults(self):
        options = ScriptOptions.from_mapping({})
        assert options.ports == list(DEFAULT_PORTS)
        assert options.auto_start is True
        assert options.mpv_pid is None
        assert options.host == "127.0.0.1"

    def test_from_mapping(self):
        options = ScriptOptions.from_mapping({
            "ports": "62000,62001",
            "auto_start": "no",
            "mpv_pid": "555",
        })
        assert options.ports == [62000, 62001]
        assert options.auto_start is False
        assert options.mpv_pid == 555

    def test_non_positive_pid_is_ignored(self):
        assert ScriptOptions.from_mapping({"mpv_pid": "0"}).mpv_pid is None
        assert ScriptOptions.from_mapping({"mpv_pid": "abc"}).mpv_pid is None

    @pytest.mark.asyncio
    async def test_load_from_file(self, tmp_path):
        path = tmp_path / "mpv-subtitleminer.conf"
        path.write_text("# options\nports=61790\nauto_start=yes\n", encoding="utf-8")

        options = await ScriptOptions.load(path)

        assert options.ports == [61790]
        assert options.auto_start is True

    @pytest.mark.asyncio
    async def test_load_missing_file_gives_defaults(self, tmp_path):
        options = await ScriptOptions.load(tmp_path / "missing.conf")
        assert options.ports == list(DEFAULT_PORTS)


class TestMediaSettings:

    def test_default_configs(self):
        media = MediaSettings()
        assert media.audio_offset_start == 0.25
        assert media.image_config() == {"format": "webp", "quality": 80, "is_animated": False}
        assert media.audio_config() == {"format": "mp3", "quality": 128}

    def test_advanced_args_override_format(self):
        media = MediaSettings(
            audio_advanced=True,
            audio_advanced_args=" -c:a libopus ",
            audio_advanced_extension="opus",
            audio_filters="loudnorm",
        )
        assert media.audio_config() == {
            "format": "opus",
            "quality": 128,
            "filters": "loudnorm",
            "advanced_args": "-c:a libopus",
        }

    def test_from_mapping(self):
        media = MediaSettings.from_mapping({"audio_offset_end": "0.5", "image_format": "jpg"})
        assert media.audio_offset_end == 0.5
        assert media.image_format == "jpg"
        assert media.audio_offset_start == 0.25

    def test_client_settings_validate_ports(self):
        settings = ClientSettings.create("61777,0")
        assert settings.ports == [61777]


class TestConfigManager:

    @pytest.mark.asyncio
    async def test_read_config_strips_comments_and_quotes(self, tmp_path):
        path = tmp_path / "opts.conf"
        path.write_text('a = 1 # trailing\nb="quoted"\n# c = 3\nd\n', encoding="utf-8")

        config = await ConfigManager().read_config_async(path)

        assert config == {"a": "1", "b": "quoted"}

    @pytest.mark.asyncio
    async def test_read_config_missing_file_is_empty(self, tmp_path):
        assert await ConfigManager().read_config_async(tmp_path / "missing.conf") == {}

    def test_find_first_keeps_raw_value(self, tmp_path):
        path = tmp_path / "mpv.conf"
        path.write_text("input-ipc-server=%5%/tmp/x  \ninput-ipc-server=/tmp/y\n", encoding="utf-8")

        assert ConfigManager().find_first(path, "input-ipc-server") == "%5%/tmp/x"

    def test_find_first_missing_file(self, tmp_path):
        assert ConfigManager().find_first(tmp_path / "missing", "key") is None

    def test_typed_getters(self):
        manager = ConfigManager()
        config = {"flag": "on", "count": "3", "ratio": "x"}
        assert manager.get_bool(config, "flag") is True
        assert manager.get_int(config, "count") == 3
        assert manager.get_float(config, "ratio", 1.5) == 1.5
        assert manager.get_str(config, "missing", "dflt") == "dflt"
