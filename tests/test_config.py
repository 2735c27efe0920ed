"""Tests for host configuration loading."""

from pathlib import Path

import pytest
import yaml

from dotsboxes.config import (
    ConfigError,
    HostConfig,
    apply_env_overrides,
    load_config,
    parse_config,
)

EXAMPLE = Path(__file__).parent.parent / "dotsboxes.yaml.example"


def _write(tmp_path, data) -> Path:
    path = tmp_path / "dotsboxes.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    def test_no_file(self):
        config = load_config()
        assert isinstance(config, HostConfig)
        assert config.server.port == 1234
        assert config.server.max_players == 0
        assert config.server.name == "Server"
        assert (config.grid.width, config.grid.height) == (8, 8)
        assert not config.directory.enabled
        assert config.directory.port == 4321
        assert not config.telemetry.enabled

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path).server.port == 1234


class TestExample:
    def test_example_loads(self):
        config = load_config(EXAMPLE)
        assert config.server.name == "Friday Night Boxes"
        assert config.server.max_players == 4
        assert config.grid.width == 6
        assert config.telemetry.enabled
        assert config.telemetry.output_dir == Path("telemetry")


class TestValidation:
    def test_partial_sections(self, tmp_path):
        config = load_config(_write(tmp_path, {"grid": {"width": 5}}))
        assert (config.grid.width, config.grid.height) == (5, 8)

    def test_grid_too_small(self, tmp_path):
        with pytest.raises(ConfigError, match="grid.width"):
            load_config(_write(tmp_path, {"grid": {"width": 1}}))

    def test_negative_max_players(self):
        with pytest.raises(ConfigError, match="server.max_players"):
            parse_config({"server": {"max_players": -1}})

    def test_single_seat_rejected(self):
        with pytest.raises(ConfigError, match="max_players"):
            parse_config({"server": {"max_players": 1}})

    def test_unknown_key(self):
        with pytest.raises(ConfigError):
            parse_config({"servre": {}})

    def test_wrong_type(self):
        with pytest.raises(ConfigError, match="server.port"):
            parse_config({"server": {"port": "1234"}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read config"):
            load_config(tmp_path / "nope.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)


class TestEnvOverrides:
    def test_port_and_name(self):
        config = apply_env_overrides(
            load_config(),
            {"DOTSBOXES_PORT": "4000", "DOTSBOXES_HOST_NAME": "Den"},
        )
        assert config.server.port == 4000
        assert config.server.name == "Den"

    def test_bad_port(self):
        with pytest.raises(ConfigError, match="DOTSBOXES_PORT"):
            apply_env_overrides(load_config(), {"DOTSBOXES_PORT": "lots"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("DOTSBOXES_PORT", "4242")
        assert apply_env_overrides(load_config()).server.port == 4242
