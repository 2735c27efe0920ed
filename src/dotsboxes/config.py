"""Host configuration loader."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

import jsonschema
import yaml

from dotsboxes.net.directory import DEFAULT_DIRECTORY, DEFAULT_DIRECTORY_PORT
from dotsboxes.net.transport import DEFAULT_PORT

_SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
_schema: dict | None = None

PORT_ENV = "DOTSBOXES_PORT"
HOST_NAME_ENV = "DOTSBOXES_HOST_NAME"


class ConfigError(ValueError):
    """The configuration file is unreadable or invalid."""


@dataclass
class ServerConfig:
    name: str = "Server"
    bind: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    max_players: int = 0  # 0 = unlimited


@dataclass
class GridConfig:
    width: int = 8
    height: int = 8


@dataclass
class DirectoryConfig:
    enabled: bool = False
    host: str = DEFAULT_DIRECTORY
    port: int = DEFAULT_DIRECTORY_PORT


@dataclass
class TelemetryConfig:
    enabled: bool = False
    output_dir: Path = Path("telemetry")


@dataclass
class HostConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)


def _config_schema() -> dict:
    global _schema
    if _schema is None:
        with open(_SCHEMA_PATH) as f:
            _schema = json.load(f)
    return _schema


def parse_config(raw: dict | None) -> HostConfig:
    """Validate a raw mapping and build a HostConfig from it."""
    raw = raw or {}
    try:
        jsonschema.validate(raw, _config_schema())
    except jsonschema.ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path) or "config"
        raise ConfigError(f"{where}: {e.message}") from e

    s = raw.get("server", {})
    g = raw.get("grid", {})
    d = raw.get("directory", {})
    t = raw.get("telemetry", {})

    config = HostConfig(
        server=ServerConfig(
            name=s.get("name", "Server"),
            bind=s.get("bind", "0.0.0.0"),
            port=s.get("port", DEFAULT_PORT),
            max_players=s.get("max_players", 0),
        ),
        grid=GridConfig(
            width=g.get("width", 8),
            height=g.get("height", 8),
        ),
        directory=DirectoryConfig(
            enabled=d.get("enabled", False),
            host=d.get("host", DEFAULT_DIRECTORY),
            port=d.get("port", DEFAULT_DIRECTORY_PORT),
        ),
        telemetry=TelemetryConfig(
            enabled=t.get("enabled", False),
            output_dir=Path(t.get("output_dir", "telemetry")),
        ),
    )
    # A cap of 1 would seat only the host.
    if config.server.max_players == 1:
        raise ConfigError("server.max_players: must be 0 (unlimited) or at least 2")
    return config


def apply_env_overrides(config: HostConfig, environ: dict | None = None) -> HostConfig:
    """Let ``DOTSBOXES_PORT`` and ``DOTSBOXES_HOST_NAME`` override the file."""
    environ = os.environ if environ is None else environ
    port = environ.get(PORT_ENV)
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            raise ConfigError(f"{PORT_ENV}: not a port number: {port!r}") from None
    name = environ.get(HOST_NAME_ENV)
    if name:
        config.server.name = name
    return config


def load_config(path: Path | None = None) -> HostConfig:
    """Load host config from a YAML file (defaults when ``path`` is None)."""
    if path is None:
        return parse_config({})
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if raw is not None and not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return parse_config(raw)
