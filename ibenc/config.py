"""Configuration loading helpers for the iperf3 benchmark reporter."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "ibenc.yaml"
REMOTE_WRITE_FORMATS = ("protobuf", "text")

ENV_OVERRIDES = {
    "IBENC_PROMETHEUS_URL": ("prometheus", "url"),
    "IBENC_PROMETHEUS_USER": ("prometheus", "username"),
    "IBENC_PROMETHEUS_PASS": ("prometheus", "password"),
    "IBENC_SERVER": ("iperf3", "server"),
    "IBENC_LOCATION": ("metrics", "location"),
    "IBENC_ISP_NAME": ("metrics", "isp_name"),
    "IBENC_PACKAGE_NAME": ("metrics", "package_name"),
}


@dataclass
class PrometheusConfig:
    url: str = ""
    username: str = ""
    password: str = ""


@dataclass
class Iperf3Config:
    server: str = ""
    port: int = 5201
    duration: int = 10
    binary: str = "iperf3"
    max_attempts: int = 2


@dataclass
class MetricsConfig:
    location: str = ""
    isp_name: str = ""
    package_name: str = ""


@dataclass
class RemoteWriteConfig:
    format: str = "protobuf"
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    timeout_seconds: float = 30.0


@dataclass
class SchedulerConfig:
    enabled: bool = False
    interval_minutes: int = 60


@dataclass
class PathsConfig:
    logs_dir: Path = field(default_factory=lambda: Path("logs"))


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file_enabled: bool = True
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


@dataclass
class AppConfig:
    root_dir: Path
    prometheus: PrometheusConfig
    iperf3: Iperf3Config
    metrics: MetricsConfig
    remote_write: RemoteWriteConfig = field(default_factory=RemoteWriteConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        if not self.prometheus.url:
            raise ConfigError("prometheus.url is required")
        if not self.prometheus.username:
            raise ConfigError("prometheus.username is required")
        if not self.prometheus.password:
            raise ConfigError("prometheus.password is required")

        if not self.iperf3.server:
            raise ConfigError("iperf3.server is required")
        if self.iperf3.port <= 0 or self.iperf3.port > 65535:
            raise ConfigError("iperf3.port must be between 1 and 65535")
        if self.iperf3.duration <= 0:
            raise ConfigError("iperf3.duration must be greater than 0")
        if self.iperf3.max_attempts < 1:
            raise ConfigError("iperf3.max_attempts must be at least 1")

        # Only location is mandatory among the labels
        if not self.metrics.location:
            raise ConfigError("metrics.location is required")

        if self.remote_write.format not in REMOTE_WRITE_FORMATS:
            raise ConfigError(
                f"remote_write.format must be one of {', '.join(REMOTE_WRITE_FORMATS)}"
            )
        if self.remote_write.max_attempts < 1:
            raise ConfigError("remote_write.max_attempts must be at least 1")
        if self.scheduler.interval_minutes <= 0:
            raise ConfigError("scheduler.interval_minutes must be greater than 0")
        if self.logging.max_bytes < 0 or self.logging.backup_count < 0:
            raise ConfigError("logging.max_bytes and logging.backup_count must not be negative")


def _expand_user(path: str) -> Path:
    if path.startswith("~/"):
        return Path.home() / path[2:]
    return Path(path)


def _section(data: Dict, name: str, cls):
    values = data.get(name) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"{name} section must be a mapping")
    try:
        section = cls(**values)
    except TypeError as exc:
        raise ConfigError(f"invalid keys in {name} section: {exc}") from exc
    _coerce_numbers(section, name)
    return section


def _coerce_numbers(section, name: str) -> None:
    """Convert quoted numbers (port: "5201") to the type of the field default."""
    for item in fields(section):
        default = item.default
        if isinstance(default, bool) or not isinstance(default, (int, float)):
            continue
        value = getattr(section, item.name)
        if isinstance(value, bool):
            raise ConfigError(f"{name}.{item.name} must be a number")
        try:
            setattr(section, item.name, type(default)(value))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name}.{item.name} must be a number, got {value!r}") from exc


def _read_yaml(source_path: Path) -> Dict:
    if not source_path.exists():
        raise ConfigError(f"Missing configuration file at {source_path}")

    try:
        with source_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse YAML config: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{source_path} must contain a mapping at the top level")
    return data


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration from a YAML file."""

    source_path = _expand_user(path or DEFAULT_CONFIG_NAME)
    data = _read_yaml(source_path)
    config = _build_config(data, source_path.resolve().parent)
    config.validate()
    return config


def load_config_with_defaults(
    path: Optional[str] = None, environ: Optional[Dict[str, str]] = None
) -> AppConfig:
    """Load configuration, then apply IBENC_* environment overrides."""

    source_path = _expand_user(path or DEFAULT_CONFIG_NAME)
    data = _read_yaml(source_path)
    apply_env_overrides(data, os.environ if environ is None else environ)
    config = _build_config(data, source_path.resolve().parent)
    config.validate()
    return config


def apply_env_overrides(data: Dict, environ) -> None:
    for variable, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value:
            if not data.get(section):
                data[section] = {}
            data[section][key] = value


def _build_config(data: Dict, root_dir: Path) -> AppConfig:
    paths_data = data.get("paths") or {}
    logs_dir = _expand_user(str(paths_data.get("logs_dir", "logs")))
    if not logs_dir.is_absolute():
        logs_dir = (root_dir / logs_dir).resolve()

    return AppConfig(
        root_dir=root_dir,
        prometheus=_section(data, "prometheus", PrometheusConfig),
        iperf3=_section(data, "iperf3", Iperf3Config),
        metrics=_section(data, "metrics", MetricsConfig),
        remote_write=_section(data, "remote_write", RemoteWriteConfig),
        scheduler=_section(data, "scheduler", SchedulerConfig),
        paths=PathsConfig(logs_dir=logs_dir),
        logging=_section(data, "logging", LoggingConfig),
    )
