"""
Replay configuration.

Values are layered: command line flag > YAML config file > environment
variable > default.

Example config file:

    timeout: 30s
    duration: 5m
    parallel: 8
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from promreplay.errors import ConfigurationError

DEFAULT_TIMEOUT = "60s"
DEFAULT_PARALLEL = 1

ENV_PREFIX = "PROMREPLAY_"

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers (seconds) and Go-style strings such as "60s", "1m30s",
    "250ms" or "1h".
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        s = str(value).strip()
        if not s:
            raise ConfigurationError("invalid duration: empty string")
        try:
            seconds = float(s)
        except ValueError:
            pos, seconds = 0, 0.0
            for m in _DURATION_PART.finditer(s):
                if m.start() != pos:
                    break
                seconds += float(m.group(1)) * _UNITS[m.group(2)]
                pos = m.end()
            if pos != len(s):
                raise ConfigurationError(f"invalid duration: {value!r}")

    if seconds < 0:
        raise ConfigurationError(f"negative duration: {value!r}")
    return seconds


def load_yaml(filepath) -> Dict[str, Any]:
    """Load YAML file."""
    try:
        with open(filepath, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"error reading config {filepath}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid config {filepath}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config {filepath} must be a mapping")
    return data


@dataclass
class ReplayConfig:
    timeout: float = 60.0
    duration: float = 0.0
    parallel: int = DEFAULT_PARALLEL
    metrics_port: Optional[int] = None

    @property
    def cyclic(self) -> bool:
        return self.duration > 0

    def validate(self):
        if self.parallel < 1:
            raise ConfigurationError(f"--parallel must be at least 1, got {self.parallel}")
        if self.timeout <= 0:
            raise ConfigurationError("--timeout must be positive")
        return self


def _pick(key: str, flags: Dict[str, Any], file_values: Dict[str, Any], default: Any) -> Any:
    if flags.get(key) is not None:
        return flags[key]
    if file_values.get(key) is not None:
        return file_values[key]
    env = os.getenv(ENV_PREFIX + key.upper())
    if env:
        return env
    return default


def build_config(flags: Dict[str, Any], config_path: Optional[str] = None) -> ReplayConfig:
    """Resolve the replay configuration from flags, an optional file and the environment."""
    file_values = load_yaml(Path(config_path)) if config_path else {}

    parallel = _pick("parallel", flags, file_values, DEFAULT_PARALLEL)
    try:
        parallel = int(parallel)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid parallel value: {parallel!r}") from e

    metrics_port = _pick("metrics_port", flags, file_values, None)
    if metrics_port is not None:
        try:
            metrics_port = int(metrics_port)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid metrics port: {metrics_port!r}") from e

    cfg = ReplayConfig(
        timeout=parse_duration(_pick("timeout", flags, file_values, DEFAULT_TIMEOUT)),
        duration=parse_duration(_pick("duration", flags, file_values, 0)),
        parallel=parallel,
        metrics_port=metrics_port,
    )
    return cfg.validate()
