from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

from .errors import ConfigError
from .source import DEFAULT_TIMEOUT

CONFIG_ENV = "SMFPLAY_CONFIG"


@dataclass(frozen=True)
class PlayerConfig:
    port: Optional[str] = None  # None = backend default output
    download_timeout: float = DEFAULT_TIMEOUT
    show_meta: bool = True
    late_threshold_ms: float = 5.0
    all_notes_off_on_stop: bool = True
    start_delay_ms: int = 0

    def with_overrides(self, **changes: object) -> "PlayerConfig":
        """Copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _require_dict(value: object, *, where: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"{where} must be an object")
    return value


def _require_bool(value: object, *, where: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{where} must be true or false")
    return value


def _number_in_range(value: object, *, where: str, low: float, high: float) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ConfigError(f"{where} must be a number")
    if not (low <= value <= high):
        raise ConfigError(f"{where} must be in [{low:g}, {high:g}]")
    return value


def parse_config(raw: object) -> PlayerConfig:
    obj = _require_dict(raw, where="config")
    known = {f.name for f in fields(PlayerConfig)}
    unknown = sorted(set(obj) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")

    values = {}
    if "port" in obj:
        port = obj["port"]
        if port is not None and not isinstance(port, str):
            raise ConfigError("config.port must be a string or null")
        values["port"] = port
    if "download_timeout" in obj:
        values["download_timeout"] = float(
            _number_in_range(obj["download_timeout"], where="config.download_timeout", low=0.1, high=600)
        )
    if "late_threshold_ms" in obj:
        values["late_threshold_ms"] = float(
            _number_in_range(obj["late_threshold_ms"], where="config.late_threshold_ms", low=0, high=10_000)
        )
    if "start_delay_ms" in obj:
        delay = _number_in_range(obj["start_delay_ms"], where="config.start_delay_ms", low=0, high=60_000)
        if not isinstance(delay, int):
            raise ConfigError("config.start_delay_ms must be an integer")
        values["start_delay_ms"] = delay
    for name in ("show_meta", "all_notes_off_on_stop"):
        if name in obj:
            values[name] = _require_bool(obj[name], where=f"config.{name}")
    return PlayerConfig(**values)


def load_config(path: Union[str, Path, None] = None) -> PlayerConfig:
    """Read a JSON config; ``$SMFPLAY_CONFIG`` is used when no path is given.

    With neither, the defaults are returned.
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV)
        if not env_path:
            return PlayerConfig()
        path = env_path

    path = Path(path).expanduser()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{path}: not UTF-8 text ({exc.reason})") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON ({exc})") from exc
    return parse_config(raw)
