"""Persisted settings: refresh interval and last window bounds."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .geometry import Bounds

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_S = 300
MIN_REFRESH_INTERVAL_S = 1
MAX_REFRESH_INTERVAL_S = 3600
COOKIE_ENV = "TRAE_COOKIE"


def app_data_dir() -> Path:
    override = os.environ.get("TRAE_MONITOR_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".trae-monitor"


def session_cookie() -> str:
    return os.environ.get(COOKIE_ENV, "").strip()


def clamp_interval(seconds) -> int:
    return max(MIN_REFRESH_INTERVAL_S, min(MAX_REFRESH_INTERVAL_S, int(seconds)))


def _read_json(path: Path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning("could not read %s: %s", path, e)
        return None


def _write_json(path: Path, data) -> None:
    tmp_path = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.warning("could not write %s: %s", path, e)


@dataclass
class AppConfig:
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_S

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        try:
            seconds = clamp_interval(data.get("refreshIntervalSeconds", DEFAULT_REFRESH_INTERVAL_S))
        except (TypeError, ValueError, OverflowError):
            seconds = DEFAULT_REFRESH_INTERVAL_S
        return cls(refresh_interval_seconds=seconds)

    def to_dict(self) -> dict:
        return {"refreshIntervalSeconds": self.refresh_interval_seconds}


class ConfigStore:
    """app-config.json; a default file is written the first time it is missing."""

    def __init__(self, path: Path | None = None):
        self._path = path or app_data_dir() / "app-config.json"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppConfig:
        raw = _read_json(self._path)
        if isinstance(raw, dict):
            return AppConfig.from_dict(raw)
        cfg = AppConfig()
        if raw is None and not self._path.exists():
            _write_json(self._path, cfg.to_dict())
        return cfg

    def save(self, refresh_interval_seconds=None) -> AppConfig:
        cfg = self.load()
        if refresh_interval_seconds is not None:
            try:
                cfg.refresh_interval_seconds = clamp_interval(refresh_interval_seconds)
            except (TypeError, ValueError, OverflowError):
                logger.warning("ignoring invalid refresh interval %r", refresh_interval_seconds)
        _write_json(self._path, cfg.to_dict())
        return cfg


class WindowStateStore:
    """window-state.json holding the last {x, y, width, height}."""

    def __init__(self, path: Path | None = None):
        self._path = path or app_data_dir() / "window-state.json"

    def load(self) -> Bounds | None:
        raw = _read_json(self._path)
        if not isinstance(raw, dict):
            return None
        try:
            return Bounds.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            return None

    def save(self, bounds: Bounds) -> None:
        _write_json(self._path, bounds.to_dict())
