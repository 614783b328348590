"""Scraper configuration shared with the feed ingestor."""

from __future__ import annotations

import dataclasses
import json
import os
from typing import Any

from .adapters.store_sqlite import STORE_FILE
from .errors import ConfigError

CONFIG_FILE = "gtfs-scraper.json"
CONFIG_ENV = "GTFS_ARCHIVE_CONFIG"
ARCHIVE_DIR = "archive"

# JSON key -> field name
_KEYS = {
    "DataDir": "data_dir",
    "StaticURL": "static_url",
    "AlertsURL": "alerts_url",
    "TripUpdatesURL": "trip_updates_url",
    "VehicleUpdatesURL": "vehicle_updates_url",
    "TimeZone": "time_zone",
}


@dataclasses.dataclass(frozen=True)
class ScraperConfig:
    """Contents of ``gtfs-scraper.json``.

    Parameters
    ----------
    data_dir : str
        Directory holding ``realtime.db`` and the ``archive`` tree.
    static_url, alerts_url, trip_updates_url, vehicle_updates_url : str
        Feed endpoints, used by the ingestor only.
    time_zone : str
        IANA zone the ingestor uses to interpret trip start times.
    """

    data_dir: str
    static_url: str = ""
    alerts_url: str = ""
    trip_updates_url: str = ""
    vehicle_updates_url: str = ""
    time_zone: str = "UTC"

    @property
    def store_path(self) -> str:
        return os.path.join(self.data_dir, STORE_FILE)

    @property
    def archive_dir(self) -> str:
        return os.path.join(self.data_dir, ARCHIVE_DIR)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ScraperConfig:
        kwargs = {field: raw[key] for key, field in _KEYS.items() if key in raw}
        if not kwargs.get("data_dir"):
            raise ConfigError("configuration is missing DataDir")
        bad = [k for k, v in kwargs.items() if not isinstance(v, str)]
        if bad:
            raise ConfigError(f"configuration values must be strings: {', '.join(sorted(bad))}")
        return cls(**kwargs)


def load_config(path: str | None = None) -> ScraperConfig:
    """Load the config from `path`, ``$GTFS_ARCHIVE_CONFIG``, or ``./gtfs-scraper.json``."""
    path = path or os.environ.get(CONFIG_ENV) or CONFIG_FILE
    try:
        with open(path, "r") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"config {path} must hold a JSON object")
    return ScraperConfig.from_dict(raw)
