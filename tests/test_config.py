from __future__ import annotations

import json
import os

import pytest

from gtfs_archive.config import CONFIG_ENV, ScraperConfig, load_config
from gtfs_archive.errors import ConfigError


def _write(path, payload) -> str:
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return str(path)


def test_load_config_maps_keys(tmp_path) -> None:
    path = _write(tmp_path / "cfg.json", {
        "DataDir": "/srv/gtfs",
        "VehicleUpdatesURL": "https://example.invalid/vehicles.pb",
        "TimeZone": "Europe/Stockholm",
    })
    cfg = load_config(path)
    assert cfg == ScraperConfig(
        data_dir="/srv/gtfs",
        vehicle_updates_url="https://example.invalid/vehicles.pb",
        time_zone="Europe/Stockholm",
    )
    assert cfg.store_path == os.path.join("/srv/gtfs", "realtime.db")
    assert cfg.archive_dir == os.path.join("/srv/gtfs", "archive")


def test_env_var_points_at_config(tmp_path, monkeypatch) -> None:
    path = _write(tmp_path / "cfg.json", {"DataDir": "/data"})
    monkeypatch.setenv(CONFIG_ENV, path)
    assert load_config().data_dir == "/data"


@pytest.mark.parametrize("payload", ["{not json", "[1, 2]", {"StaticURL": "x"}, {"DataDir": 5}])
def test_bad_config_is_rejected(tmp_path, payload) -> None:
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path / "cfg.json", payload))


def test_missing_config_file(tmp_path) -> None:
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "absent.json"))
