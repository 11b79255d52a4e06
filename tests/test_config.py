from __future__ import annotations

import tomllib

from campusevents import config


def test_defaults_and_paths(monkeypatch, tmp_path):
    for key in config.DEFAULTS:
        monkeypatch.delenv(f"CAMPUSEVENTS_{key.upper()}", raising=False)
    for name in ("CAMPUSEVENTS_DATA_DIR", "CAMPUSEVENTS_DB", "CAMPUSEVENTS_MEDIA_DIR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CAMPUSEVENTS_BASE_DIR", str(tmp_path))

    settings = config.load_settings(tmp_path / "missing.toml")

    assert settings.data_dir == tmp_path / "data"
    assert settings.database_path == tmp_path / "data" / "campusevents.db"
    assert settings.media_dir == tmp_path / "data" / "media"
    assert settings.max_image_bytes == 5 * 1024 * 1024
    assert settings.max_video_bytes == 100 * 1024 * 1024
    assert settings.first_weekday == 6
    assert settings.data_dir.is_dir()


def test_env_overrides_toml(monkeypatch, tmp_path):
    config_path = tmp_path / "campusevents.toml"
    config_path.write_text('week_start = "monday"\nmax_image_mb = 2\n')
    monkeypatch.setenv("CAMPUSEVENTS_BASE_DIR", str(tmp_path))
    monkeypatch.delenv("CAMPUSEVENTS_WEEK_START", raising=False)
    monkeypatch.setenv("CAMPUSEVENTS_MAX_IMAGE_MB", "3")

    settings = config.load_settings(config_path)

    assert settings.week_start == "monday"
    assert settings.first_weekday == 0
    assert settings.max_image_mb == 3


def test_update_config_file_merges_known_keys(monkeypatch, tmp_path):
    config_path = tmp_path / "campusevents.toml"
    config_path.write_text("app_port = 9000\n")
    monkeypatch.setenv("CAMPUSEVENTS_BASE_DIR", str(tmp_path))
    monkeypatch.delenv("CAMPUSEVENTS_SEED_EVENTS", raising=False)
    monkeypatch.delenv("CAMPUSEVENTS_APP_PORT", raising=False)
    original = config.settings

    try:
        updated = config.update_config_file(
            {"seed_events": "4", "unknown": "ignored"}, path=config_path
        )
    finally:
        config.settings = original

    with config_path.open("rb") as handle:
        written = tomllib.load(handle)
    assert written == {"app_port": 9000, "seed_events": 4}
    assert updated.seed_events == 4
    assert updated.app_port == 9000
