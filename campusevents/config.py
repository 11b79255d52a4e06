"""Global configuration for Campus Events."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

DEFAULTS: dict[str, Any] = {
    "app_host": "0.0.0.0",
    "app_port": 8000,
    "storage_bucket": "event-images",
    "max_image_mb": 5,
    "max_video_mb": 100,
    "week_start": "sunday",
    "cookie_name": "campusevents_token",
    "seed_users": 8,
    "seed_categories": 3,
    "seed_events": 12,
}

TYPE_CASTERS: dict[str, Callable[[Any], Any]] = {
    "app_host": str,
    "app_port": int,
    "storage_bucket": str,
    "max_image_mb": int,
    "max_video_mb": int,
    "week_start": str,
    "cookie_name": str,
    "seed_users": int,
    "seed_categories": int,
    "seed_events": int,
}

WEEKDAY_INDEX = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


@dataclass(frozen=True)
class Settings:
    base_dir: Path
    data_dir: Path
    database_path: Path
    media_dir: Path
    app_host: str
    app_port: int
    storage_bucket: str
    max_image_mb: int
    max_video_mb: int
    week_start: str
    cookie_name: str
    seed_users: int
    seed_categories: int
    seed_events: int
    config_path: Path

    @property
    def max_image_bytes(self) -> int:
        return self.max_image_mb * 1024 * 1024

    @property
    def max_video_bytes(self) -> int:
        return self.max_video_mb * 1024 * 1024

    @property
    def first_weekday(self) -> int:
        return WEEKDAY_INDEX.get(self.week_start.strip().lower(), 6)


def _cast_value(key: str, value: Any) -> Any:
    if key not in TYPE_CASTERS:
        return value
    return TYPE_CASTERS[key](value)


def _load_toml_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        return tomllib.load(handle)


def _config_layered_value(key: str, *, toml_config: dict[str, Any]) -> Any:
    env_key = f"CAMPUSEVENTS_{key.upper()}"
    if env_key in os.environ:
        return _cast_value(key, os.environ[env_key])
    if key in toml_config:
        return _cast_value(key, toml_config[key])
    return DEFAULTS[key]


def _resolve_path(base_dir: Path, raw: str | Path | None, fallback: Path) -> Path:
    resolved = Path(raw) if raw else fallback
    if not resolved.is_absolute():
        resolved = base_dir / resolved
    return resolved


def load_settings(config_override: Path | None = None) -> Settings:
    base_dir = Path(os.getenv("CAMPUSEVENTS_BASE_DIR", Path.cwd()))
    env_config = os.getenv("CAMPUSEVENTS_CONFIG")
    config_path = Path(config_override or env_config or base_dir / "campusevents.toml")
    toml_config = _load_toml_config(config_path)

    data_dir = _resolve_path(
        base_dir,
        os.getenv("CAMPUSEVENTS_DATA_DIR", toml_config.get("data_dir")),
        base_dir / "data",
    )
    database_path = _resolve_path(
        base_dir,
        os.getenv("CAMPUSEVENTS_DB", toml_config.get("database_path")),
        data_dir / "campusevents.db",
    )
    media_dir = _resolve_path(
        base_dir,
        os.getenv("CAMPUSEVENTS_MEDIA_DIR", toml_config.get("media_dir")),
        data_dir / "media",
    )

    values = {
        key: _config_layered_value(key, toml_config=toml_config) for key in DEFAULTS
    }
    settings = Settings(
        base_dir=base_dir,
        data_dir=data_dir,
        database_path=database_path,
        media_dir=media_dir,
        config_path=config_path,
        **values,
    )
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings


def settings_as_dict(settings: Settings) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "base_dir": str(settings.base_dir),
        "data_dir": str(settings.data_dir),
        "database_path": str(settings.database_path),
        "media_dir": str(settings.media_dir),
    }
    for key in DEFAULTS:
        payload[key] = getattr(settings, key)
    return payload


def _toml_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def write_config_file(config: dict[str, Any], *, path: Path) -> None:
    lines = ["# Campus Events configuration\n"]
    for key in sorted(config.keys()):
        lines.append(f"{key} = {_toml_literal(config[key])}\n")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(lines), encoding="utf-8")


def update_config_file(updates: dict[str, Any], *, path: Path | None = None) -> Settings:
    target_path = path or settings.config_path
    merged = dict(_load_toml_config(target_path))
    for key, value in updates.items():
        if key not in DEFAULTS:
            continue
        merged[key] = _cast_value(key, value)
    write_config_file(merged, path=target_path)
    new_settings = load_settings(target_path)
    globals()["settings"] = new_settings
    return new_settings


settings = load_settings()
