from __future__ import annotations

import tomllib

from typer.testing import CliRunner

from campusevents import cli, config

runner = CliRunner()


def test_config_rejects_unknown_week_start(tmp_path):
    config_path = tmp_path / "campusevents.toml"

    result = runner.invoke(
        cli.app,
        ["config", "--week-start", "funday", "--config-path", str(config_path)],
    )

    assert result.exit_code == 1
    assert "Invalid week start" in result.output
    assert not config_path.exists()


def test_config_normalizes_week_start(monkeypatch, tmp_path):
    config_path = tmp_path / "campusevents.toml"
    monkeypatch.setenv("CAMPUSEVENTS_BASE_DIR", str(tmp_path))
    monkeypatch.delenv("CAMPUSEVENTS_WEEK_START", raising=False)
    original = config.settings

    try:
        result = runner.invoke(
            cli.app,
            ["config", "--week-start", " Monday ", "--config-path", str(config_path)],
        )
    finally:
        config.settings = original

    assert result.exit_code == 0
    with config_path.open("rb") as handle:
        assert tomllib.load(handle) == {"week_start": "monday"}
