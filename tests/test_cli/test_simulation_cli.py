"""CLI integration tests."""

from contextlib import asynccontextmanager
from unittest.mock import patch

from typer.testing import CliRunner

from simviewer.cli.main import app

runner = CliRunner()


def _fake_open_store(store):
    @asynccontextmanager
    async def _open(cfg=None):
        yield store

    return _open


def test_load_prints_timesteps(populated_store):
    with patch("simviewer.cli.simulation.open_store", _fake_open_store(populated_store)):
        result = runner.invoke(app, ["load", "sim1"])

    assert result.exit_code == 0, result.output
    assert "timestep 2" in result.output
    assert "3/3 loaded" in result.output
    assert "4x3x2" in result.output


def test_load_reports_failure(populated_store):
    populated_store.fail_download(populated_store.children["sim1"][1], "spore_001.vtp")

    with patch("simviewer.cli.simulation.open_store", _fake_open_store(populated_store)):
        result = runner.invoke(app, ["load", "sim1"])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_pick_shows_fields(populated_store):
    with patch("simviewer.cli.simulation.open_store", _fake_open_store(populated_store)):
        result = runner.invoke(app, ["pick", "sim1", "1", "neutrophil", "0"])

    assert result.exit_code == 0, result.output
    assert "neutrophil #0" in result.output
    assert "granule_count" in result.output


def test_pick_unknown_step(populated_store):
    with patch("simviewer.cli.simulation.open_store", _fake_open_store(populated_store)):
        result = runner.invoke(app, ["pick", "sim1", "9", "spore", "0"])

    assert result.exit_code == 1
    assert "not loaded" in result.output


def test_progress_lines_only_for_load(populated_store):
    """``load`` streams one line per timestep; ``pick`` prints only the picked point."""
    with patch("simviewer.cli.simulation.open_store", _fake_open_store(populated_store)):
        loaded = runner.invoke(app, ["load", "sim1"])
        picked = runner.invoke(app, ["pick", "sim1", "0", "spore", "1"])

    assert loaded.output.count("spores=") == 3
    assert picked.exit_code == 0, picked.output
    assert "spores=" not in picked.output
