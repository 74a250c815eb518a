"""Tests for CLI commands using CliRunner (no live model required)."""
from __future__ import annotations

from unittest.mock import patch

from typer.testing import CliRunner

from crew_council.interfaces.cli import app
from helpers import make_engine, router_reply, unavailable

runner = CliRunner()


def _patched(handler):
    engine, gateway, store = make_engine(handler)
    return patch("crew_council.interfaces.cli.build_engine", return_value=engine), engine, store


def test_run_prints_result():
    p, engine, _ = _patched(router_reply("Nova"))
    with p:
        result = runner.invoke(app, ["run", "Write a tagline"])
    assert result.exit_code == 0, result.output
    assert "fast answer" in result.output
    assert "Nova" in result.output
    (task,) = engine.list_tasks()
    assert task.status.value == "done"


def test_run_council_flag():
    p, engine, _ = _patched(router_reply("Nova, Cypher"))
    with p:
        result = runner.invoke(app, ["run", "--council", "Should we ship?"])
    assert result.exit_code == 0, result.output
    assert "synth answer" in result.output
    (task,) = engine.list_tasks()
    assert task.council_members == ["Nova", "Cypher"]


def test_run_failure_exits_1():
    p, _, _ = _patched(lambda e, prompt: unavailable("router offline"))
    with p:
        result = runner.invoke(app, ["run", "anything"])
    assert result.exit_code == 1
    assert "router offline" in result.output


def test_agents_lists_roster():
    p, _, _ = _patched(router_reply("Nova"))
    with p:
        result = runner.invoke(app, ["agents"])
    assert result.exit_code == 0, result.output
    for name in ("Renee", "Nova", "Cypher", "Pixel"):
        assert name in result.output


def test_set_engine_updates_and_saves():
    p, engine, store = _patched(router_reply("Nova"))
    with p:
        result = runner.invoke(app, ["set-engine", "Nova", "deep"])
    assert result.exit_code == 0, result.output
    assert engine.registry.get_agent("Nova").current_engine == "deep"
    assert store.saved


def test_set_engine_rejects_disallowed_engine():
    p, _, store = _patched(router_reply("Nova"))
    with p:
        result = runner.invoke(app, ["set-engine", "Nova", "gpt-x"])
    assert result.exit_code == 1
    assert store.saved == []


def test_set_engine_unknown_agent():
    p, _, _ = _patched(router_reply("Nova"))
    with p:
        result = runner.invoke(app, ["set-engine", "Ghost", "fast"])
    assert result.exit_code == 1
    assert "Ghost" in result.output


def test_serve_starts_uvicorn():
    with patch("uvicorn.run") as mock_run:
        result = runner.invoke(app, ["serve", "--port", "9999"])
    assert result.exit_code == 0, result.output
    mock_run.assert_called_once_with("crew_council.interfaces.http_api:app", host="127.0.0.1", port=9999)
