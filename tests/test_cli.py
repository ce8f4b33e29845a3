"""Tests for the command line front end and status server."""

import asyncio
import io
import pytest
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from aiohttp import test_utils

from core.config import AppConfig
from core.errors import RuleError
from main import CommandHandler, StatusServer, async_main, build_parser
from orchestrator.engine import AutomationEngine
from orchestrator.scheduler import AutomationScheduler
from rules.base import Rule


class ResultRule(Rule):
    rule_type = "result"

    def __init__(self, name, result=True, error=None, enabled=True):
        super().__init__(name, enabled)
        self.result = result
        self.error = error

    async def execute(self):
        if self.error:
            raise RuntimeError(self.error)
        return self.result


@pytest.fixture
def engine():
    engine = AutomationEngine()
    engine.register_rule(ResultRule("Good"))
    engine.register_rule(ResultRule("Bad", error="smtp down"))
    engine.register_rule(ResultRule("Off", enabled=False))
    return engine


@pytest.fixture
def out():
    return io.StringIO()


class TestCommands:
    """Test CLI commands against an engine."""

    @pytest.mark.asyncio
    async def test_run_reports_failure(self, engine, out):
        handler = CommandHandler(engine, out=out)

        assert await handler.run() == 1

        text = out.getvalue()
        assert "[OK] Good" in text
        assert "[FAILED] Bad" in text
        assert "smtp down" in text
        assert "Off" not in text
        assert "Success: False" in text

    @pytest.mark.asyncio
    async def test_run_success_exit_code(self, out):
        engine = AutomationEngine()
        engine.register_rule(ResultRule("Good"))

        assert await CommandHandler(engine, out=out).run() == 0

    @pytest.mark.asyncio
    async def test_status_shows_statistics(self, engine, out):
        handler = CommandHandler(engine, out=out)
        await engine.execute_all()

        assert handler.status() == 0

        text = out.getvalue()
        assert "Rules configured: 3" in text
        assert "Status: Disabled" in text
        assert "Last Error: smtp down" in text
        assert "Last Execution: never" in text

    def test_list_in_registration_order(self, engine, out):
        CommandHandler(engine, out=out).list_rules()

        lines = out.getvalue().splitlines()
        assert lines[1:] == [
            "- Good (result)",
            "- Bad (result)",
            "- Off (result) [disabled]",
        ]

    @pytest.mark.asyncio
    async def test_test_named_rule(self, engine, out):
        handler = CommandHandler(engine, out=out)

        assert await handler.test("good") == 0
        assert await handler.test("bad") == 1
        assert await handler.test("unknown") == 1

        assert engine.get_statistics("Good").success_count == 1
        assert engine.get_statistics("Bad").failure_count == 1
        assert "Rule not found: unknown" in out.getvalue()

    @pytest.mark.asyncio
    async def test_test_runs_first_registered_of_case_variants(self, out):
        engine = AutomationEngine()
        engine.register_rule(ResultRule("Report"))
        with pytest.raises(RuleError):
            engine.register_rule(ResultRule("report", error="wrong rule"))

        assert await CommandHandler(engine, out=out).test("report") == 0
        assert engine.get_statistics("Report").success_count == 1

    @pytest.mark.asyncio
    async def test_test_interactive(self, engine, out):
        answers = iter(["Good", "", "missing", "exit"])
        handler = CommandHandler(engine, out=out)

        assert await handler.test(input_func=lambda prompt: next(answers)) == 0

        text = out.getvalue()
        assert "Rule test completed successfully: Good" in text
        assert "Rule name cannot be empty" in text
        assert "Rule not found: missing" in text

    @pytest.mark.asyncio
    async def test_schedule_rejects_bad_interval(self, engine, out):
        assert await CommandHandler(engine, out=out).schedule(0) == 2
        assert "Interval must be" in out.getvalue()

    @pytest.mark.asyncio
    async def test_schedule_stops_on_event(self, engine, out):
        handler = CommandHandler(engine, out=out)
        stop_event = asyncio.Event()

        asyncio.get_running_loop().call_later(0.05, stop_event.set)
        assert await handler.schedule(1, stop_event=stop_event) == 0

        assert "Scheduler stopped after 0 passes." in out.getvalue()

    @pytest.mark.asyncio
    async def test_schedule_status_server_port_in_use(self, engine, out, monkeypatch):
        async def port_in_use(self):
            raise OSError(98, "Address already in use")

        monkeypatch.setattr(StatusServer, "start", port_in_use)
        config = AppConfig(status_server={"enabled": True, "port": 8099})
        handler = CommandHandler(engine, config=config, out=out)

        assert await asyncio.wait_for(handler.schedule(1), timeout=5) == 1

        text = out.getvalue()
        assert "could not start status server" in text
        assert "Scheduler running" not in text


class TestParser:
    """Test argument parsing."""

    def test_interval_must_be_positive(self):
        parser = build_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(["schedule", "--interval", "0"])

    def test_schedule_interval(self):
        args = build_parser().parse_args(["schedule", "--interval", "15"])

        assert args.command == "schedule"
        assert args.interval == 15


class TestAsyncMain:
    """Test end-to-end bootstrap from config files."""

    @pytest.mark.asyncio
    async def test_run_from_config(self, tmp_path):
        data = tmp_path / "data.csv"
        data.write_text("id,name\n1,Ann\n")
        rules = tmp_path / "rules.yaml"
        rules.write_text(f"""
- type: data_processing
  name: Validate
  settings:
    file_path: {data}
    required_columns: [id, name]
- type: teleport
  name: Unknown
""")
        config = tmp_path / "automation.yaml"
        config.write_text(f"rules_path: {rules}\n")

        assert await async_main(["--config", str(config), "run"]) == 0

    @pytest.mark.asyncio
    async def test_invalid_rules_file(self, tmp_path):
        rules = tmp_path / "rules.yaml"
        rules.write_text("- enabled: true\n")

        code = await async_main(["--config", str(tmp_path / "none.yaml"), "--rules", str(rules), "run"])

        assert code == 2


class TestStatusServer:
    """Test the HTTP status endpoint."""

    @pytest.mark.asyncio
    async def test_health_and_status(self, engine):
        await engine.execute_all()
        scheduler = AutomationScheduler(engine, 5)
        server = StatusServer(engine, scheduler)

        client = test_utils.TestClient(test_utils.TestServer(server.create_app()))
        await client.start_server()
        try:
            response = await client.get("/health")
            assert response.status == 200
            assert await response.json() == {"status": "healthy"}

            response = await client.get("/status")
            body = await response.json()
            assert body["scheduler"]["running"] is False
            assert body["scheduler"]["interval_seconds"] == 5
            assert [r["name"] for r in body["rules"]] == ["Good", "Bad", "Off"]
            assert body["rules"][1]["failure_count"] == 1
            assert body["rules"][1]["last_error_message"] == "smtp down"
        finally:
            await client.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
