"""
Command line entry point for the automation runner.

Loads configuration, builds the engine from rule definitions and runs one of
the commands: run, schedule, test, status, list, help.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Callable, Optional, TextIO

import structlog
from aiohttp import web
from dotenv import load_dotenv

from core.config import AppConfig, ConfigLoader
from core.errors import ConfigError, SchedulerError
from orchestrator.bootstrap import build_engine
from orchestrator.engine import AutomationEngine
from orchestrator.scheduler import AutomationScheduler
from rules.registry import RuleServices


logger = structlog.get_logger()


def configure_logging(level: str = "info", json_output: bool = False) -> None:
    """Configure structured logging."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_output
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class StatusServer:
    """HTTP health and statistics endpoint for scheduled runs."""

    def __init__(
        self,
        engine: AutomationEngine,
        scheduler: AutomationScheduler,
        host: str = "127.0.0.1",
        port: int = 8080,
    ):
        self.engine = engine
        self.scheduler = scheduler
        self.host = host
        self.port = port
        self._runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)
        app.router.add_get("/status", self._status_handler)
        return app

    async def start(self) -> None:
        """Start the status server."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()

        logger.info("status_server_started", host=self.host, port=self.port)

    async def stop(self) -> None:
        """Stop the status server."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("status_server_stopped")

    async def _health_handler(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "healthy"})

    async def _status_handler(self, request: web.Request) -> web.Response:
        rules = []
        statistics = self.engine.all_statistics()
        for rule in self.engine.rules:
            entry = {"name": rule.name, "type": rule.rule_type, "enabled": rule.enabled}
            entry.update(statistics[rule.name].to_dict())
            rules.append(entry)

        return web.json_response({
            "scheduler": {
                "running": self.scheduler.is_running,
                "interval_seconds": self.scheduler.interval_seconds,
                "fired": self.scheduler.fire_count,
                "skipped": self.scheduler.skipped_count,
                "batch_in_flight": self.scheduler.batch_in_flight,
            },
            "rules": rules,
        })


class CommandHandler:
    """Implements the CLI commands against one engine."""

    def __init__(
        self,
        engine: AutomationEngine,
        config: Optional[AppConfig] = None,
        out: Optional[TextIO] = None,
    ):
        self.engine = engine
        self.config = config or AppConfig()
        self.out = out or sys.stdout

    def _print(self, message: str = "") -> None:
        print(message, file=self.out)

    async def run(self) -> int:
        """Execute all rules once."""
        success = await self.engine.execute_all()
        for rule in self.engine.rules:
            if not rule.enabled:
                continue
            stats = self.engine.get_statistics(rule.name)
            outcome = "OK" if stats.last_success else "FAILED"
            line = f"[{outcome}] {rule.name} ({stats.execution_duration:.2f}s)"
            if not stats.last_success and stats.last_error_message:
                line += f" - {stats.last_error_message}"
            self._print(line)
        self._print(f"Execution completed. Success: {success}")
        return 0 if success else 1

    async def schedule(
        self,
        interval: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Run on an interval until SIGINT/SIGTERM (or ``stop_event``)."""
        interval = interval if interval is not None else self.config.scheduler.interval_seconds
        try:
            scheduler = AutomationScheduler(self.engine, interval)
        except SchedulerError as e:
            self._print(f"Error: {e.message}")
            return 2

        stop_event = stop_event or asyncio.Event()
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, stop_event.set)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Signal handlers are unavailable off the main thread / on Windows
                pass

        status_server = None
        if self.config.status_server.enabled:
            status_server = StatusServer(
                self.engine,
                scheduler,
                host=self.config.status_server.host,
                port=self.config.status_server.port,
            )

        try:
            if status_server:
                await status_server.start()
            self._print(f"Scheduler running every {interval} seconds. Press Ctrl+C to stop.")
            await scheduler.start()
            await stop_event.wait()
        except OSError as e:
            logger.error("status_server_start_failed", error=str(e))
            self._print(f"Error: could not start status server: {e}")
            return 1
        finally:
            logger.info("scheduler_shutting_down")
            await scheduler.stop()
            await scheduler.wait_idle()
            if status_server:
                await status_server.stop()
            for sig in installed:
                loop.remove_signal_handler(sig)

        self._print(f"Scheduler stopped after {scheduler.fire_count} passes.")
        return 0

    async def test(
        self,
        name: Optional[str] = None,
        input_func: Callable[[str], str] = input,
    ) -> int:
        """Execute one rule by name, or prompt for names interactively."""
        if not self.engine.rules:
            self._print("No rules configured.")
            return 1

        if name:
            return 0 if await self._test_one(name) else 1

        self.list_rules()
        while True:
            try:
                entered = await asyncio.to_thread(
                    input_func, "Enter rule name to test (or 'exit' to quit): "
                )
            except EOFError:
                break
            entered = entered.strip()
            if entered.lower() == "exit":
                break
            if not entered:
                self._print("Rule name cannot be empty")
                continue
            await self._test_one(entered)
        return 0

    async def _test_one(self, name: str) -> bool:
        rule = self.engine.get_rule(name)
        if rule is None:
            self._print(f"Rule not found: {name}")
            return False

        success = await self.engine.execute_rule(rule.name)
        stats = self.engine.get_statistics(rule.name)
        if success:
            self._print(f"Rule test completed successfully: {rule.name}")
        else:
            detail = f" - {stats.last_error_message}" if stats.last_error_message else ""
            self._print(f"Rule test failed: {rule.name}{detail}")
        return success

    def status(self) -> int:
        """Show rules and their statistics."""
        self._print(f"Rules configured: {len(self.engine.rules)}")
        for rule in self.engine.rules:
            stats = self.engine.get_statistics(rule.name)
            last = (
                stats.last_execution_time.strftime("%Y-%m-%d %H:%M:%S")
                if stats.last_execution_time else "never"
            )
            self._print(f"- {rule.name}")
            self._print(f"  Type: {rule.rule_type}")
            self._print(f"  Status: {'Enabled' if rule.enabled else 'Disabled'}")
            self._print(f"  Last Execution: {last}")
            self._print(f"  Success: {stats.success_count}")
            self._print(f"  Failures: {stats.failure_count}")
            if stats.last_error_message:
                self._print(f"  Last Error: {stats.last_error_message}")
        return 0

    def list_rules(self) -> int:
        """List registered rules in registration order."""
        self._print("Available rules:")
        for rule in self.engine.rules:
            flag = "" if rule.enabled else " [disabled]"
            self._print(f"- {rule.name} ({rule.rule_type}){flag}")
        return 0


def _interval(value: str) -> int:
    try:
        interval = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid interval: {value!r}")
    if interval < 1:
        raise argparse.ArgumentTypeError("interval must be at least 1 second")
    return interval


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="automation-runner",
        description="Run file, email and data automation rules.",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("AUTOMATION_CONFIG", "./config/automation.yaml"),
        help="App config file (YAML or JSON)",
    )
    parser.add_argument("--rules", default=None, help="Rule definitions file (YAML or JSON)")

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("run", help="Execute all automation rules once")
    schedule = commands.add_parser("schedule", help="Execute rules on an interval")
    schedule.add_argument("--interval", type=_interval, default=None, help="Seconds between passes")
    schedule.add_argument("--status-port", type=int, default=None, help="Serve /health and /status")
    test = commands.add_parser("test", help="Execute a single rule")
    test.add_argument("name", nargs="?", help="Rule name (prompted when omitted)")
    commands.add_parser("status", help="Show rules and statistics")
    commands.add_parser("list", help="List configured rules")
    commands.add_parser("help", help="Show this help message")
    return parser


def load_engine(config: AppConfig, loader: ConfigLoader, rules_path: Optional[str] = None) -> AutomationEngine:
    """Load rule definitions and build the engine."""
    definitions = loader.load_rule_definitions(rules_path or config.rules_path)
    services = RuleServices.from_email_config(config.email)
    return build_engine(definitions, services)


async def async_main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command in (None, "help"):
        parser.print_help()
        return 0

    loader = ConfigLoader(os.path.dirname(args.config) or ".")
    try:
        config = loader.load_app_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    configure_logging(config.logging.level, config.logging.json_output)

    try:
        engine = load_engine(config, loader, args.rules)
    except ConfigError as e:
        logger.error("rules_load_failed", error=e.message, **e.context)
        return 2

    handler = CommandHandler(engine, config)

    if args.command == "run":
        return await handler.run()
    if args.command == "schedule":
        if args.status_port is not None:
            config.status_server.enabled = True
            config.status_server.port = args.status_port
        return await handler.schedule(args.interval)
    if args.command == "test":
        return await handler.test(args.name)
    if args.command == "status":
        return handler.status()
    if args.command == "list":
        return handler.list_rules()

    parser.print_help()
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Console script entry point."""
    load_dotenv()
    try:
        return asyncio.run(async_main(argv))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
