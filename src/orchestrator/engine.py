"""Automation engine - rule registry, concurrent executor and statistics owner."""

import asyncio
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

import structlog

from core.errors import AutomationError, RuleError
from rules.base import Rule


logger = structlog.get_logger()


@dataclass
class RuleStatistics:
    """Execution history of one rule."""
    last_execution_time: Optional[datetime] = None
    execution_duration: float = 0.0  # seconds, most recent attempt
    success_count: int = 0
    failure_count: int = 0
    last_success: bool = False
    last_error_message: Optional[str] = None

    @property
    def total_executions(self) -> int:
        return self.success_count + self.failure_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_execution_time": (
                self.last_execution_time.isoformat() if self.last_execution_time else None
            ),
            "execution_duration": round(self.execution_duration, 4),
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "last_success": self.last_success,
            "last_error_message": self.last_error_message,
        }


class AutomationEngine:
    """
    Runs every enabled rule concurrently and keeps per-rule statistics.

    Flow of one ``execute_all()`` pass:
    1. Launch one task per enabled rule (disabled rules are skipped)
    2. Each task awaits ``rule.execute()`` and converts errors into a failure
    3. Statistics are written under a lock that is never held across execute()
    4. Wait for every task, then aggregate

    A failing rule never stops the others; the pass result is False if any
    launched rule failed. Rules must be registered before the first pass.
    """

    def __init__(self):
        self._rules: list[Rule] = []
        self._statistics: dict[str, RuleStatistics] = {}
        self._stats_lock = asyncio.Lock()

    @property
    def rules(self) -> list[Rule]:
        """Registered rules in registration order."""
        return list(self._rules)

    def register_rule(self, rule: Rule) -> None:
        """
        Register a rule with zeroed statistics.

        Raises:
            RuleError: rule is None, unnamed, or its name is already registered
                (names are compared case-insensitively)
        """
        if rule is None:
            raise RuleError("Rule cannot be None")
        if not rule.name:
            raise RuleError("Rule name cannot be empty")
        if self.get_rule(rule.name) is not None:
            raise RuleError(f"Rule already registered: {rule.name}", rule_name=rule.name)

        self._rules.append(rule)
        self._statistics[rule.name] = RuleStatistics()
        logger.info(
            "rule_registered",
            rule=rule.name,
            rule_type=rule.rule_type,
            enabled=rule.enabled,
        )

    def get_rule(self, name: str) -> Optional[Rule]:
        """Find a rule by name (case-insensitive)."""
        for rule in self._rules:
            if rule.name == name:
                return rule
        wanted = name.lower()
        return next((r for r in self._rules if r.name.lower() == wanted), None)

    def get_statistics(self, name: str) -> RuleStatistics:
        """Statistics for a rule; a zeroed record for unknown names."""
        stats = self._statistics.get(name)
        if stats is None:
            return RuleStatistics()
        return stats

    def all_statistics(self) -> dict[str, RuleStatistics]:
        """Point-in-time copy of every rule's statistics, in registration order."""
        return {
            rule.name: replace(self._statistics[rule.name])
            for rule in self._rules
        }

    async def execute_all(self) -> bool:
        """
        Execute all enabled rules concurrently.

        Returns:
            True if every launched rule succeeded (vacuously True when none ran)
        """
        enabled = [r for r in self._rules if r.enabled]
        skipped = len(self._rules) - len(enabled)

        logger.info("execution_pass_started", rules=len(enabled), skipped=skipped)
        start_time = time.monotonic()

        results = await asyncio.gather(*(self._run_rule(rule) for rule in enabled))

        succeeded = sum(1 for r in results if r)
        logger.info(
            "execution_pass_completed",
            succeeded=succeeded,
            failed=len(results) - succeeded,
            duration_ms=round((time.monotonic() - start_time) * 1000, 2),
        )
        return all(results)

    async def execute_rule(self, name: str) -> bool:
        """
        Execute a single rule by name, recording statistics as a pass would.

        Runs the rule even when it is disabled. Raises RuleError for unknown names.
        """
        rule = self.get_rule(name)
        if rule is None:
            raise RuleError(f"Rule not found: {name}", rule_name=name)
        return await self._run_rule(rule)

    async def _run_rule(self, rule: Rule) -> bool:
        """Run one rule and record the attempt. Never raises Exception."""
        started_at = datetime.now()
        start_time = time.monotonic()
        error_message: Optional[str] = None

        try:
            success = bool(await rule.execute())
        except AutomationError as e:
            success = False
            error_message = e.message or e.__class__.__name__
            logger.exception("rule_execution_failed", rule=rule.name, **e.to_dict())
        except Exception as e:
            success = False
            error_message = str(e) or e.__class__.__name__
            logger.exception("rule_execution_failed", rule=rule.name, type=e.__class__.__name__)

        duration = time.monotonic() - start_time

        async with self._stats_lock:
            stats = self._statistics.setdefault(rule.name, RuleStatistics())
            stats.last_execution_time = started_at
            stats.execution_duration = duration
            stats.last_success = success
            if success:
                stats.success_count += 1
            else:
                stats.failure_count += 1
            if error_message is not None:
                stats.last_error_message = error_message

        if not success and error_message is None:
            logger.warning("rule_reported_failure", rule=rule.name)
        logger.debug(
            "rule_executed",
            rule=rule.name,
            success=success,
            duration_ms=round(duration * 1000, 2),
        )
        return success
