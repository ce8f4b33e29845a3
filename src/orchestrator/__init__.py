"""Engine, scheduler and bootstrap."""

from .engine import AutomationEngine, RuleStatistics
from .scheduler import AutomationScheduler
from .bootstrap import build_engine

__all__ = ["AutomationEngine", "RuleStatistics", "AutomationScheduler", "build_engine"]
