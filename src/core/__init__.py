"""Core components: configuration and errors."""

from .config import ConfigLoader, AppConfig, RuleDefinition
from .errors import (
    AutomationError,
    ConfigError,
    RuleError,
    UnknownRuleTypeError,
    RuleExecutionError,
    SchedulerError,
)

__all__ = [
    "ConfigLoader",
    "AppConfig",
    "RuleDefinition",
    "AutomationError",
    "ConfigError",
    "RuleError",
    "UnknownRuleTypeError",
    "RuleExecutionError",
    "SchedulerError",
]
