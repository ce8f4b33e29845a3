"""Automation runner error definitions."""

from typing import Optional, Any
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for classification."""
    LOW = "low"           # Transient, next pass will likely succeed
    MEDIUM = "medium"     # Rule failed, batch continues
    HIGH = "high"         # Operation aborted
    CRITICAL = "critical" # Startup cannot continue


class ErrorCategory(Enum):
    """Error categories for routing and handling."""
    TRANSIENT = "transient"       # Network, locked file - will likely resolve
    PERMANENT = "permanent"       # Bad config, missing setting - won't resolve
    EXTERNAL = "external"         # SMTP server or file system issue
    VALIDATION = "validation"     # Invalid argument or record


class AutomationError(Exception):
    """Base exception for all automation runner errors."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        context: Optional[dict[str, Any]] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.retryable = retryable

    def fingerprint(self) -> str:
        """Generate error fingerprint for deduplication."""
        import hashlib
        components = [
            self.__class__.__name__,
            self.category.value,
            str(self.context.get("rule_name", "")),
            str(self.context.get("rule_type", "")),
        ]
        return hashlib.sha256(":".join(components).encode()).hexdigest()[:16]

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context,
            "retryable": self.retryable,
            "fingerprint": self.fingerprint(),
        }


class ConfigError(AutomationError):
    """Configuration loading or validation error."""

    def __init__(self, message: str, config_path: Optional[str] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.PERMANENT)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.context["config_path"] = config_path


class RuleError(AutomationError):
    """Invalid rule or rule registration (null, unnamed or duplicate rule)."""

    def __init__(self, message: str, rule_name: Optional[str] = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.context["rule_name"] = rule_name


class UnknownRuleTypeError(RuleError):
    """No constructor registered for a rule type discriminator."""

    def __init__(self, rule_type: str, rule_name: Optional[str] = None, **kwargs):
        super().__init__(f"Unknown rule type: {rule_type}", rule_name=rule_name, **kwargs)
        self.context["rule_type"] = rule_type


class RuleExecutionError(AutomationError):
    """Unrecoverable failure raised from inside a rule's execute()."""

    def __init__(
        self,
        message: str,
        rule_name: Optional[str] = None,
        path: Optional[str] = None,
        **kwargs
    ):
        kwargs.setdefault("category", ErrorCategory.EXTERNAL)
        super().__init__(message, **kwargs)
        self.context["rule_name"] = rule_name
        self.context["path"] = path


class SchedulerError(AutomationError):
    """Invalid scheduler configuration."""

    def __init__(self, message: str, interval_seconds: Any = None, **kwargs):
        kwargs.setdefault("severity", ErrorSeverity.HIGH)
        kwargs.setdefault("category", ErrorCategory.PERMANENT)
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)
        self.context["interval_seconds"] = interval_seconds
