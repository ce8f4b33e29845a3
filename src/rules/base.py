"""Rule contract shared by every automation rule."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from core.errors import RuleError


class Rule(ABC):
    """
    A named, enable-able unit of automation work.

    Subclasses implement ``execute()``. Returning False or raising both count
    as a failed attempt; the engine records the outcome either way, so rules
    only need to release their own resources on the error path.
    """

    rule_type: str = "rule"

    def __init__(self, name: str, enabled: bool = True):
        if not name or not name.strip():
            raise RuleError("Rule name cannot be empty", rule_name=name)
        self._name = name
        self.enabled = enabled

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def execute(self) -> bool:
        """Run the rule once. Returns True on success."""

    def __repr__(self) -> str:
        state = "enabled" if self.enabled else "disabled"
        return f"<{self.__class__.__name__} {self._name!r} ({state})>"


TRUE_STRINGS = {"true", "yes", "on", "1"}
FALSE_STRINGS = {"false", "no", "off", "0"}


def setting_list(value: Any, setting: str, rule_name: Optional[str] = None) -> Optional[list[str]]:
    """A list setting; a single string becomes a one-item list."""
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    raise RuleError(f"{setting} must be a string or a list of strings", rule_name=rule_name)


def setting_bool(value: Any, setting: str, rule_name: Optional[str] = None) -> bool:
    """A boolean setting; accepts true/false style strings from flat configs."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise RuleError(f"{setting} must be a boolean, got {value!r}", rule_name=rule_name)
