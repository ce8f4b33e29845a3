"""Rule factory - maps type discriminators to rule constructors."""

from dataclasses import dataclass, field
from typing import Callable, Optional

from core.config import RuleDefinition, EmailConfig
from core.errors import UnknownRuleTypeError
from services.data import DataService
from services.email import EmailService
from services.files import FileService
from .base import Rule
from .bulk_email import BulkEmailRule
from .data_processing import DataProcessingRule
from .file_move import FileMoveRule


@dataclass
class RuleServices:
    """Collaborators handed to rule constructors."""
    file_service: FileService = field(default_factory=FileService)
    data_service: DataService = field(default_factory=DataService)
    email_service: Optional[EmailService] = None

    @classmethod
    def from_email_config(cls, email_config: EmailConfig) -> "RuleServices":
        email_service = EmailService(email_config) if email_config.is_configured else None
        return cls(email_service=email_service)


# Type alias for rule constructors
RuleConstructor = Callable[[RuleDefinition, RuleServices], Rule]


class RuleFactory:
    """
    Registry of rule constructors keyed by type discriminator.

    Discriminators are matched case-insensitively, so ``FileMoveRule``,
    ``filemoverule`` and ``file_move`` can all point at the same constructor.
    """

    def __init__(self):
        self._constructors: dict[str, RuleConstructor] = {}
        self._register_builtin_rules()

    def register(self, rule_type: str, constructor: RuleConstructor) -> None:
        """Register a rule constructor."""
        self._constructors[rule_type.strip().lower()] = constructor

    def unregister(self, rule_type: str) -> None:
        """Unregister a rule constructor."""
        self._constructors.pop(rule_type.strip().lower(), None)

    def is_known(self, rule_type: str) -> bool:
        return rule_type.strip().lower() in self._constructors

    def list_types(self) -> list[str]:
        """List all registered discriminators."""
        return list(self._constructors.keys())

    def create(self, definition: RuleDefinition, services: RuleServices) -> Rule:
        """
        Build a rule from its definition.

        Raises:
            UnknownRuleTypeError: no constructor for ``definition.type``
            RuleError: the definition's settings are invalid
        """
        constructor = self._constructors.get(definition.type_key)
        if constructor is None:
            raise UnknownRuleTypeError(definition.type, rule_name=definition.name)

        rule = constructor(definition, services)
        rule.enabled = definition.enabled
        return rule

    def _register_builtin_rules(self) -> None:
        """Register built-in rule types."""
        for rule_cls in (FileMoveRule, BulkEmailRule, DataProcessingRule):
            self.register(rule_cls.__name__, rule_cls.from_definition)
            self.register(rule_cls.rule_type, rule_cls.from_definition)
