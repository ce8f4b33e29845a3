"""Rule contract, built-in rules and the rule factory."""

from .base import Rule
from .file_move import FileMoveRule
from .bulk_email import BulkEmailRule
from .data_processing import DataProcessingRule
from .registry import RuleFactory, RuleServices

__all__ = [
    "Rule",
    "FileMoveRule",
    "BulkEmailRule",
    "DataProcessingRule",
    "RuleFactory",
    "RuleServices",
]
