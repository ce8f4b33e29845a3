"""Blocking I/O services used by the built-in rules."""

from .files import FileService
from .data import DataService, DataRecord
from .email import EmailService, EmailRecipient

__all__ = ["FileService", "DataService", "DataRecord", "EmailService", "EmailRecipient"]
