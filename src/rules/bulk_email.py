"""Bulk email rule - sends one message per CSV row."""

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from core.config import RuleDefinition
from core.errors import RuleError
from services.data import DataService
from services.email import EmailService, EmailRecipient
from .base import Rule

if TYPE_CHECKING:
    from .registry import RuleServices


logger = structlog.get_logger()


class BulkEmailRule(Rule):
    """Reads recipients (name, email, subject, body, attachments) from a CSV file."""

    rule_type = "bulk_email"

    def __init__(
        self,
        name: str,
        csv_path: str,
        email_service: EmailService,
        data_service: DataService,
        enabled: bool = True,
    ):
        super().__init__(name, enabled)
        if not csv_path:
            raise RuleError("csv_path is required", rule_name=name)
        if email_service is None:
            raise RuleError("Email settings are not configured", rule_name=name)

        self.csv_path = Path(csv_path)
        self.email_service = email_service
        self.data_service = data_service

    @classmethod
    def from_definition(cls, definition: RuleDefinition, services: "RuleServices") -> "BulkEmailRule":
        return cls(
            name=definition.name or "BulkEmailRule",
            csv_path=definition.settings.get("csv_path"),
            email_service=services.email_service,
            data_service=services.data_service,
        )

    async def execute(self) -> bool:
        rows = await self.data_service.read_rows(self.csv_path)

        recipients = []
        for row in rows:
            recipient = EmailRecipient.from_row(row)
            if not recipient.email:
                logger.warning("email_recipient_invalid", rule=self.name, recipient=recipient.name)
                continue
            recipients.append(recipient)

        if not recipients:
            logger.warning("email_no_recipients", rule=self.name, csv=str(self.csv_path))
            return True

        report = await self.email_service.send_bulk(recipients)
        logger.info(
            "bulk_email_completed",
            rule=self.name,
            sent=report.sent,
            failed=len(report.failed),
        )
        return report.success
