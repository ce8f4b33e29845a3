"""SMTP delivery for bulk email rules."""

import asyncio
import mimetypes
import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from pathlib import Path
from typing import Callable, Optional

import structlog

from core.config import EmailConfig


logger = structlog.get_logger()


@dataclass
class EmailRecipient:
    """One outgoing message, usually a CSV row."""
    name: str
    email: str
    subject: str = ""
    body: str = ""
    attachments: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "EmailRecipient":
        attachments = [a.strip() for a in row.get("attachments", "").split(";") if a.strip()]
        return cls(
            name=row.get("name", ""),
            email=row.get("email", ""),
            subject=row.get("subject", ""),
            body=row.get("body", ""),
            attachments=attachments,
        )


@dataclass
class DeliveryReport:
    """Outcome of one bulk send."""
    sent: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class EmailService:
    """
    Sends messages over a single SMTP session per batch.

    The connection is opened in a worker thread and closed by its context
    manager whether or not the batch completes.
    """

    def __init__(
        self,
        config: EmailConfig,
        smtp_factory: Optional[Callable[..., smtplib.SMTP]] = None,
    ):
        self.config = config
        self._smtp_factory = smtp_factory

    async def send_bulk(self, recipients: list[EmailRecipient]) -> DeliveryReport:
        """Send one message per recipient."""
        if not recipients:
            return DeliveryReport()
        return await asyncio.to_thread(self._send_bulk, recipients)

    def build_message(self, recipient: EmailRecipient) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.config.sender
        message["To"] = recipient.email
        message["Subject"] = recipient.subject
        message.set_content(recipient.body or "")
        if recipient.body and "<" in recipient.body:
            message.add_alternative(recipient.body, subtype="html")

        for attachment in recipient.attachments:
            path = Path(attachment)
            if not path.is_file():
                logger.warning("email_attachment_not_found", path=attachment)
                continue
            mime_type, _ = mimetypes.guess_type(path.name)
            maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
            message.add_attachment(
                path.read_bytes(),
                maintype=maintype,
                subtype=subtype,
                filename=path.name,
            )
        return message

    def _connect(self) -> smtplib.SMTP:
        if self._smtp_factory is not None:
            return self._smtp_factory(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.config.timeout_seconds,
            )
        if self.config.use_ssl:
            return smtplib.SMTP_SSL(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.config.timeout_seconds,
                context=ssl.create_default_context(),
            )
        return smtplib.SMTP(
            self.config.smtp_host,
            self.config.smtp_port,
            timeout=self.config.timeout_seconds,
        )

    def _send_bulk(self, recipients: list[EmailRecipient]) -> DeliveryReport:
        report = DeliveryReport()
        with self._connect() as smtp:
            if not self.config.use_ssl and self.config.use_starttls:
                smtp.starttls(context=ssl.create_default_context())
            if self.config.username and self.config.password:
                smtp.login(self.config.username, self.config.password)

            for recipient in recipients:
                try:
                    smtp.send_message(self.build_message(recipient))
                    report.sent += 1
                    logger.info("email_sent", to=recipient.email)
                except (smtplib.SMTPRecipientsRefused, smtplib.SMTPDataError) as e:
                    report.failed.append(recipient.email)
                    logger.warning("email_send_failed", to=recipient.email, error=str(e))

        return report
