"""Data processing rule - validates the rows of a data file."""

from pathlib import Path
from typing import Optional, TYPE_CHECKING

import structlog

from core.config import RuleDefinition
from core.errors import RuleError
from services.data import DataService
from .base import Rule, setting_list

if TYPE_CHECKING:
    from .registry import RuleServices


logger = structlog.get_logger()


class DataProcessingRule(Rule):
    """Succeeds when the file holds at least one row with every required column."""

    rule_type = "data_processing"

    def __init__(
        self,
        name: str,
        file_path: str,
        required_columns: Optional[list[str]] = None,
        data_service: Optional[DataService] = None,
        enabled: bool = True,
    ):
        super().__init__(name, enabled)
        if not file_path:
            raise RuleError("file_path is required", rule_name=name)

        self.file_path = Path(file_path)
        self.required_columns = setting_list(required_columns, "required_columns", name) or []
        self.data_service = data_service or DataService()

    @classmethod
    def from_definition(cls, definition: RuleDefinition, services: "RuleServices") -> "DataProcessingRule":
        settings = definition.settings
        return cls(
            name=definition.name or "DataProcessingRule",
            file_path=settings.get("file_path") or settings.get("data_path"),
            required_columns=settings.get("required_columns"),
            data_service=services.data_service,
        )

    async def execute(self) -> bool:
        valid, rejected = await self.data_service.parse_data_file(
            self.file_path, self.required_columns
        )

        for record in rejected:
            logger.warning(
                "data_record_rejected",
                rule=self.name,
                row=record.row,
                missing=record.missing(self.required_columns),
            )
        for record in valid:
            logger.debug("data_record", rule=self.name, row=record.row, fields=record.fields)

        if not valid:
            logger.warning("data_no_valid_records", rule=self.name, path=str(self.file_path))
            return False
        return True
