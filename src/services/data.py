"""CSV record parsing."""

import asyncio
import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

import structlog

from core.errors import RuleExecutionError


logger = structlog.get_logger()

SUPPORTED_DATA_EXTENSIONS = (".csv",)


@dataclass
class DataRecord:
    """One parsed data row."""
    row: int
    fields: dict[str, str] = field(default_factory=dict)

    def missing(self, required_columns: list[str]) -> list[str]:
        """Required columns that are absent or blank in this row."""
        return [
            column for column in required_columns
            if not (self.fields.get(column) or "").strip()
        ]


class DataService:
    """Reads CSV files into dict rows or validated DataRecords."""

    async def read_rows(self, path: Union[str, Path]) -> list[dict[str, str]]:
        """Read a CSV file into a list of dict rows."""
        return await asyncio.to_thread(self._read_rows, Path(path))

    async def parse_data_file(
        self,
        path: Union[str, Path],
        required_columns: list[str],
    ) -> tuple[list[DataRecord], list[DataRecord]]:
        """
        Parse a data file and split it into valid and rejected records.

        Returns:
            (valid, rejected) where rejected rows miss a required column value

        Raises:
            FileNotFoundError: the file does not exist
            RuleExecutionError: unsupported file type or missing header columns
        """
        path = Path(path)
        if path.suffix.lower() not in SUPPORTED_DATA_EXTENSIONS:
            raise RuleExecutionError(
                f"Unsupported file type: {path.suffix or '<none>'}",
                path=str(path),
            )

        rows = await self.read_rows(path)
        if rows:
            absent = [c for c in required_columns if c not in rows[0]]
            if absent:
                raise RuleExecutionError(
                    f"Missing required columns: {', '.join(absent)}",
                    path=str(path),
                )

        valid: list[DataRecord] = []
        rejected: list[DataRecord] = []
        # Row 1 is the header
        for index, row in enumerate(rows, start=2):
            record = DataRecord(row=index, fields=row)
            if record.missing(required_columns):
                rejected.append(record)
            else:
                valid.append(record)

        logger.info(
            "data_file_parsed",
            path=str(path),
            valid=len(valid),
            rejected=len(rejected),
        )
        return valid, rejected

    @staticmethod
    def _read_rows(path: Path) -> list[dict[str, Any]]:
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            return [
                {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}
                for row in reader
            ]
