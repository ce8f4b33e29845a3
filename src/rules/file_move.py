"""File move rule - sorts files from a source into a target directory."""

from datetime import datetime
from pathlib import Path
from typing import Optional, TYPE_CHECKING

import structlog

from core.config import RuleDefinition, DEFAULT_EXTENSIONS
from core.errors import RuleError
from services.files import FileService
from .base import Rule, setting_bool, setting_list

if TYPE_CHECKING:
    from .registry import RuleServices


logger = structlog.get_logger()

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class FileMoveRule(Rule):
    """
    Moves files with supported extensions from ``source`` to ``target``.

    ``source`` may be a directory or a single file. Identical files already
    present in the target are skipped; differing ones get a timestamp suffix
    when ``add_timestamp`` is set and are replaced otherwise.
    """

    rule_type = "file_move"

    def __init__(
        self,
        name: str,
        source: str,
        target: str,
        file_service: Optional[FileService] = None,
        supported_extensions: Optional[list[str]] = None,
        add_timestamp: bool = True,
        backup_files: bool = False,
        enabled: bool = True,
    ):
        super().__init__(name, enabled)
        if not source or not target:
            raise RuleError("Source and target paths cannot be empty", rule_name=name)

        self.source = Path(source)
        self.target = Path(target)
        self.file_service = file_service or FileService()
        extensions = setting_list(supported_extensions, "supported_extensions", name) or DEFAULT_EXTENSIONS
        self.supported_extensions = [self._normalize_extension(e) for e in extensions]
        self.add_timestamp = setting_bool(add_timestamp, "add_timestamp", name)
        self.backup_files = setting_bool(backup_files, "backup_files", name)

    @classmethod
    def from_definition(cls, definition: RuleDefinition, services: "RuleServices") -> "FileMoveRule":
        settings = definition.settings
        source = settings.get("source") or settings.get("source_path")
        target = settings.get("target") or settings.get("target_path")
        return cls(
            name=definition.name or f"MoveFilesTo_{Path(target or '').name}",
            source=source,
            target=target,
            file_service=services.file_service,
            supported_extensions=settings.get("supported_extensions"),
            add_timestamp=settings.get("add_timestamp", True),
            backup_files=settings.get("backup_files", False),
        )

    async def execute(self) -> bool:
        files = await self.file_service.list_files(self.source)
        if files is None:
            logger.warning("file_move_source_missing", rule=self.name, source=str(self.source))
            return False

        await self.file_service.make_dirs(self.target)

        candidates = [p for p in files if self._is_supported(p)]
        if files == [self.source] and not candidates:
            logger.warning(
                "file_move_extension_unsupported",
                rule=self.name,
                extension=self.source.suffix,
            )

        moved = skipped = failed = 0
        for path in candidates:
            try:
                if await self._move_one(path):
                    moved += 1
                else:
                    skipped += 1
            except OSError as e:
                failed += 1
                logger.error("file_move_failed", rule=self.name, file=path.name, error=str(e))

        logger.info(
            "file_move_completed",
            rule=self.name,
            moved=moved,
            skipped=skipped,
            failed=failed,
        )
        return failed == 0

    async def _move_one(self, path: Path) -> bool:
        """Move one file. Returns False when skipped as a duplicate."""
        dest = self.target / path.name

        if await self.file_service.exists(dest):
            if await self.file_service.files_equal(path, dest):
                logger.info("file_move_duplicate_skipped", rule=self.name, file=path.name)
                return False
            if self.add_timestamp:
                stamp = datetime.now().strftime(TIMESTAMP_FORMAT)
                dest = self.target / f"{path.stem}_{stamp}{path.suffix}"

        if self.backup_files:
            backup_dir = self.target / "backup" / datetime.now().strftime(TIMESTAMP_FORMAT)
            await self.file_service.make_dirs(backup_dir)
            await self.file_service.copy_file(path, backup_dir / path.name)

        await self.file_service.move_file(path, dest)
        return True

    def _is_supported(self, path: Path) -> bool:
        return path.suffix.lower() in self.supported_extensions

    @staticmethod
    def _normalize_extension(extension: str) -> str:
        extension = extension.strip().lower()
        return extension if extension.startswith(".") else f".{extension}"
