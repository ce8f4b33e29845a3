"""File operations run off the event loop."""

import asyncio
import hashlib
import shutil
from pathlib import Path
from typing import Optional, Union

import structlog


logger = structlog.get_logger()

PathLike = Union[str, Path]

HASH_CHUNK_SIZE = 64 * 1024


class FileService:
    """Async wrappers around shutil/hashlib so rules don't block the loop."""

    async def move_file(self, source: PathLike, destination: PathLike) -> Path:
        """Move a file, replacing any existing destination."""
        dest = await asyncio.to_thread(self._move, Path(source), Path(destination))
        logger.debug("file_moved", source=str(source), destination=str(dest))
        return dest

    async def copy_file(self, source: PathLike, destination: PathLike) -> Path:
        """Copy a file with metadata, replacing any existing destination."""
        dest = await asyncio.to_thread(shutil.copy2, str(source), str(destination))
        logger.debug("file_copied", source=str(source), destination=str(dest))
        return Path(dest)

    async def files_equal(self, first: PathLike, second: PathLike) -> bool:
        """Compare two files by content hash."""
        first_hash, second_hash = await asyncio.gather(
            asyncio.to_thread(self.compute_hash, Path(first)),
            asyncio.to_thread(self.compute_hash, Path(second)),
        )
        return first_hash == second_hash

    async def list_files(self, source: PathLike) -> Optional[list[Path]]:
        """Files under a directory, or the file itself. None when missing."""
        return await asyncio.to_thread(self._list_files, Path(source))

    async def make_dirs(self, path: PathLike) -> None:
        await asyncio.to_thread(Path(path).mkdir, parents=True, exist_ok=True)

    async def exists(self, path: PathLike) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    @staticmethod
    def compute_hash(path: Path) -> str:
        """SHA-256 of a file, read in chunks."""
        digest = hashlib.sha256()
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def _move(source: Path, destination: Path) -> Path:
        if destination.exists():
            destination.unlink()
        return Path(shutil.move(str(source), str(destination)))

    @staticmethod
    def _list_files(source: Path) -> Optional[list[Path]]:
        if not source.exists():
            return None
        if source.is_file():
            return [source]
        return sorted(p for p in source.iterdir() if p.is_file())
