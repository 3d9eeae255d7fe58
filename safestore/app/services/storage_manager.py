import os
import random
import string
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

import aiofiles
import aiofiles.os

from safestore.app.validators import is_valid_backup_id
from safestore.logger_config import setup_logger

logger = setup_logger()

FILE_MODE = 0o600
TEMP_SUFFIX_LENGTH = 10
TEMP_SUFFIX_CHARS = string.ascii_letters + string.digits
CHUNK_SIZE = 8192  # 8KB chunks


def _private_opener(path, flags):
    return os.open(path, flags, FILE_MODE)


class StorageError(Exception):
    """Raised when the store refuses to complete a write."""


class PathKind(Enum):
    MISSING = "missing"
    FILE = "file"
    OTHER = "other"


class BlobStore:
    """Backups stored as one file per backup id inside a single directory.

    Uploads are written to a temporary sibling file first and renamed onto
    the final name, so readers never see a partially written backup.
    """

    def __init__(self, backup_dir: Path):
        self.backup_dir = Path(backup_dir)

    async def initialize(self):
        """Create the backup directory if it doesn't exist."""
        logger.info("Initializing blob store...")
        self.backup_dir.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Backup directory created/verified: {self.backup_dir}")

    def get_backup_path(self, backup_id: str) -> Path:
        """Get the path where a backup is stored based on its ID."""
        # Never build a path from an unchecked id
        if not is_valid_backup_id(backup_id):
            raise ValueError(f"Invalid backup ID: {backup_id!r}")
        return self.backup_dir / backup_id

    async def path_kind(self, backup_id: str) -> PathKind:
        path = self.get_backup_path(backup_id)
        if not await aiofiles.os.path.exists(path):
            return PathKind.MISSING
        if await aiofiles.os.path.isfile(path):
            return PathKind.FILE
        return PathKind.OTHER

    async def exists(self, backup_id: str) -> bool:
        return await self.path_kind(backup_id) is PathKind.FILE

    async def open_backup(self, backup_id: str) -> Tuple[AsyncIterator[bytes], int]:
        """Open a stored backup for reading.

        Returns an iterator over the file content and the file size. The file
        is opened before returning so that open errors surface to the caller,
        and it is closed once the iterator is exhausted.
        """
        path = self.get_backup_path(backup_id)
        f = await aiofiles.open(path, 'rb')
        try:
            size = (await aiofiles.os.stat(path)).st_size
        except OSError:
            await f.close()
            raise

        async def file_iterator():
            try:
                while chunk := await f.read(CHUNK_SIZE):
                    yield chunk
            finally:
                await f.close()

        return file_iterator(), size

    def _temporary_path(self, backup_path: Path) -> Path:
        suffix = ''.join(random.choices(TEMP_SUFFIX_CHARS, k=TEMP_SUFFIX_LENGTH))
        return backup_path.with_name(f"{backup_path.name}.{suffix}")

    async def write(self, backup_id: str, chunks: AsyncIterator[bytes],
                    max_bytes: Optional[int] = None) -> bool:
        """Store a backup from a stream of chunks.

        Returns True if an existing backup was replaced, False if it was
        created. On failure the temporary file is left behind.
        """
        backup_path = self.get_backup_path(backup_id)
        temp_path = self._temporary_path(backup_path)
        logger.debug(f"Writing temporary upload to {temp_path}")
        if await aiofiles.os.path.exists(temp_path):
            logger.error(f"Random upload path {temp_path} already exists!")
            raise StorageError(f"Temporary path {temp_path} already exists")

        # 'x' refuses to open a path that appeared since the check above
        written = 0
        async with aiofiles.open(temp_path, 'xb', opener=_private_opener) as f:
            os.fchmod(f.fileno(), FILE_MODE)
            async for chunk in chunks:
                if not chunk:
                    continue
                written += len(chunk)
                if max_bytes is not None and written > max_bytes:
                    raise StorageError(f"Upload exceeds declared length of {max_bytes} bytes")
                await f.write(chunk)
        logger.debug(f"Wrote temp backup for {backup_id} ({written} bytes)")

        updated = await aiofiles.os.path.isfile(backup_path)
        await aiofiles.os.replace(temp_path, backup_path)
        logger.debug(f"Renamed: {temp_path} -> {backup_path}")
        return updated

    async def delete(self, backup_id: str):
        await aiofiles.os.remove(self.get_backup_path(backup_id))
