import asyncio
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import aiofiles.os

from safestore.logger_config import setup_logger

logger = setup_logger()

# Stored backups and the temporary files of unfinished uploads
BACKUP_FILE_PATTERN = re.compile(r"[0-9a-f]{64}(\.[A-Za-z0-9]{10})?")


class RetentionSweeper:
    def __init__(self, backup_dir: Path, retention_days: int, interval_seconds: int = 3600):
        """
        Remove backups that have not been written for longer than the retention period.

        Args:
            backup_dir: Directory the blob store writes to
            retention_days: Age in days after which files are removed. 0 disables sweeping
            interval_seconds: Pause between two sweeps when running in the background
        """
        if retention_days < 0:
            raise ValueError("Retention days must not be negative")
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive")

        self._backup_dir = Path(backup_dir)
        self._retention = timedelta(days=retention_days)
        self._interval_seconds = interval_seconds

    @property
    def enabled(self) -> bool:
        return self._retention > timedelta(0)

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Remove expired files once and return how many were removed.

        A file is re-checked right before it is unlinked, so a backup replaced
        by an upload during the sweep is kept. The remaining window between
        that check and the unlink is accepted.
        """
        if not self.enabled:
            return 0

        now = now or datetime.now()
        cutoff = now - self._retention

        files_removed = 0
        for file in self._backup_dir.glob("*"):
            if not BACKUP_FILE_PATTERN.fullmatch(file.name):
                continue
            try:
                stat = await aiofiles.os.stat(file)
                if not file.is_file() or datetime.fromtimestamp(stat.st_mtime) >= cutoff:
                    continue
                # An upload may have replaced the file since the first stat
                current = await aiofiles.os.stat(file)
                if current.st_ino != stat.st_ino or current.st_mtime != stat.st_mtime:
                    continue
                await aiofiles.os.unlink(file)
            except FileNotFoundError:
                # Deleted or renamed by a request since the directory listing
                continue
            except OSError as e:
                logger.error(f"Could not remove expired file {file}: {e}")
                continue
            files_removed += 1

        logger.info(f"Retention sweep removed {files_removed} files older than {cutoff.isoformat()}")
        return files_removed

    async def run(self) -> None:
        """Sweep forever, until the task is cancelled."""
        logger.info(f"Retention sweeper started, interval {self._interval_seconds}s")
        while True:
            try:
                await self.sweep()
            except OSError as e:
                logger.error(f"Retention sweep failed: {e}", exc_info=True)
            await asyncio.sleep(self._interval_seconds)
