"""Retention sweeper.

Reaps terminal jobs once they have been finished for longer than the
retention window, and deletes stray files left in the upload and output
directories. A job is unregistered before its files are removed, so a
reader sees either the whole job or nothing.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from clipvariants.core.logging import log_error, log_info, log_warning
from clipvariants.core.metrics import RETENTION_REMOVED_TOTAL
from clipvariants.modules.job.models import utcnow
from clipvariants.modules.job.storage import OutputStore
from clipvariants.modules.job.store import JobStore

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """What one sweep removed."""
    jobs_removed: list[str] = field(default_factory=list)
    files_removed: int = 0
    stray_files_removed: int = 0


class RetentionSweeper:
    """Periodically reaps finished jobs and old files."""

    def __init__(
        self,
        store: JobStore,
        output_store: OutputStore,
        job_retention: timedelta,
        file_max_age: timedelta,
        interval: float,
        directories: Iterable[str] = (),
    ):
        self.store = store
        self.output_store = output_store
        self.job_retention = job_retention
        self.file_max_age = file_max_age
        self.interval = interval
        self.directories = list(directories)
        self._task: Optional[asyncio.Task] = None

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Run one retention pass."""
        now = now or utcnow()
        result = SweepResult()

        for job_id in self.store.expired_job_ids(now - self.job_retention):
            job = self.store.remove(job_id)
            if job is None:
                continue
            result.jobs_removed.append(job_id)
            result.files_removed += self.output_store.delete_job_files(job)

        result.stray_files_removed = self._sweep_stray_files(now)

        if result.jobs_removed:
            RETENTION_REMOVED_TOTAL.labels(kind="job").inc(len(result.jobs_removed))
        if result.files_removed or result.stray_files_removed:
            RETENTION_REMOVED_TOTAL.labels(kind="file").inc(
                result.files_removed + result.stray_files_removed
            )
        if result.jobs_removed or result.stray_files_removed:
            log_info(
                logger,
                "Retention sweep",
                jobs_removed=len(result.jobs_removed),
                files_removed=result.files_removed,
                stray_files_removed=result.stray_files_removed,
            )
        return result

    def _sweep_stray_files(self, now: datetime) -> int:
        referenced = self.store.referenced_paths()
        job_ids = self.store.job_ids()
        cutoff = (now - self.file_max_age).timestamp()
        removed = 0

        for directory in self.directories:
            try:
                entries = list(os.scandir(directory))
            except FileNotFoundError:
                continue

            for entry in entries:
                if not entry.is_file():
                    continue
                path = os.path.abspath(entry.path)
                # Files still owned by a registered job go with that job
                if path in referenced or entry.name.split("_", 1)[0] in job_ids:
                    continue
                try:
                    if entry.stat().st_mtime >= cutoff:
                        continue
                    os.remove(path)
                except FileNotFoundError:
                    continue
                except OSError as e:
                    log_warning(logger, f"Failed to delete stray file: {e}", path=path)
                    continue
                removed += 1

        return removed

    # ==================== Background loop ====================

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception as e:
                log_error(logger, "Retention sweep failed", exception=e)
