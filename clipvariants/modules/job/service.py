"""Job coordinator.

Accepts submissions, fans each job out into one concurrent version worker
per preset, and settles the job once every version is terminal. A failing
version never fails its siblings.
"""

import asyncio
import logging
import os
from functools import partial
from typing import Optional

from clipvariants.core.logging import bind_job_id, log_error, log_info, log_warning
from clipvariants.core.metrics import (
    JOBS_FINISHED_TOTAL,
    JOBS_SUBMITTED_TOTAL,
    VERSIONS_FINISHED_TOTAL,
)
from clipvariants.modules.job.exceptions import JobNotFoundError
from clipvariants.modules.job.models import Job
from clipvariants.modules.job.storage import OutputStore
from clipvariants.modules.job.store import JobStore
from clipvariants.modules.transcoding.exceptions import (
    IntakeError,
    InvalidCountError,
    TranscodeError,
)
from clipvariants.modules.transcoding.presets import (
    PRESETS,
    Preset,
    get_preset,
    list_presets,
)
from clipvariants.modules.transcoding.worker import VersionWorker

logger = logging.getLogger(__name__)


class JobCoordinator:
    """Runs jobs in the background and tracks them in a ``JobStore``."""

    def __init__(
        self,
        store: JobStore,
        worker: VersionWorker,
        output_store: OutputStore,
        min_versions: int = 1,
        max_versions: int = len(PRESETS),
        source_delete_grace: float = 5.0,
    ):
        """Initialize coordinator.

        Args:
            store: Job registry
            worker: Worker that encodes a single version
            output_store: Names the file each version writes
            min_versions: Smallest accepted version count
            max_versions: Largest accepted version count
            source_delete_grace: Seconds to wait before deleting a finished job's source
        """
        self.store = store
        self.worker = worker
        self.output_store = output_store
        self.min_versions = min_versions
        self.max_versions = min(max_versions, len(PRESETS))
        self.source_delete_grace = source_delete_grace
        self._cleanup_tasks: set[asyncio.Task] = set()

    # ==================== Intake ====================

    def resolve_presets(
        self,
        version_count: Optional[int] = None,
        preset_keys: Optional[list[str]] = None,
    ) -> list[tuple[str, Preset]]:
        """Pick the presets a job will run, in catalog order or as requested.

        Raises:
            InvalidCountError: If the count is outside the accepted range
            UnknownPresetError: If an explicit key is not in the catalog
            IntakeError: If explicit keys repeat
        """
        if preset_keys is not None:
            if not preset_keys:
                raise InvalidCountError("preset_keys must name at least one preset")
            if len(set(preset_keys)) != len(preset_keys):
                raise IntakeError("Preset keys must be unique")
            if version_count is not None and version_count != len(preset_keys):
                raise InvalidCountError(
                    f"version_count {version_count} does not match {len(preset_keys)} preset keys"
                )
            self._check_count(len(preset_keys))
            return [(key, get_preset(key)) for key in preset_keys]

        count = self.min_versions if version_count is None else version_count
        self._check_count(count)
        return list_presets(count)

    def _check_count(self, count: int) -> None:
        if count < self.min_versions or count > self.max_versions:
            raise InvalidCountError(
                f"Version count must be between {self.min_versions} and {self.max_versions}, got {count}"
            )

    async def submit(
        self,
        source_path: str,
        version_count: Optional[int] = None,
        preset_keys: Optional[list[str]] = None,
        original_filename: Optional[str] = None,
    ) -> str:
        """Register a job and start its versions in the background.

        Returns as soon as the job is registered; encoding continues after
        this call returns.

        Returns:
            The new job id

        Raises:
            IntakeError: If the request is rejected; no job is created
        """
        presets = self.resolve_presets(version_count, preset_keys)

        if not os.path.isfile(source_path):
            raise IntakeError(f"Source file not found: {os.path.basename(source_path)}")

        job = Job.create(source_path, presets, original_filename=original_filename)
        self.store.add(job)
        JOBS_SUBMITTED_TOTAL.inc()

        task = asyncio.create_task(self._run_job(job.id, source_path, presets))
        self.store.track_task(job.id, task)

        log_info(logger, "Job submitted", job_id=job.id, versions=[key for key, _ in presets])
        return job.id

    # ==================== Queries ====================

    def get_status(self, job_id: str) -> Job:
        """Get a snapshot of a job.

        Raises:
            JobNotFoundError: If the job is unknown or has been reaped
        """
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    async def wait(self, job_id: str) -> Job:
        """Wait until every version of a job is terminal."""
        task = self.store.get_task(job_id)
        if task is not None:
            await task
        return self.get_status(job_id)

    # ==================== Execution ====================

    async def _run_job(self, job_id: str, source_path: str, presets: list[tuple[str, Preset]]) -> None:
        bind_job_id(job_id)
        await asyncio.gather(
            *(self._run_version(job_id, source_path, key, preset) for key, preset in presets)
        )

        job = self.store.finish_job(job_id)
        if job is not None:
            JOBS_FINISHED_TOTAL.labels(status=job.status.value).inc()
            log_info(
                logger,
                "Job finished",
                status=job.status.value,
                completed=len(job.completed_versions()),
                failed=len(job.failed_versions()),
                total_time=job.total_time,
            )

        self._schedule_source_cleanup(source_path)

    async def _run_version(self, job_id: str, source_path: str, key: str, preset: Preset) -> None:
        self.store.start_version(job_id, key)
        output_path = self.output_store.path_for(job_id, key)

        try:
            output = await self.worker.run(
                source_path,
                preset,
                output_path,
                on_progress=partial(self.store.update_progress, job_id, key),
            )
        except TranscodeError as e:
            log_warning(logger, f"Version {key} failed: {e}", preset=key)
            self._fail_version(job_id, key, str(e), output_path)
            return
        except Exception as e:
            log_error(
                logger,
                f"Unexpected error encoding version {key}",
                exception=e,
                preset=key,
            )
            self._fail_version(job_id, key, f"Unexpected error: {e}", output_path)
            return

        self.store.complete_version(job_id, key, output)
        VERSIONS_FINISHED_TOTAL.labels(status="completed").inc()

    def _fail_version(self, job_id: str, key: str, error: str, output_path: str) -> None:
        self.store.fail_version(job_id, key, error)
        self.output_store.discard(output_path)
        VERSIONS_FINISHED_TOTAL.labels(status="failed").inc()

    # ==================== Source cleanup ====================

    def _schedule_source_cleanup(self, source_path: str) -> None:
        task = asyncio.create_task(self._delete_source_later(source_path))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _delete_source_later(self, source_path: str) -> None:
        await asyncio.sleep(self.source_delete_grace)

        # Another job may have been submitted against the same upload
        if self.store.source_in_use(source_path):
            return

        try:
            await asyncio.to_thread(os.remove, source_path)
        except FileNotFoundError:
            return
        except OSError as e:
            log_warning(logger, f"Failed to delete source: {e}", source=source_path)
            return
        log_info(logger, "Source deleted", source=source_path)

    async def shutdown(self) -> None:
        """Cancel pending source cleanups and in-flight jobs."""
        tasks = list(self._cleanup_tasks) + self.store.running_tasks()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
