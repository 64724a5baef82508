"""Thread-safe in-memory job registry.

Version workers, HTTP readers and the retention sweeper all touch the
registry concurrently (the sweeper from a worker thread), so every access
goes through one re-entrant lock. Readers receive deep copies and can
never observe a half-applied update.
"""

import asyncio
import copy
import os
from datetime import datetime
from threading import RLock
from typing import Optional

from clipvariants.modules.job.models import (
    Job,
    JobStatus,
    VersionStatus,
    aggregate_status,
    utcnow,
)
from clipvariants.modules.transcoding.worker import MAX_IN_FLIGHT_PROGRESS, OutputDescriptor


class JobStore:
    """Registry of jobs keyed by job id."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._lock = RLock()

    def add(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def get(self, job_id: str) -> Optional[Job]:
        """Get a snapshot of a job, or None if unknown."""
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def remove(self, job_id: str) -> Optional[Job]:
        """Drop a job from the registry and return it."""
        with self._lock:
            self._tasks.pop(job_id, None)
            return self._jobs.pop(job_id, None)

    def job_ids(self) -> set[str]:
        with self._lock:
            return set(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # Version transitions

    def start_version(self, job_id: str, key: str) -> bool:
        with self._lock:
            version = self._version(job_id, key)
            if version is None or version.status != VersionStatus.PENDING:
                return False
            version.status = VersionStatus.PROCESSING
            version.started_at = utcnow()
            return True

    def update_progress(self, job_id: str, key: str, progress: int) -> bool:
        """Raise a version's progress.

        Updates that would move progress backwards, reach 100 before the
        version completed, or touch a version that is not processing are
        ignored.
        """
        with self._lock:
            version = self._version(job_id, key)
            if version is None or version.status != VersionStatus.PROCESSING:
                return False
            value = min(int(progress), MAX_IN_FLIGHT_PROGRESS)
            if value <= version.progress:
                return False
            version.progress = value
            return True

    def complete_version(self, job_id: str, key: str, output: OutputDescriptor) -> bool:
        with self._lock:
            version = self._version(job_id, key)
            if version is None or version.is_terminal:
                return False
            version.status = VersionStatus.COMPLETED
            version.progress = 100
            version.output = output
            version.completed_at = utcnow()
            return True

    def fail_version(self, job_id: str, key: str, error: str) -> bool:
        with self._lock:
            version = self._version(job_id, key)
            if version is None or version.is_terminal:
                return False
            version.status = VersionStatus.FAILED
            version.error = error
            version.completed_at = utcnow()
            return True

    def finish_job(self, job_id: str) -> Optional[Job]:
        """Settle a job's status once every version is terminal.

        Returns a snapshot of the settled job, or None if the job is unknown
        or still has versions in flight.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            status = aggregate_status(job.versions.values())
            if status == JobStatus.PROCESSING:
                return None
            job.status = status
            job.completed_at = utcnow()
            failed = job.failed_versions()
            if failed:
                job.error = f"{len(failed)} of {job.version_count} versions failed"
            return copy.deepcopy(job)

    # Background tasks

    def track_task(self, job_id: str, task: asyncio.Task) -> None:
        with self._lock:
            self._tasks[job_id] = task

    def get_task(self, job_id: str) -> Optional[asyncio.Task]:
        with self._lock:
            return self._tasks.get(job_id)

    def running_tasks(self) -> list[asyncio.Task]:
        with self._lock:
            return [task for task in self._tasks.values() if not task.done()]

    # Retention support

    def expired_job_ids(self, cutoff: datetime) -> list[str]:
        """Ids of terminal jobs that completed before ``cutoff``."""
        with self._lock:
            return [
                job.id
                for job in self._jobs.values()
                if job.is_terminal and job.completed_at is not None and job.completed_at < cutoff
            ]

    def source_in_use(self, source_path: str) -> bool:
        """Whether a job that is still processing reads ``source_path``."""
        target = os.path.abspath(source_path)
        with self._lock:
            return any(
                not job.is_terminal and os.path.abspath(job.source_path) == target
                for job in self._jobs.values()
            )

    def referenced_paths(self) -> set[str]:
        """Absolute paths of every source and output a registered job still owns."""
        with self._lock:
            paths = set()
            for job in self._jobs.values():
                paths.add(os.path.abspath(job.source_path))
                for version in job.versions.values():
                    if version.output is not None:
                        paths.add(os.path.abspath(version.output.path))
            return paths

    def _version(self, job_id: str, key: str):
        job = self._jobs.get(job_id)
        if job is None:
            return None
        return job.versions.get(key)
