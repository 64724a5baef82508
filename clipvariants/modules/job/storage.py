"""Local storage for finished versions and bundle archives."""

import asyncio
import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from typing import Optional

from clipvariants.core.logging import log_warning
from clipvariants.modules.job.exceptions import (
    JobNotFoundError,
    VersionNotFoundError,
    VersionNotReadyError,
)
from clipvariants.modules.job.models import Job, JobStatus, VersionStatus
from clipvariants.modules.job.store import JobStore

logger = logging.getLogger(__name__)

VIDEO_MEDIA_TYPE = "video/mp4"
ARCHIVE_MEDIA_TYPE = "application/zip"


@dataclass(frozen=True)
class DownloadTarget:
    """A file ready to be streamed to a client."""
    path: str
    filename: str
    media_type: str
    version_key: Optional[str] = None


class OutputStore:
    """Names, serves and deletes the files a job produces.

    Every version writes to ``<output_dir>/<job_id>_<key>.mp4``, so versions
    of one job and versions of different jobs can never collide.
    """

    def __init__(self, store: JobStore, output_dir: str):
        """Initialize output store.

        Args:
            store: Job registry used to resolve download requests
            output_dir: Directory holding encoded versions and archives
        """
        self.store = store
        self.output_dir = output_dir
        self._archive_locks: dict[str, asyncio.Lock] = {}

    def ensure_directory(self) -> None:
        os.makedirs(self.output_dir, exist_ok=True)

    def path_for(self, job_id: str, key: str) -> str:
        return os.path.join(self.output_dir, f"{job_id}_{key}.mp4")

    def archive_path_for(self, job_id: str) -> str:
        return os.path.join(self.output_dir, f"{job_id}_versions.zip")

    def download(self, job_id: str, key: str) -> DownloadTarget:
        """Resolve one finished version.

        Raises:
            JobNotFoundError: If the job is unknown
            VersionNotFoundError: If the job has no such version or its file vanished
            VersionNotReadyError: If the version has not completed
        """
        job = self._get_job(job_id)
        version = job.versions.get(key)
        if version is None:
            raise VersionNotFoundError(f"Job {job_id} has no version '{key}'")

        if version.status != VersionStatus.COMPLETED or version.output is None:
            raise VersionNotReadyError(f"Version '{key}' is {version.status.value}")

        if not os.path.isfile(version.output.path):
            raise VersionNotFoundError(f"Output file for version '{key}' no longer exists")

        return DownloadTarget(
            path=version.output.path,
            filename=version.output.filename,
            media_type=VIDEO_MEDIA_TYPE,
            version_key=key,
        )

    async def download_all(self, job_id: str) -> DownloadTarget:
        """Resolve every finished version of a job as one download.

        A single-version job resolves to that version's file. Otherwise a
        ZIP archive is built containing one ``<key>.mp4`` entry per
        completed version.

        Raises:
            JobNotFoundError: If the job is unknown
            VersionNotReadyError: If the job is still processing or nothing completed
        """
        job = self._get_job(job_id)

        if job.version_count == 1:
            only_key = next(iter(job.versions))
            return self.download(job_id, only_key)

        if job.status == JobStatus.PROCESSING:
            raise VersionNotReadyError("Job is still processing")

        entries = [
            (version.output.path, f"{version.key}.mp4")
            for version in job.completed_versions()
            if version.output is not None and os.path.isfile(version.output.path)
        ]
        if not entries:
            raise VersionNotReadyError("Job has no completed versions to download")

        archive_path = self.archive_path_for(job_id)
        # Concurrent requests for one job share a single build
        async with self._archive_locks.setdefault(job_id, asyncio.Lock()):
            await asyncio.to_thread(self._write_archive, job_id, archive_path, entries)

        return DownloadTarget(
            path=archive_path,
            filename=os.path.basename(archive_path),
            media_type=ARCHIVE_MEDIA_TYPE,
        )

    def _write_archive(self, job_id: str, archive_path: str, entries: list[tuple[str, str]]) -> None:
        # Terminal jobs never change, so an existing archive is reused as is
        if os.path.isfile(archive_path):
            return

        fd, partial_path = tempfile.mkstemp(dir=self.output_dir, prefix=f"{job_id}_", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as fh, zipfile.ZipFile(fh, "w", compression=zipfile.ZIP_STORED) as archive:
                for path, arcname in entries:
                    archive.write(path, arcname=arcname)
            os.replace(partial_path, archive_path)
        except Exception:
            self.discard(partial_path)
            raise

        logger.info("Archive written", extra={"archive": archive_path, "entries": len(entries)})

    def delete_job_files(self, job: Job) -> int:
        """Delete every version output and the archive of a job.

        Returns:
            Number of files removed
        """
        paths = {self.path_for(job.id, key) for key in job.versions}
        paths.update(v.output.path for v in job.versions.values() if v.output is not None)
        paths.add(self.archive_path_for(job.id))
        self._archive_locks.pop(job.id, None)
        return sum(1 for path in paths if self.discard(path))

    def discard(self, path: str) -> bool:
        """Delete a file if present."""
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            log_warning(logger, f"Failed to delete output: {e}", path=path)
            return False
        return True

    def _get_job(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job
