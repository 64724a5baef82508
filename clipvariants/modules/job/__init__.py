"""Job module for coordinating multi-version encodes.

Holds the in-memory registry, the coordinator that fans jobs out into
version workers, output storage and the retention sweeper.
"""

from clipvariants.modules.job.exceptions import (
    JobLookupError,
    JobNotFoundError,
    VersionNotFoundError,
    VersionNotReadyError,
)
from clipvariants.modules.job.models import Job, JobStatus, VersionState, VersionStatus
from clipvariants.modules.job.store import JobStore
from clipvariants.modules.job.storage import DownloadTarget, OutputStore
from clipvariants.modules.job.service import JobCoordinator
from clipvariants.modules.job.retention import RetentionSweeper, SweepResult

__all__ = [
    # Exceptions
    "JobLookupError",
    "JobNotFoundError",
    "VersionNotFoundError",
    "VersionNotReadyError",
    # Models
    "Job",
    "JobStatus",
    "VersionState",
    "VersionStatus",
    # Registry and storage
    "JobStore",
    "DownloadTarget",
    "OutputStore",
    # Coordination
    "JobCoordinator",
    "RetentionSweeper",
    "SweepResult",
]
