"""In-memory job models.

A job owns one VersionState per requested preset. Job state lives only as
long as the process; nothing here is persisted.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from clipvariants.modules.transcoding.presets import Preset
from clipvariants.modules.transcoding.worker import OutputDescriptor


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Status of a job."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VersionStatus(str, Enum):
    """Status of a single version within a job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_VERSION_STATUSES = frozenset({VersionStatus.COMPLETED, VersionStatus.FAILED})


@dataclass
class VersionState:
    """Progress and outcome of one version."""
    key: str
    preset_name: str
    status: VersionStatus = VersionStatus.PENDING
    progress: int = 0  # 0-100
    output: Optional[OutputDescriptor] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_VERSION_STATUSES


def aggregate_status(versions: Iterable[VersionState]) -> JobStatus:
    """Derive a job status from its versions.

    A job is processing while any version is not terminal, completed when
    every version completed, and failed otherwise.
    """
    states = list(versions)
    if not states or any(not v.is_terminal for v in states):
        return JobStatus.PROCESSING
    if all(v.status == VersionStatus.COMPLETED for v in states):
        return JobStatus.COMPLETED
    return JobStatus.FAILED


@dataclass
class Job:
    """One submission and all of its versions."""
    id: str
    source_path: str
    original_filename: str
    versions: dict[str, VersionState]
    status: JobStatus = JobStatus.PROCESSING
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        source_path: str,
        presets: list[tuple[str, Preset]],
        original_filename: Optional[str] = None,
    ) -> "Job":
        """Create a processing job with every version pending."""
        return cls(
            id=uuid.uuid4().hex,
            source_path=source_path,
            original_filename=original_filename or source_path.rsplit("/", 1)[-1],
            versions={key: VersionState(key=key, preset_name=preset.name) for key, preset in presets},
        )

    @property
    def version_count(self) -> int:
        return len(self.versions)

    @property
    def progress(self) -> float:
        """Mean of the per-version progress values."""
        if not self.versions:
            return 0.0
        return sum(v.progress for v in self.versions.values()) / len(self.versions)

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatus.PROCESSING

    @property
    def total_time(self) -> Optional[float]:
        """Seconds from submission to completion."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.created_at).total_seconds()

    def completed_versions(self) -> list[VersionState]:
        return [v for v in self.versions.values() if v.status == VersionStatus.COMPLETED]

    def failed_versions(self) -> list[VersionState]:
        return [v for v in self.versions.values() if v.status == VersionStatus.FAILED]

    def __repr__(self) -> str:
        return f"<Job {self.id} - {self.version_count} versions - {self.status.value}>"
