"""Read-side signals for status and download queries."""


class JobLookupError(Exception):
    """Base class for status/download lookups that cannot be served."""

    pass


class JobNotFoundError(JobLookupError):
    """Raised when a job id is unknown or has been reaped."""

    pass


class VersionNotFoundError(JobLookupError):
    """Raised when a job has no such version, or its output file is gone."""

    pass


class VersionNotReadyError(JobLookupError):
    """Raised when a download is requested before the output exists."""

    pass
