"""Exception types for intake and transcoding.

Intake errors are raised before a job exists and leave no state behind.
Transcode errors fail a single version and never its siblings.
"""


class IntakeError(Exception):
    """Base class for submissions rejected before a job is created."""

    pass


class InvalidCountError(IntakeError):
    """Raised when the requested version count is outside the allowed range."""

    pass


class UnknownPresetError(IntakeError):
    """Raised when a submission names a preset key that is not in the catalog."""

    pass


class TranscodeError(Exception):
    """Base class for failures that terminate a single version."""

    pass


class ProbeError(TranscodeError):
    """Raised when the source has no decodable video stream.

    Also raised when the probe tool itself cannot be run or returns output
    that cannot be parsed.
    """

    pass


class EncodeError(TranscodeError):
    """Raised when the encoder reports a failure.

    The message is the encoder's own diagnostic, preserved verbatim so it can
    be shown on the failed version. Diagnostics over ``ERROR_MAX_BYTES`` keep
    only their final bytes, prefixed with a truncation marker.
    """

    pass
