"""Integration module for publishing versions to external media hosts."""

from clipvariants.modules.integration.mixpost import (
    MixpostClient,
    MixpostError,
    MixpostNotConfiguredError,
    MixpostUploadResult,
)

__all__ = [
    "MixpostClient",
    "MixpostError",
    "MixpostNotConfiguredError",
    "MixpostUploadResult",
]
