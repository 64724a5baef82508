"""Transcoding module for producing visually varied versions of a video.

Holds the preset catalog, the filter-graph builder, the FFmpeg encoder and
the per-version worker.
"""

from clipvariants.modules.transcoding.exceptions import (
    IntakeError,
    InvalidCountError,
    UnknownPresetError,
    TranscodeError,
    ProbeError,
    EncodeError,
)
from clipvariants.modules.transcoding.presets import (
    Preset,
    PRESETS,
    PRESET_CATALOG,
    list_presets,
    get_preset,
    estimate_similarity,
)
from clipvariants.modules.transcoding.filters import CropBox, FilterOp, TransformPlan, build_plan
from clipvariants.modules.transcoding.ffmpeg import (
    Encoder,
    FFmpegEncoder,
    ProbeResult,
    QualityProfile,
    HIGH_QUALITY_PROFILE,
)
from clipvariants.modules.transcoding.worker import VersionWorker, OutputDescriptor

__all__ = [
    # Exceptions
    "IntakeError",
    "InvalidCountError",
    "UnknownPresetError",
    "TranscodeError",
    "ProbeError",
    "EncodeError",
    # Presets
    "Preset",
    "PRESETS",
    "PRESET_CATALOG",
    "list_presets",
    "get_preset",
    "estimate_similarity",
    # Filter graph
    "CropBox",
    "FilterOp",
    "TransformPlan",
    "build_plan",
    # Encoder
    "Encoder",
    "FFmpegEncoder",
    "ProbeResult",
    "QualityProfile",
    "HIGH_QUALITY_PROFILE",
    # Worker
    "VersionWorker",
    "OutputDescriptor",
]
