"""Filter-graph builder.

Turns a preset plus the probed source geometry into a fully resolved
transformation plan. Building a plan has no side effects, so identical inputs
always yield equal plans and the plan can be checked without running FFmpeg.
"""

import math
from dataclasses import dataclass
from typing import Optional

from clipvariants.modules.transcoding.presets import Preset

DEFAULT_OUTPUT_WIDTH = 1920
DEFAULT_OUTPUT_HEIGHT = 1080
DEFAULT_SAMPLE_RATE = 48000

# EBU R128 style loudness target
LOUDNORM_INTEGRATED = -16
LOUDNORM_TRUE_PEAK = -1.5
LOUDNORM_RANGE = 11


def _fmt(value: float) -> str:
    """Render a number for a filter argument without float noise."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.6g}"


@dataclass(frozen=True)
class CropBox:
    """Centered crop rectangle in source pixels."""
    width: int
    height: int
    x: int
    y: int


@dataclass(frozen=True)
class FilterOp:
    """One FFmpeg filter with its named arguments, in argument order."""
    name: str
    params: tuple[tuple[str, str], ...] = ()

    def render(self) -> str:
        if not self.params:
            return self.name
        args = ":".join(f"{key}={value}" for key, value in self.params)
        return f"{self.name}={args}"


@dataclass(frozen=True)
class TransformPlan:
    """Resolved encoder parameters for one version.

    Video operations run crop/scale, eq, colour temperature, sharpen, blur,
    vignette and finally the speed change. Audio operations run the pitch
    shift, loudness normalisation and finally the speed change.
    """
    preset_key: str
    source_width: int
    source_height: int
    crop: Optional[CropBox]
    output_width: int
    output_height: int
    speed: float
    pitch_semitones: float
    video_operations: tuple[FilterOp, ...]
    audio_operations: tuple[FilterOp, ...]

    def video_filters(self) -> list[str]:
        return [op.render() for op in self.video_operations]

    def audio_filters(self) -> list[str]:
        return [op.render() for op in self.audio_operations]


def compute_crop_box(width: int, height: int, crop_percent: float) -> Optional[CropBox]:
    """Compute a centered crop keeping ``100 - crop_percent`` of each dimension.

    Returns None when crop_percent is 0 (scale directly, no crop).
    """
    if not crop_percent:
        return None
    keep = 1 - crop_percent / 100
    crop_width = math.floor(width * keep)
    crop_height = math.floor(height * keep)
    return CropBox(
        width=crop_width,
        height=crop_height,
        x=math.floor((width - crop_width) / 2),
        y=math.floor((height - crop_height) / 2),
    )


def _video_operations(
    preset: Preset,
    crop: Optional[CropBox],
    output_width: int,
    output_height: int,
) -> list[FilterOp]:
    ops: list[FilterOp] = []

    if crop is not None:
        ops.append(FilterOp("crop", (
            ("w", str(crop.width)),
            ("h", str(crop.height)),
            ("x", str(crop.x)),
            ("y", str(crop.y)),
        )))
    ops.append(FilterOp("scale", (
        ("w", str(output_width)),
        ("h", str(output_height)),
        ("force_original_aspect_ratio", "decrease"),
    )))

    ops.append(FilterOp("eq", (
        ("brightness", _fmt(preset.brightness)),
        ("contrast", _fmt(preset.contrast)),
        ("saturation", _fmt(preset.saturation)),
    )))

    if preset.temperature is not None:
        ops.append(FilterOp("colortemperature", (("temperature", str(preset.temperature)),)))
    if preset.sharpen:
        ops.append(FilterOp("unsharp", (
            ("luma_msize_x", "5"),
            ("luma_msize_y", "5"),
            ("luma_amount", _fmt(preset.sharpen)),
        )))
    if preset.blur_sigma:
        ops.append(FilterOp("gblur", (("sigma", _fmt(preset.blur_sigma)),)))
    if preset.vignette:
        ops.append(FilterOp("vignette"))

    if preset.speed != 1:
        ops.append(FilterOp("setpts", (("expr", f"{_fmt(1 / preset.speed)}*PTS"),)))

    return ops


def _audio_operations(preset: Preset, sample_rate: int) -> list[FilterOp]:
    ops: list[FilterOp] = []

    if preset.pitch_semitones:
        # Retune the sample rate to move pitch, resample back, then undo the
        # tempo change the retune introduced so duration is untouched.
        factor = 2 ** (preset.pitch_semitones / 12)
        ops.append(FilterOp("asetrate", (("r", str(round(sample_rate * factor))),)))
        ops.append(FilterOp("aresample", (("osr", str(sample_rate)),)))
        ops.append(FilterOp("atempo", (("tempo", _fmt(1 / factor)),)))

    ops.append(FilterOp("loudnorm", (
        ("I", _fmt(LOUDNORM_INTEGRATED)),
        ("TP", _fmt(LOUDNORM_TRUE_PEAK)),
        ("LRA", _fmt(LOUDNORM_RANGE)),
    )))

    if preset.speed != 1:
        ops.append(FilterOp("atempo", (("tempo", _fmt(preset.speed)),)))

    return ops


def build_plan(
    preset: Preset,
    width: int,
    height: int,
    *,
    output_width: int = DEFAULT_OUTPUT_WIDTH,
    output_height: int = DEFAULT_OUTPUT_HEIGHT,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> TransformPlan:
    """Build the transformation plan for one preset and source geometry.

    Args:
        preset: Variation preset
        width: Probed source width in pixels
        height: Probed source height in pixels
        output_width: Output frame width applied after cropping
        output_height: Output frame height applied after cropping
        sample_rate: Source audio sample rate, used by the pitch shift

    Returns:
        TransformPlan for the encoder

    Raises:
        ValueError: If the source geometry is not positive
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid source geometry {width}x{height}")

    crop = compute_crop_box(width, height, preset.crop_percent)

    return TransformPlan(
        preset_key=preset.key,
        source_width=width,
        source_height=height,
        crop=crop,
        output_width=output_width,
        output_height=output_height,
        speed=preset.speed,
        pitch_semitones=preset.pitch_semitones,
        video_operations=tuple(_video_operations(preset, crop, output_width, output_height)),
        audio_operations=tuple(_audio_operations(preset, sample_rate)),
    )
