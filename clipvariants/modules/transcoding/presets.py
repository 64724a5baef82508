"""Preset catalog for visually varied versions.

Each preset is a fixed set of small visual/audio adjustments. A job asking
for N versions always receives the first N presets of the catalog, in order.
"""

from dataclasses import dataclass
from typing import Optional

from clipvariants.modules.transcoding.exceptions import InvalidCountError, UnknownPresetError

# atempo accepts factors in this range in a single filter instance
MIN_SPEED = 0.5
MAX_SPEED = 2.0


@dataclass(frozen=True)
class Preset:
    """A named, immutable set of variation parameters."""
    key: str
    name: str
    description: str
    speed: float = 1.0
    brightness: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0
    crop_percent: float = 0.0
    pitch_semitones: float = 0.0
    temperature: Optional[int] = None  # Kelvin, 6500 is neutral
    sharpen: Optional[float] = None  # unsharp luma amount
    blur_sigma: Optional[float] = None
    vignette: bool = False

    def __post_init__(self) -> None:
        if not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(f"Preset {self.key}: speed {self.speed} outside [{MIN_SPEED}, {MAX_SPEED}]")
        if not 0 <= self.crop_percent < 50:
            raise ValueError(f"Preset {self.key}: crop_percent {self.crop_percent} outside [0, 50)")


PRESETS: tuple[Preset, ...] = (
    Preset(
        key="crisp",
        name="Crisp",
        description="Slightly brighter and sharper, original framing and speed",
        brightness=0.02,
        contrast=1.04,
        saturation=1.06,
        sharpen=0.4,
    ),
    Preset(
        key="warm",
        name="Warm",
        description="Warm colour bias with a light crop and a touch faster",
        speed=1.02,
        brightness=0.01,
        contrast=1.02,
        saturation=1.08,
        crop_percent=4,
        pitch_semitones=0.3,
        temperature=5200,
    ),
    Preset(
        key="cool",
        name="Cool",
        description="Cool colour bias, slightly slower and sharper",
        speed=0.98,
        brightness=-0.01,
        contrast=1.03,
        saturation=0.96,
        crop_percent=6,
        pitch_semitones=-0.3,
        temperature=7800,
        sharpen=0.3,
    ),
    Preset(
        key="soft",
        name="Soft",
        description="Soft focus with vignette and a tighter crop",
        speed=1.03,
        brightness=0.015,
        contrast=0.98,
        saturation=1.02,
        crop_percent=8,
        pitch_semitones=0.5,
        blur_sigma=0.6,
        vignette=True,
    ),
    Preset(
        key="vivid",
        name="Vivid",
        description="High contrast and saturation with the tightest crop",
        speed=0.97,
        brightness=0.03,
        contrast=1.08,
        saturation=1.15,
        crop_percent=10,
        pitch_semitones=-0.5,
        sharpen=0.6,
        vignette=True,
    ),
)

PRESET_CATALOG: dict[str, Preset] = {preset.key: preset for preset in PRESETS}


def list_presets(count: int) -> list[tuple[str, Preset]]:
    """Return the first ``count`` presets of the catalog.

    Args:
        count: Number of versions requested

    Returns:
        Ordered list of (key, preset) pairs

    Raises:
        InvalidCountError: If count is below 1 or above the catalog size
    """
    if count < 1 or count > len(PRESETS):
        raise InvalidCountError(
            f"Version count must be between 1 and {len(PRESETS)}, got {count}"
        )
    return [(preset.key, preset) for preset in PRESETS[:count]]


def get_preset(key: str) -> Preset:
    """Look up a preset by key.

    Raises:
        UnknownPresetError: If the key is not in the catalog
    """
    try:
        return PRESET_CATALOG[key]
    except KeyError:
        raise UnknownPresetError(
            f"Unknown preset '{key}'. Available: {', '.join(PRESET_CATALOG)}"
        ) from None


def estimate_similarity(preset: Preset) -> int:
    """Estimate how close a version looks to its source, as a percentage.

    Every adjustment that departs noticeably from neutral lowers the score.
    The result is clamped to [60, 95]; no version is ever reported identical.
    """
    similarity = 100
    if abs(preset.speed - 1) > 0.02:
        similarity -= 5
    if abs(preset.brightness) > 0.01:
        similarity -= 3
    if abs(preset.contrast - 1) > 0.01:
        similarity -= 3
    if abs(preset.saturation - 1) > 0.05:
        similarity -= 2
    if preset.crop_percent > 1:
        similarity -= 2
    if preset.pitch_semitones:
        similarity -= 4
    if preset.temperature is not None:
        similarity -= 3
    if preset.sharpen:
        similarity -= 2
    if preset.blur_sigma:
        similarity -= 2
    if preset.vignette:
        similarity -= 5
    return max(60, min(95, similarity))
