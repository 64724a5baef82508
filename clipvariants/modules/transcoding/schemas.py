"""Pydantic schemas for the preset catalog."""

from typing import Optional

from pydantic import BaseModel

from clipvariants.modules.transcoding.presets import Preset, estimate_similarity


class PresetInfo(BaseModel):
    """One entry of the preset catalog."""
    key: str
    name: str
    description: str
    speed: float
    crop_percent: float
    pitch_semitones: float
    temperature: Optional[int] = None
    similarity: int

    @classmethod
    def from_preset(cls, preset: Preset) -> "PresetInfo":
        return cls(
            key=preset.key,
            name=preset.name,
            description=preset.description,
            speed=preset.speed,
            crop_percent=preset.crop_percent,
            pitch_semitones=preset.pitch_semitones,
            temperature=preset.temperature,
            similarity=estimate_similarity(preset),
        )


class PresetListResponse(BaseModel):
    """The preset catalog in selection order."""
    presets: list[PresetInfo]
    max_versions: int
