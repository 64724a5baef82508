"""Property-based tests for the preset catalog."""

import pytest
from hypothesis import given, settings, strategies as st

from clipvariants.modules.transcoding.exceptions import (
    IntakeError,
    InvalidCountError,
    UnknownPresetError,
)
from clipvariants.modules.transcoding.presets import (
    PRESETS,
    PRESET_CATALOG,
    Preset,
    estimate_similarity,
    get_preset,
    list_presets,
)


valid_count_strategy = st.integers(min_value=1, max_value=len(PRESETS))
invalid_count_strategy = st.one_of(
    st.integers(max_value=0),
    st.integers(min_value=len(PRESETS) + 1),
)


class TestListPresets:
    """A request for N versions receives the first N presets, in order."""

    @given(count=valid_count_strategy)
    @settings(max_examples=50)
    def test_returns_exactly_count_distinct_presets(self, count: int) -> None:
        selected = list_presets(count)

        assert len(selected) == count
        keys = [key for key, _ in selected]
        assert len(set(keys)) == count
        assert keys == [p.key for p in PRESETS[:count]]

    @given(count=valid_count_strategy)
    @settings(max_examples=50)
    def test_keys_match_preset_objects(self, count: int) -> None:
        for key, preset in list_presets(count):
            assert preset.key == key
            assert PRESET_CATALOG[key] is preset

    @given(count=invalid_count_strategy)
    @settings(max_examples=50)
    def test_out_of_range_count_is_rejected(self, count: int) -> None:
        with pytest.raises(InvalidCountError):
            list_presets(count)

    def test_invalid_count_is_an_intake_error(self) -> None:
        with pytest.raises(IntakeError):
            list_presets(0)


class TestGetPreset:

    def test_known_keys_resolve(self) -> None:
        for preset in PRESETS:
            assert get_preset(preset.key) is preset

    @given(key=st.text(min_size=1, max_size=20).filter(lambda k: k not in PRESET_CATALOG))
    @settings(max_examples=50)
    def test_unknown_key_is_rejected(self, key: str) -> None:
        with pytest.raises(UnknownPresetError):
            get_preset(key)


class TestPresetValidation:

    @pytest.mark.parametrize("speed", [0.1, 0.49, 2.01, 4.0])
    def test_speed_outside_tempo_range_is_rejected(self, speed: float) -> None:
        with pytest.raises(ValueError):
            Preset(key="x", name="X", description="", speed=speed)

    @pytest.mark.parametrize("crop", [-1, 50, 75])
    def test_crop_outside_range_is_rejected(self, crop: float) -> None:
        with pytest.raises(ValueError):
            Preset(key="x", name="X", description="", crop_percent=crop)


preset_strategy = st.builds(
    Preset,
    key=st.just("generated"),
    name=st.just("Generated"),
    description=st.just(""),
    speed=st.floats(min_value=0.5, max_value=2.0),
    brightness=st.floats(min_value=-0.2, max_value=0.2),
    contrast=st.floats(min_value=0.5, max_value=1.5),
    saturation=st.floats(min_value=0.5, max_value=1.5),
    crop_percent=st.floats(min_value=0, max_value=49),
    pitch_semitones=st.floats(min_value=-2, max_value=2),
    temperature=st.one_of(st.none(), st.integers(min_value=2000, max_value=12000)),
    sharpen=st.one_of(st.none(), st.floats(min_value=0.1, max_value=1.5)),
    blur_sigma=st.one_of(st.none(), st.floats(min_value=0.1, max_value=2.0)),
    vignette=st.booleans(),
)


class TestSimilarity:
    """Similarity estimates stay within [60, 95]."""

    @given(preset=preset_strategy)
    @settings(max_examples=100)
    def test_similarity_is_clamped(self, preset: Preset) -> None:
        assert 60 <= estimate_similarity(preset) <= 95

    def test_neutral_preset_is_never_reported_identical(self) -> None:
        neutral = Preset(key="n", name="N", description="")
        assert estimate_similarity(neutral) == 95

    def test_catalog_presets_have_estimates(self) -> None:
        scores = [estimate_similarity(p) for p in PRESETS]
        assert all(60 <= s <= 95 for s in scores)
