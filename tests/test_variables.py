"""Tests for roof variables: model validation, builders and checks."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from roofcalc.variables import (
    FLAT_FIELDS,
    SLOPE_FIELDS,
    RoofSketch,
    RoofSlope,
    RoofVariables,
    SlopeVariables,
    as_roof_variables,
    calculate_roof_variables,
    calculate_sqft_with_pitch,
    calculate_variables_from_dimensions,
    calculate_variables_from_intake,
    format_variables_for_display,
    get_empty_variables,
    get_pitch_multiplier,
    normalize_variables_mapping,
    sqft_to_squares,
    squares_to_sqft,
    validate_variables,
)


class TestRoofVariablesModel:
    def test_field_sets(self) -> None:
        assert FLAT_FIELDS == (
            "SQ", "SF", "P", "EAVE", "R", "VAL", "HIP", "RAKE",
            "SKYLIGHT_COUNT", "CHIMNEY_COUNT", "PIPE_COUNT", "VENT_COUNT",
            "GUTTER_LF", "DS_COUNT",
        )
        assert SLOPE_FIELDS == ("SQ", "SF", "PITCH", "EAVE", "RIDGE", "VALLEY", "HIP", "RAKE")

    def test_defaults_are_zero(self) -> None:
        v = get_empty_variables()
        assert all(getattr(v, name) == 0 for name in FLAT_FIELDS)
        assert v.slopes == {}

    def test_rejects_non_finite(self) -> None:
        with pytest.raises(ValidationError):
            RoofVariables(SQ=float("inf"))
        with pytest.raises(ValidationError):
            SlopeVariables(SQ=float("nan"))

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            RoofVariables(SQUARES=10)
        with pytest.raises(ValidationError):
            RoofVariables(slopes={"F1": {"GUTTER": 1}})

    def test_slope_keys_upper_cased(self) -> None:
        v = RoofVariables(slopes={"f1": {"SQ": 3}})
        assert list(v.slopes) == ["F1"]
        assert v.slopes["F1"].SQ == 3

    @pytest.mark.parametrize("key", ["1F", "F", "F1A", "F-1", ""])
    def test_bad_slope_keys(self, key: str) -> None:
        with pytest.raises(ValidationError):
            RoofVariables(slopes={key: {"SQ": 1}})

    def test_duplicate_slope_keys_after_normalizing(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate slope key"):
            RoofVariables(slopes={"f1": {"SQ": 1}, "F1": {"SQ": 2}})

    def test_frozen(self) -> None:
        v = RoofVariables(SQ=1)
        with pytest.raises(ValidationError):
            v.SQ = 2

    def test_as_roof_variables_case_insensitive(self) -> None:
        v = as_roof_variables({"sq": 20, "Eave": 80, "Slopes": {"f2": {"pitch": 7}}})
        assert v.SQ == 20
        assert v.EAVE == 80
        assert v.slopes["F2"].PITCH == 7

    def test_as_roof_variables_passthrough(self, roof) -> None:
        assert as_roof_variables(roof) is roof

    def test_normalize_mapping(self) -> None:
        assert normalize_variables_mapping({"sq": 1, "slopes": {"f1": {"sf": 2}}}) == {
            "SQ": 1,
            "slopes": {"f1": {"SF": 2}},
        }


class TestPitch:
    def test_whole_pitches(self) -> None:
        assert get_pitch_multiplier(0) == 1.0
        assert get_pitch_multiplier(6) == 1.118
        assert get_pitch_multiplier(12) == 1.414

    def test_interpolated(self) -> None:
        assert get_pitch_multiplier(6.5) == pytest.approx((1.118 + 1.158) / 2)

    def test_clamped(self) -> None:
        assert get_pitch_multiplier(-3) == 1.0
        assert get_pitch_multiplier(30) == 1.803

    def test_area_conversions(self) -> None:
        assert calculate_sqft_with_pitch(40, 30, 0) == 1200
        assert sqft_to_squares(2500) == 25
        assert squares_to_sqft(12.5) == 1250


class TestBuilders:
    def test_from_sketch_and_slopes(self) -> None:
        sketch = RoofSketch(
            total_squares=24,
            total_sqft=2400,
            total_perimeter_lf=180,
            total_eave_lf=90,
            total_ridge_lf=45,
            gutter_lf=90,
            downspout_count=4,
            skylight_count=1,
        )
        slopes = [
            RoofSlope(slope_number=1, squares=12, sqft=1200, pitch=6, eave_lf=45),
            RoofSlope(slope_number=2, squares=12, sqft=1200, pitch=6, eave_lf=45),
        ]
        v = calculate_roof_variables(sketch, slopes)
        assert v.SQ == 24
        assert v.P == 180
        assert v.R == 45
        assert v.DS_COUNT == 4
        assert v.SKYLIGHT_COUNT == 1
        assert set(v.slopes) == {"F1", "F2"}
        assert v.slopes["F2"].EAVE == 45

    def test_from_sketch_without_slopes(self) -> None:
        v = calculate_roof_variables(RoofSketch(total_squares=10))
        assert v.SQ == 10
        assert v.slopes == {}

    def test_from_dimensions(self) -> None:
        v = calculate_variables_from_dimensions(40, 30, 6)
        assert v.SQ == 13.42
        assert v.SF == 1342
        assert v.P == 140
        assert v.EAVE == 80
        assert v.R == 40
        assert v.RAKE == 60
        assert v.VAL == 0
        assert v.GUTTER_LF == 80
        assert v.PIPE_COUNT == 2
        assert v.DS_COUNT == 2
        assert v.slopes["F1"].SQ == 6.71
        assert v.slopes["F1"].SF == 671
        assert v.slopes["F2"].EAVE == 40
        assert v.slopes["F2"].RIDGE == 20
        assert v.slopes["F2"].RAKE == 30

    def test_from_dimensions_overrides(self) -> None:
        v = calculate_variables_from_dimensions(
            40, 30, 6, skylights=2, chimneys=1, vents=4, gutter_lf=75.4, downspouts=3
        )
        assert v.SKYLIGHT_COUNT == 2
        assert v.CHIMNEY_COUNT == 1
        assert v.VENT_COUNT == 4
        assert v.GUTTER_LF == 75
        assert v.DS_COUNT == 3

    def test_from_intake_defaults(self) -> None:
        v = calculate_variables_from_intake()
        # 2000 sqft footprint at medium (5/12) pitch
        assert v.SF == 2166
        assert v.VENT_COUNT == 4
        assert v.PIPE_COUNT == 3
        assert v.DS_COUNT == 3

    def test_from_intake_features(self) -> None:
        v = calculate_variables_from_intake(
            roof_size_sqft=2500, roof_pitch="steep", stories=2, has_skylights=True, has_chimneys=True
        )
        assert v.SKYLIGHT_COUNT == 1
        assert v.CHIMNEY_COUNT == 1
        assert v.PIPE_COUNT == 4
        assert v.slopes["F1"].PITCH == 8


class TestValidateVariables:
    def test_clean_roof(self, roof) -> None:
        check = validate_variables(roof)
        assert check.valid is True
        assert check.errors == []
        assert check.warnings == []

    def test_negative_values_are_errors(self) -> None:
        check = validate_variables(RoofVariables(SQ=-1, SF=-100, EAVE=-5, R=-2))
        assert check.valid is False
        assert len(check.errors) == 4

    def test_size_warnings(self) -> None:
        assert "Very large roof (>200 squares)" in validate_variables(
            RoofVariables(SQ=250, SF=25000)
        ).warnings
        assert "Very small roof (<5 squares)" in validate_variables(
            RoofVariables(SQ=2, SF=200)
        ).warnings

    def test_inconsistent_area(self) -> None:
        check = validate_variables(RoofVariables(SQ=25, SF=2000))
        assert "SF and SQ values are inconsistent" in check.warnings
        assert check.valid is True

    def test_shape_ratio_warnings(self) -> None:
        narrow = validate_variables(RoofVariables(SQ=10, SF=1000, P=400))
        assert "Unusual shape - very long/narrow" in narrow.warnings
        compact = validate_variables(RoofVariables(SQ=60, SF=6000, P=100))
        assert "Perimeter seems too small for area" in compact.warnings


class TestDisplay:
    def test_format_variables(self, roof) -> None:
        shown = format_variables_for_display(roof)
        assert shown["Total Squares"] == "25.00 SQ"
        assert shown["Square Feet"] == "2,500 SF"
        assert shown["Eave Length"] == "100 LF"
        assert shown["Skylights"] == "2"
        assert shown["Downspouts"] == "4"
