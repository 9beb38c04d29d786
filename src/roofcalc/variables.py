"""Roof measurement variables used as the formula evaluation context.

Variables follow the Xactimate naming convention: ``SQ``, ``SF``, ``P``,
``EAVE``, ``R``, ``VAL``, ``HIP``, ``RAKE`` plus feature counts, and a
per-slope record for each roof face keyed ``F1``, ``F2``, ...
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roofcalc.utils.numbers import round_half_up

SLOPE_KEY_RE = re.compile(r"^[A-Z]+[0-9]+$")


class SlopeVariables(BaseModel):
    """Measurements for a single roof face."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    SQ: float = 0.0
    SF: float = 0.0
    PITCH: float = 0.0
    EAVE: float = 0.0
    RIDGE: float = 0.0
    VALLEY: float = 0.0
    HIP: float = 0.0
    RAKE: float = 0.0


class RoofVariables(BaseModel):
    """Whole-roof measurements plus per-slope records.

    Counts are stored as floats; integrality is not enforced.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    SQ: float = 0.0
    SF: float = 0.0
    P: float = 0.0
    EAVE: float = 0.0
    R: float = 0.0
    VAL: float = 0.0
    HIP: float = 0.0
    RAKE: float = 0.0
    SKYLIGHT_COUNT: float = 0.0
    CHIMNEY_COUNT: float = 0.0
    PIPE_COUNT: float = 0.0
    VENT_COUNT: float = 0.0
    GUTTER_LF: float = 0.0
    DS_COUNT: float = 0.0
    slopes: dict[str, SlopeVariables] = Field(default_factory=dict)

    @field_validator("slopes", mode="before")
    @classmethod
    def _normalize_slope_keys(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value
        normalized: dict[str, Any] = {}
        for key, slope in value.items():
            norm = str(key).strip().upper()
            if not SLOPE_KEY_RE.match(norm):
                raise ValueError(
                    f"Slope key {key!r} must be letters followed by digits (e.g. 'F1')"
                )
            if norm in normalized:
                raise ValueError(f"Duplicate slope key {norm!r}")
            normalized[norm] = slope
        return normalized


FLAT_FIELDS: tuple[str, ...] = tuple(
    name for name in RoofVariables.model_fields if name != "slopes"
)
SLOPE_FIELDS: tuple[str, ...] = tuple(SlopeVariables.model_fields)


def normalize_variables_mapping(value: Mapping[str, Any]) -> dict[str, Any]:
    """Upper-case field names of a raw variables mapping (slopes included)."""
    data: dict[str, Any] = {}
    for key, item in value.items():
        if str(key).lower() == "slopes":
            if isinstance(item, Mapping):
                item = {
                    sk: {str(k).upper(): v for k, v in sv.items()}
                    if isinstance(sv, Mapping) else sv
                    for sk, sv in item.items()
                }
            data["slopes"] = item
        else:
            data[str(key).upper()] = item
    return data


def as_roof_variables(value: RoofVariables | Mapping[str, Any]) -> RoofVariables:
    """Coerce a mapping (e.g. loaded from YAML/JSON) into ``RoofVariables``.

    Keys of the mapping are matched case-insensitively.

    Raises:
        pydantic.ValidationError: If fields are unknown or not finite numbers.
    """
    if isinstance(value, RoofVariables):
        return value
    return RoofVariables.model_validate(normalize_variables_mapping(value))


# ---------------------------------------------------------------------------
# Pitch
# ---------------------------------------------------------------------------

# Roof area multiplier per pitch (rise per 12 run).
PITCH_MULTIPLIERS: dict[int, float] = {
    0: 1.00,
    1: 1.003,
    2: 1.014,
    3: 1.031,
    4: 1.054,
    5: 1.083,
    6: 1.118,
    7: 1.158,
    8: 1.202,
    9: 1.250,
    10: 1.302,
    11: 1.357,
    12: 1.414,
    13: 1.474,
    14: 1.537,
    15: 1.601,
    16: 1.667,
    17: 1.734,
    18: 1.803,
}

_MAX_PITCH = 18


def get_pitch_multiplier(pitch: float) -> float:
    """Area multiplier for *pitch*, linearly interpolated between whole pitches.

    Pitches at or below 0 are flat (1.0); pitches above 18/12 clamp to 18/12.
    """
    if pitch <= 0:
        return 1.0
    if pitch >= _MAX_PITCH:
        return PITCH_MULTIPLIERS[_MAX_PITCH]

    lower = math.floor(pitch)
    upper = math.ceil(pitch)
    if lower == upper:
        return PITCH_MULTIPLIERS[lower]

    lower_mult = PITCH_MULTIPLIERS[lower]
    upper_mult = PITCH_MULTIPLIERS[upper]
    return lower_mult + (upper_mult - lower_mult) * (pitch - lower)


def calculate_sqft_with_pitch(length_ft: float, width_ft: float, pitch: float) -> float:
    """Footprint area adjusted for pitch."""
    return length_ft * width_ft * get_pitch_multiplier(pitch)


def sqft_to_squares(sqft: float) -> float:
    """100 square feet = 1 square."""
    return sqft / 100


def squares_to_sqft(squares: float) -> float:
    return squares * 100


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


class RoofSlope(BaseModel):
    """A measured roof face, as recorded by the sketch tool."""

    slope_number: int
    squares: float = 0.0
    sqft: float = 0.0
    pitch: float = 0.0
    eave_lf: float = 0.0
    ridge_lf: float = 0.0
    valley_lf: float = 0.0
    hip_lf: float = 0.0
    rake_lf: float = 0.0


class RoofSketch(BaseModel):
    """Whole-roof totals from the sketch tool."""

    total_squares: float = 0.0
    total_sqft: float = 0.0
    total_perimeter_lf: float = 0.0
    total_eave_lf: float = 0.0
    total_ridge_lf: float = 0.0
    total_valley_lf: float = 0.0
    total_hip_lf: float = 0.0
    total_rake_lf: float = 0.0
    skylight_count: float = 0
    chimney_count: float = 0
    pipe_boot_count: float = 0
    vent_count: float = 0
    gutter_lf: float = 0.0
    downspout_count: float = 0


def calculate_slope_variables(slope: RoofSlope) -> SlopeVariables:
    return SlopeVariables(
        SQ=slope.squares,
        SF=slope.sqft,
        PITCH=slope.pitch,
        EAVE=slope.eave_lf,
        RIDGE=slope.ridge_lf,
        VALLEY=slope.valley_lf,
        HIP=slope.hip_lf,
        RAKE=slope.rake_lf,
    )


def calculate_roof_variables(
    sketch: RoofSketch, slopes: list[RoofSlope] | None = None
) -> RoofVariables:
    """Build evaluation variables from a sketch and its slopes.

    Slope number ``n`` becomes slope key ``Fn``.
    """
    slope_vars = {
        f"F{slope.slope_number}": calculate_slope_variables(slope)
        for slope in (slopes or [])
    }
    return RoofVariables(
        SQ=sketch.total_squares,
        SF=sketch.total_sqft,
        P=sketch.total_perimeter_lf,
        EAVE=sketch.total_eave_lf,
        R=sketch.total_ridge_lf,
        VAL=sketch.total_valley_lf,
        HIP=sketch.total_hip_lf,
        RAKE=sketch.total_rake_lf,
        SKYLIGHT_COUNT=sketch.skylight_count,
        CHIMNEY_COUNT=sketch.chimney_count,
        PIPE_COUNT=sketch.pipe_boot_count,
        VENT_COUNT=sketch.vent_count,
        GUTTER_LF=sketch.gutter_lf,
        DS_COUNT=sketch.downspout_count,
        slopes=slope_vars,
    )


def _js_round(value: float) -> float:
    return round_half_up(value, 0)


def calculate_variables_from_dimensions(
    length_ft: float,
    width_ft: float,
    pitch: float,
    *,
    skylights: int = 0,
    chimneys: int = 0,
    pipe_boots: int = 2,
    vents: int = 0,
    gutter_lf: float | None = None,
    downspouts: int = 2,
) -> RoofVariables:
    """Approximate variables for a simple gable roof from its footprint.

    Two equal faces ``F1`` and ``F2`` are produced; valleys and hips are zero.
    Gutter length defaults to the eave length.
    """
    actual_sqft = length_ft * width_ft * get_pitch_multiplier(pitch)
    squares = sqft_to_squares(actual_sqft)

    perimeter = 2 * (length_ft + width_ft)
    eave = length_ft * 2
    ridge = length_ft
    rake = width_ft * 2
    gutter = gutter_lf if gutter_lf is not None else eave

    face = SlopeVariables(
        SQ=round_half_up(squares / 2, 2),
        SF=_js_round(actual_sqft / 2),
        PITCH=pitch,
        EAVE=_js_round(eave / 2),
        RIDGE=_js_round(ridge / 2),
        VALLEY=0,
        HIP=0,
        RAKE=_js_round(rake / 2),
    )
    return RoofVariables(
        SQ=round_half_up(squares, 2),
        SF=_js_round(actual_sqft),
        P=_js_round(perimeter),
        EAVE=_js_round(eave),
        R=_js_round(ridge),
        VAL=0,
        HIP=0,
        RAKE=_js_round(rake),
        SKYLIGHT_COUNT=skylights,
        CHIMNEY_COUNT=chimneys,
        PIPE_COUNT=pipe_boots,
        VENT_COUNT=vents,
        GUTTER_LF=_js_round(gutter),
        DS_COUNT=downspouts,
        slopes={"F1": face, "F2": face},
    )


# Intake form pitch choices -> rise per 12 run.
INTAKE_PITCH_MAP: dict[str, int] = {
    "flat": 1,
    "low": 3,
    "medium": 5,
    "steep": 8,
    "very_steep": 12,
    "unknown": 5,
}


def calculate_variables_from_intake(
    roof_size_sqft: float | None = None,
    roof_pitch: str | None = None,
    stories: int | None = 1,
    has_skylights: bool = False,
    has_chimneys: bool = False,
) -> RoofVariables:
    """Rough variables from a lead intake form, assuming a square footprint."""
    pitch = INTAKE_PITCH_MAP.get(roof_pitch or "medium", 5)
    base_sqft = roof_size_sqft or 2000
    side = math.sqrt(base_sqft)

    return calculate_variables_from_dimensions(
        side,
        side,
        pitch,
        skylights=1 if has_skylights else 0,
        chimneys=1 if has_chimneys else 0,
        pipe_boots=2 + (stories or 1),
        vents=math.ceil(base_sqft / 500),
        downspouts=math.ceil(side / 20),
    )


def get_empty_variables() -> RoofVariables:
    return RoofVariables()


# ---------------------------------------------------------------------------
# Checks and display
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VariablesCheck:
    valid: bool
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def validate_variables(variables: RoofVariables) -> VariablesCheck:
    """Sanity-check measurements before they drive an estimate.

    Negative areas and lengths are errors.  Unusual sizes and inconsistent
    SF/SQ or area/perimeter ratios are warnings.
    """
    warnings: list[str] = []
    errors: list[str] = []

    if variables.SQ < 0:
        errors.append("Squares cannot be negative")
    if variables.SF < 0:
        errors.append("Square feet cannot be negative")
    if variables.EAVE < 0:
        errors.append("Eave length cannot be negative")
    if variables.R < 0:
        errors.append("Ridge length cannot be negative")

    if variables.SQ > 200:
        warnings.append("Very large roof (>200 squares)")
    if variables.SQ < 5:
        warnings.append("Very small roof (<5 squares)")

    if abs(variables.SF - squares_to_sqft(variables.SQ)) > 10:
        warnings.append("SF and SQ values are inconsistent")

    if variables.SF > 0 and variables.P > 0:
        ratio = variables.SF / variables.P
        if ratio < 5:
            warnings.append("Unusual shape - very long/narrow")
        if ratio > 50:
            warnings.append("Perimeter seems too small for area")

    return VariablesCheck(valid=not errors, warnings=warnings, errors=errors)


def _count(value: float) -> str:
    return f"{value:g}"


def format_variables_for_display(variables: RoofVariables) -> dict[str, str]:
    return {
        "Total Squares": f"{variables.SQ:.2f} SQ",
        "Square Feet": f"{variables.SF:,.0f} SF",
        "Perimeter": f"{variables.P:.0f} LF",
        "Eave Length": f"{variables.EAVE:.0f} LF",
        "Ridge Length": f"{variables.R:.0f} LF",
        "Valley Length": f"{variables.VAL:.0f} LF",
        "Hip Length": f"{variables.HIP:.0f} LF",
        "Rake Length": f"{variables.RAKE:.0f} LF",
        "Skylights": _count(variables.SKYLIGHT_COUNT),
        "Chimneys": _count(variables.CHIMNEY_COUNT),
        "Pipe Boots": _count(variables.PIPE_COUNT),
        "Vents": _count(variables.VENT_COUNT),
        "Gutter Length": f"{variables.GUTTER_LF:.0f} LF",
        "Downspouts": _count(variables.DS_COUNT),
    }
