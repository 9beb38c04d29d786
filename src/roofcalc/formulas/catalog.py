"""Library of known variable names and reusable quantity formulas."""

from __future__ import annotations

from roofcalc.variables import FLAT_FIELDS

# Flat names plus a few per-slope examples for formula editors.
KNOWN_VARIABLES: tuple[str, ...] = FLAT_FIELDS + (
    "F1SQ",
    "F1SF",
    "F1EAVE",
    "F2SQ",
    "F2SF",
    "F2EAVE",
)

COMMON_FORMULAS: dict[str, str] = {
    # Area-based
    "squares": "SQ",
    "squares_with_waste_10": "SQ*1.10",
    "squares_with_waste_15": "SQ*1.15",
    # Linear measurements
    "eave": "EAVE",
    "eave_and_rake": "EAVE+RAKE",
    "ridge": "R",
    "ridge_and_hip": "R+HIP",
    "valley": "VAL",
    "perimeter": "P",
    # Ice & water shield, 3 ft up from the eave
    "ice_and_water": "EAVE*3/100",
    "ice_and_water_valley": "VAL",
    # Feature-based
    "skylights": "SKYLIGHT_COUNT",
    "chimneys": "CHIMNEY_COUNT",
    "pipe_boots": "PIPE_COUNT",
    "vents": "VENT_COUNT",
    # Gutters
    "gutters": "GUTTER_LF",
    "downspouts": "DS_COUNT",
    "downspout_length": "DS_COUNT*10",
    "gutter_hangers": "GUTTER_LF/2",
}

_SUGGESTED_BY_CATEGORY: dict[str, str] = {
    "tear_off": "SQ",
    "underlayment": "SQ",
    "shingles": "SQ",
    "metal_roofing": "SQ",
    "tile_roofing": "SQ",
    "flat_roofing": "SQ",
    "flashing": "EAVE+RAKE",
    "ventilation": "R",
    "gutters": "GUTTER_LF",
    "skylights": "SKYLIGHT_COUNT",
    "chimneys": "CHIMNEY_COUNT",
    "disposal": "SQ",
}


def get_known_variables() -> list[str]:
    return list(KNOWN_VARIABLES)


def get_suggested_formula(category: str) -> str | None:
    """Default quantity formula for a line-item category, if there is one."""
    return _SUGGESTED_BY_CATEGORY.get(category)
