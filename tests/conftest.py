"""Shared fixtures for roofcalc tests."""

from __future__ import annotations

import pytest

from roofcalc.variables import RoofVariables, SlopeVariables


@pytest.fixture
def roof() -> RoofVariables:
    """A typical 25-square gable roof with two equal faces."""
    face = SlopeVariables(
        SQ=12.5, SF=1250, PITCH=6, EAVE=50, RIDGE=25, VALLEY=10, HIP=0, RAKE=40
    )
    return RoofVariables(
        SQ=25,
        SF=2500,
        P=200,
        EAVE=100,
        R=50,
        VAL=20,
        HIP=0,
        RAKE=80,
        SKYLIGHT_COUNT=2,
        CHIMNEY_COUNT=1,
        PIPE_COUNT=4,
        VENT_COUNT=3,
        GUTTER_LF=100,
        DS_COUNT=4,
        slopes={"F1": face, "F2": face.model_copy(update={"PITCH": 8})},
    )


@pytest.fixture(autouse=True)
def _detached_sink():
    """Make sure no test leaks a configured event sink into another."""
    from roofcalc.logging.events import reset_sink

    reset_sink()
    yield
    reset_sink()
