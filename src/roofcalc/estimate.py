"""Estimate spec loading and end-to-end estimate runs.

An estimate spec is a YAML (or JSON) document holding roof variables, an
optional geographic pricing record, an optional macro and a list of line
inputs.  Running it prices every line and logs the lifecycle as events.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from roofcalc.logging.events import (
    ESTIMATE_SPEC_INVALID,
    VARIABLES_OUT_OF_RANGE,
    EventLevel,
    EventType,
    emit,
    estimate_event,
    set_project_dir,
)
from roofcalc.pricing import (
    DetailedPricingEngine,
    EstimateCalculation,
    EstimateMacro,
    EstimateSummary,
    GeographicPricing,
    LineItemInput,
    generate_estimate_summary,
)
from roofcalc.project import load_project_config
from roofcalc.utils.hash import estimate_id_for
from roofcalc.variables import (
    RoofVariables,
    VariablesCheck,
    normalize_variables_mapping,
    validate_variables,
)


class EstimateSpec(BaseModel):
    """Inputs for one estimate run."""

    lead_id: str | None = None
    estimate_id: str | None = None
    variables: RoofVariables
    geographic_pricing: GeographicPricing | None = None
    macro: EstimateMacro | None = None
    line_items: list[LineItemInput] = Field(default_factory=list)
    overhead_percent: float | None = None
    profit_percent: float | None = None
    tax_percent: float | None = None

    @field_validator("variables", mode="before")
    @classmethod
    def _coerce_variables(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return normalize_variables_mapping(value)
        return value


def load_estimate_spec(path: Path) -> tuple[EstimateSpec, dict[str, Any]]:
    """Read and validate an estimate spec file.

    Returns:
        The validated spec and the raw mapping it was built from.

    Raises:
        ValueError: If the file is not a mapping or fails validation.
    """
    raw = yaml.safe_load(Path(path).read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping")
    try:
        return EstimateSpec.model_validate(raw), raw
    except ValidationError as exc:
        raise ValueError(f"Invalid estimate spec {path}:\n{exc}") from exc


@dataclass
class EstimateResult:
    """Outcome of an estimate run."""

    estimate_id: str
    calculation: EstimateCalculation
    summary: EstimateSummary
    variables_check: VariablesCheck


def run_estimate(
    spec: EstimateSpec,
    project_dir: Path | None = None,
    *,
    raw: dict[str, Any] | None = None,
) -> EstimateResult:
    """Price an estimate spec.

    Percentages left unset on the spec come from the project config.  When
    *project_dir* is given, events are written to its ``logs/`` directory.

    Args:
        spec: Validated estimate spec.
        project_dir: Project root supplying ``roofcalc.yaml`` and logs.
        raw: Raw spec mapping, used to derive a stable estimate id when
            the spec does not name one.
    """
    config = load_project_config(project_dir) if project_dir is not None else {}
    if project_dir is not None:
        set_project_dir(project_dir)

    estimate_id = spec.estimate_id or estimate_id_for(
        raw if raw is not None else spec.model_dump(mode="json")
    )

    emit(estimate_event(
        EventType.estimate_started,
        EventLevel.info,
        "Estimate run started",
        estimate_id=estimate_id,
        lead_id=spec.lead_id,
    ))

    try:
        check = validate_variables(spec.variables)
        for warning in check.warnings:
            emit(estimate_event(
                EventType.variables_warning,
                EventLevel.warning,
                warning,
                estimate_id=estimate_id,
            ))
        if not check.valid:
            emit(estimate_event(
                EventType.variables_invalid,
                EventLevel.error,
                "; ".join(check.errors),
                estimate_id=estimate_id,
                error_code=VARIABLES_OUT_OF_RANGE,
            ))

        engine = DetailedPricingEngine(
            geographic_pricing=spec.geographic_pricing,
            macros=[spec.macro] if spec.macro else None,
        )
        items = list(spec.line_items)
        if spec.macro is not None:
            items.extend(engine.apply_macro(spec.macro))

        calc = engine.calculate_estimate(
            items,
            spec.variables,
            overhead_percent=_pick(spec.overhead_percent, config, "overhead_percent"),
            profit_percent=_pick(spec.profit_percent, config, "profit_percent"),
            tax_percent=_pick(spec.tax_percent, config, "tax_percent"),
            estimate_id=estimate_id,
        )
        summary = generate_estimate_summary(calc)
    except Exception as exc:
        emit(estimate_event(
            EventType.estimate_failed,
            EventLevel.error,
            f"Estimate run failed: {exc}",
            estimate_id=estimate_id,
            error_code=ESTIMATE_SPEC_INVALID,
            error=str(exc),
        ))
        raise

    fallbacks = sum(1 for li in calc.line_items if li.formula_error)
    emit(estimate_event(
        EventType.estimate_completed,
        EventLevel.info,
        f"Estimate run completed: {estimate_id}",
        estimate_id=estimate_id,
        lead_id=spec.lead_id,
        line_item_count=len(calc.line_items),
        formula_fallbacks=fallbacks,
        price_likely=calc.price_likely,
    ))

    return EstimateResult(
        estimate_id=estimate_id,
        calculation=calc,
        summary=summary,
        variables_check=check,
    )


def _pick(value: float | None, config: dict[str, Any], key: str) -> float | None:
    if value is not None:
        return value
    configured = config.get(key)
    return float(configured) if configured is not None else None
