"""Detailed line-item pricing.

Quantities come from template formulas evaluated against roof variables;
unit costs are base costs scaled by a geographic multiplier.  Totals add
overhead on the subtotal, profit on subtotal plus overhead, and tax on
taxable line totals.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from roofcalc.formulas import calculate_quantity_with_waste
from roofcalc.logging.events import EventLevel, EventType, emit, estimate_event
from roofcalc.project import DEFAULT_CONFIG
from roofcalc.utils.numbers import round_cents, round_half_up
from roofcalc.variables import RoofVariables

PRICE_LOW_FACTOR = 0.9
PRICE_HIGH_FACTOR = 1.15

# Roof size assumed for cost-per-square when no shingle line is present.
_DEFAULT_SUMMARY_SQUARES = 20.0


class UnitType(str, Enum):
    SQ = "SQ"
    SF = "SF"
    LF = "LF"
    EA = "EA"
    HR = "HR"
    DAY = "DAY"
    TON = "TON"
    GAL = "GAL"
    BDL = "BDL"
    RL = "RL"


class LineItemCategory(str, Enum):
    tear_off = "tear_off"
    underlayment = "underlayment"
    shingles = "shingles"
    metal_roofing = "metal_roofing"
    tile_roofing = "tile_roofing"
    flat_roofing = "flat_roofing"
    flashing = "flashing"
    ventilation = "ventilation"
    gutters = "gutters"
    skylights = "skylights"
    chimneys = "chimneys"
    decking = "decking"
    insulation = "insulation"
    labor = "labor"
    equipment = "equipment"
    disposal = "disposal"
    permits = "permits"
    miscellaneous = "miscellaneous"


# ---------------------------------------------------------------------------
# Catalog models
# ---------------------------------------------------------------------------


class LineItem(BaseModel):
    """A priced catalog entry with an optional quantity formula."""

    id: str
    item_code: str
    name: str
    description: str | None = None
    category: LineItemCategory
    unit_type: UnitType = UnitType.EA
    base_material_cost: float = 0.0
    base_labor_cost: float = 0.0
    base_equipment_cost: float = 0.0
    quantity_formula: str | None = None
    default_waste_factor: float = 1.0
    is_taxable: bool = True
    sort_order: int = 0


class GeographicPricing(BaseModel):
    """Regional cost multipliers."""

    id: str
    name: str = ""
    state: str | None = None
    county: str | None = None
    material_multiplier: float = 1.0
    labor_multiplier: float = 1.0
    equipment_multiplier: float = 1.0


class GeographicMultipliers(BaseModel):
    material: float = 1.0
    labor: float = 1.0
    equipment: float = 1.0


class MacroLineItem(BaseModel):
    """A line item as configured inside a macro, with optional overrides."""

    line_item_id: str
    line_item: LineItem | None = None
    quantity_formula: str | None = None
    waste_factor: float | None = None
    material_cost_override: float | None = None
    labor_cost_override: float | None = None
    equipment_cost_override: float | None = None
    is_optional: bool = False
    is_selected_by_default: bool = True
    group_name: str | None = None
    notes: str | None = None


class EstimateMacro(BaseModel):
    """A reusable bundle of line items (e.g. 'asphalt full replacement')."""

    id: str
    name: str
    description: str | None = None
    roof_type: str = "any"
    job_type: str = "any"
    line_items: list[MacroLineItem] | None = None


# ---------------------------------------------------------------------------
# Calculation models
# ---------------------------------------------------------------------------


class LineItemInput(BaseModel):
    """One line of an estimate; ``None`` fields defer to the catalog entry."""

    line_item: LineItem
    quantity_formula: str | None = None
    waste_factor: float | None = None
    quantity: float | None = None  # manual override
    material_unit_cost: float | None = None
    labor_unit_cost: float | None = None
    equipment_unit_cost: float | None = None
    is_included: bool = True
    is_optional: bool = False
    group_name: str | None = None
    notes: str | None = None


class CalculatedLineItem(BaseModel):
    line_item_id: str
    item_code: str
    name: str
    category: LineItemCategory
    unit_type: UnitType
    quantity: float
    quantity_formula: str | None
    waste_factor: float
    quantity_with_waste: float
    material_unit_cost: float
    labor_unit_cost: float
    equipment_unit_cost: float
    material_total: float
    labor_total: float
    equipment_total: float
    line_total: float
    is_included: bool
    is_optional: bool
    is_taxable: bool
    sort_order: int
    group_name: str | None = None
    notes: str | None = None
    formula_error: str | None = None


class EstimateCalculation(BaseModel):
    line_items: list[CalculatedLineItem] = Field(default_factory=list)
    total_material: float
    total_labor: float
    total_equipment: float
    subtotal: float
    overhead_percent: float
    overhead_amount: float
    profit_percent: float
    profit_amount: float
    taxable_amount: float
    tax_percent: float
    tax_amount: float
    price_low: float
    price_likely: float
    price_high: float
    geographic_adjustment: float


class EstimateSummary(BaseModel):
    total_cost: float
    cost_per_square: float
    material_percentage: float
    labor_percentage: float
    included_items_count: int
    optional_items_count: int


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class DetailedPricingEngine:
    """Prices line items against roof variables and regional multipliers."""

    def __init__(
        self,
        line_items: list[LineItem] | None = None,
        geographic_pricing: GeographicPricing | None = None,
        macros: list[EstimateMacro] | None = None,
    ) -> None:
        self._line_items = {li.id: li for li in (line_items or [])}
        self._geographic_pricing = geographic_pricing
        self._macros = {m.id: m for m in (macros or [])}

    def set_geographic_pricing(self, pricing: GeographicPricing | None) -> None:
        self._geographic_pricing = pricing

    def get_geographic_multipliers(self) -> GeographicMultipliers:
        """Multipliers for the current region, 1.0 across the board if none."""
        geo = self._geographic_pricing
        if geo is None:
            return GeographicMultipliers()
        return GeographicMultipliers(
            material=geo.material_multiplier,
            labor=geo.labor_multiplier,
            equipment=geo.equipment_multiplier,
        )

    def calculate_line_item(
        self,
        item: LineItemInput,
        variables: RoofVariables,
        sort_order: int = 0,
        *,
        estimate_id: str | None = None,
    ) -> CalculatedLineItem:
        """Price a single line.

        Quantity precedence: manual override, then the formula (input, else
        catalog), then zero.  A failing formula prices the line at zero
        quantity and emits a ``formula_fallback`` warning.
        """
        li = item.line_item
        geo = self.get_geographic_multipliers()

        formula = item.quantity_formula if item.quantity_formula is not None else li.quantity_formula
        waste_factor = item.waste_factor if item.waste_factor is not None else li.default_waste_factor
        formula_error: str | None = None

        if item.quantity is not None:
            quantity = item.quantity
            quantity_formula = None
            quantity_with_waste = quantity * waste_factor
        elif formula:
            result = calculate_quantity_with_waste(formula, variables, waste_factor, 0.0)
            quantity = result.quantity
            quantity_with_waste = result.quantity_with_waste
            quantity_formula = result.formula_used
            if result.error is not None:
                formula_error = result.error.kind
                emit(estimate_event(
                    EventType.formula_fallback,
                    EventLevel.warning,
                    f"Formula for {li.item_code} failed, using quantity 0: {result.error}",
                    estimate_id=estimate_id,
                    line_item_id=li.id,
                    error_code=result.error.kind,
                    formula=formula,
                ))
        else:
            quantity = 0.0
            quantity_formula = None
            quantity_with_waste = 0.0

        material_unit_cost = (
            item.material_unit_cost
            if item.material_unit_cost is not None
            else li.base_material_cost * geo.material
        )
        labor_unit_cost = (
            item.labor_unit_cost
            if item.labor_unit_cost is not None
            else li.base_labor_cost * geo.labor
        )
        equipment_unit_cost = (
            item.equipment_unit_cost
            if item.equipment_unit_cost is not None
            else li.base_equipment_cost * geo.equipment
        )

        material_total = quantity_with_waste * material_unit_cost
        labor_total = quantity_with_waste * labor_unit_cost
        equipment_total = quantity_with_waste * equipment_unit_cost

        return CalculatedLineItem(
            line_item_id=li.id,
            item_code=li.item_code,
            name=li.name,
            category=li.category,
            unit_type=li.unit_type,
            quantity=round_cents(quantity),
            quantity_formula=quantity_formula,
            waste_factor=waste_factor,
            quantity_with_waste=round_cents(quantity_with_waste),
            material_unit_cost=round_cents(material_unit_cost),
            labor_unit_cost=round_cents(labor_unit_cost),
            equipment_unit_cost=round_cents(equipment_unit_cost),
            material_total=round_cents(material_total),
            labor_total=round_cents(labor_total),
            equipment_total=round_cents(equipment_total),
            line_total=round_cents(material_total + labor_total + equipment_total),
            is_included=item.is_included,
            is_optional=item.is_optional,
            is_taxable=li.is_taxable,
            sort_order=sort_order,
            group_name=item.group_name,
            notes=item.notes,
            formula_error=formula_error,
        )

    def calculate_estimate(
        self,
        items: list[LineItemInput],
        variables: RoofVariables,
        *,
        overhead_percent: float | None = None,
        profit_percent: float | None = None,
        tax_percent: float | None = None,
        estimate_id: str | None = None,
    ) -> EstimateCalculation:
        """Price every line and roll up totals.

        Only included lines count toward totals.  Lines are ordered by the
        catalog sort order, falling back to input position when it is 0.
        """
        if overhead_percent is None:
            overhead_percent = DEFAULT_CONFIG["overhead_percent"]
        if profit_percent is None:
            profit_percent = DEFAULT_CONFIG["profit_percent"]
        if tax_percent is None:
            tax_percent = DEFAULT_CONFIG["tax_percent"]

        calculated = [
            self.calculate_line_item(
                item, variables, item.line_item.sort_order or index, estimate_id=estimate_id
            )
            for index, item in enumerate(items)
        ]
        calculated.sort(key=lambda li: li.sort_order)

        included = [li for li in calculated if li.is_included]
        total_material = sum(li.material_total for li in included)
        total_labor = sum(li.labor_total for li in included)
        total_equipment = sum(li.equipment_total for li in included)
        subtotal = total_material + total_labor + total_equipment

        overhead_amount = subtotal * (overhead_percent / 100)
        profit_amount = (subtotal + overhead_amount) * (profit_percent / 100)

        taxable_amount = sum(li.line_total for li in included if li.is_taxable)
        tax_amount = taxable_amount * (tax_percent / 100)

        price_likely = subtotal + overhead_amount + profit_amount + tax_amount

        geo = self.get_geographic_multipliers()
        geographic_adjustment = (geo.material + geo.labor + geo.equipment) / 3

        return EstimateCalculation(
            line_items=calculated,
            total_material=round_cents(total_material),
            total_labor=round_cents(total_labor),
            total_equipment=round_cents(total_equipment),
            subtotal=round_cents(subtotal),
            overhead_percent=overhead_percent,
            overhead_amount=round_cents(overhead_amount),
            profit_percent=profit_percent,
            profit_amount=round_cents(profit_amount),
            taxable_amount=round_cents(taxable_amount),
            tax_percent=tax_percent,
            tax_amount=round_cents(tax_amount),
            price_low=round_cents(price_likely * PRICE_LOW_FACTOR),
            price_likely=round_cents(price_likely),
            price_high=round_cents(price_likely * PRICE_HIGH_FACTOR),
            geographic_adjustment=round_cents(geographic_adjustment),
        )

    def apply_macro(self, macro: EstimateMacro) -> list[LineItemInput]:
        """Expand a macro into line inputs, skipping entries without a catalog item."""
        if not macro.line_items:
            return []
        return [
            LineItemInput(
                line_item=mli.line_item,
                quantity_formula=mli.quantity_formula,
                waste_factor=mli.waste_factor,
                material_unit_cost=mli.material_cost_override,
                labor_unit_cost=mli.labor_cost_override,
                equipment_unit_cost=mli.equipment_cost_override,
                is_included=mli.is_selected_by_default,
                is_optional=mli.is_optional,
                group_name=mli.group_name,
                notes=mli.notes,
            )
            for mli in macro.line_items
            if mli.line_item is not None
        ]

    def get_line_item(self, line_item_id: str) -> LineItem | None:
        return self._line_items.get(line_item_id)

    def get_all_line_items(self) -> list[LineItem]:
        return list(self._line_items.values())

    def get_line_items_by_category(self, category: LineItemCategory | str) -> list[LineItem]:
        return [li for li in self._line_items.values() if li.category == category]

    def get_macro(self, macro_id: str) -> EstimateMacro | None:
        return self._macros.get(macro_id)

    def get_all_macros(self) -> list[EstimateMacro]:
        return list(self._macros.values())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_currency(amount: float) -> str:
    """``1234.5`` -> ``$1,234.50``; negatives render as ``-$12.00``."""
    rounded = round_cents(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.2f}"


def format_quantity(quantity: float, unit: UnitType | str) -> str:
    return f"{quantity:.2f} {UnitType(unit).value}"


def group_line_items(items: list[CalculatedLineItem]) -> dict[str, list[CalculatedLineItem]]:
    """Group lines by group name, or by category when a line has none."""
    groups: dict[str, list[CalculatedLineItem]] = {}
    for item in items:
        key = item.group_name or item.category.value
        groups.setdefault(key, []).append(item)
    return groups


def calculate_cost_per_square(total_cost: float, squares: float) -> float:
    if squares <= 0:
        return 0.0
    return round_cents(total_cost / squares)


def generate_estimate_summary(calc: EstimateCalculation) -> EstimateSummary:
    """Headline figures for an estimate.

    Cost per square uses the shingle line's quantity (with waste); roofs
    without one are assumed to be 20 squares.
    """
    included = [li for li in calc.line_items if li.is_included]
    optional = [li for li in calc.line_items if li.is_optional]

    material_pct = calc.total_material / calc.subtotal * 100 if calc.subtotal > 0 else 0.0
    labor_pct = calc.total_labor / calc.subtotal * 100 if calc.subtotal > 0 else 0.0

    squares = next(
        (
            li.quantity_with_waste
            for li in calc.line_items
            if li.unit_type == UnitType.SQ and li.category == LineItemCategory.shingles
        ),
        0.0,
    ) or _DEFAULT_SUMMARY_SQUARES

    return EstimateSummary(
        total_cost=calc.price_likely,
        cost_per_square=calculate_cost_per_square(calc.price_likely, squares),
        material_percentage=round_half_up(material_pct, 0),
        labor_percentage=round_half_up(labor_pct, 0),
        included_items_count=len(included),
        optional_items_count=len(optional),
    )
