"""Project-level configuration and scaffolding."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "roofcalc.yaml"

DEFAULT_CONFIG = {
    "overhead_percent": 10.0,
    "profit_percent": 15.0,
    "tax_percent": 0.0,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def _flatten_pricing_block(user_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten a nested ``pricing:`` block into flat config keys.

    Supports::

        pricing:
          overhead: 12
          profit: 20
          tax: 8.25

    Maps to ``overhead_percent``, ``profit_percent`` and ``tax_percent``.
    Flat keys given alongside the block win.
    """
    block = user_config.pop("pricing", None)
    if not isinstance(block, dict):
        return user_config

    mapping = {
        "overhead": "overhead_percent",
        "profit": "profit_percent",
        "tax": "tax_percent",
    }
    for short_key, flat_key in mapping.items():
        if short_key in block:
            user_config.setdefault(flat_key, block[short_key])
    return user_config


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``roofcalc.yaml``, with defaults.

    Args:
        project_dir: Root of the roofcalc project.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the config file is not a YAML mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        user_config = _flatten_pricing_block(user_config)
        config.update(user_config)
    return config


DEMO_CONFIG = """\
# roofcalc project config
pricing:
  overhead: 10
  profit: 15
  tax: 0

logging_fsync: false
"""

DEMO_ESTIMATE = """\
# roofcalc estimate spec v1
lead_id: demo-lead

variables:
  SQ: 25
  SF: 2500
  P: 200
  EAVE: 100
  R: 50
  VAL: 20
  HIP: 0
  RAKE: 80
  SKYLIGHT_COUNT: 1
  CHIMNEY_COUNT: 1
  PIPE_COUNT: 4
  VENT_COUNT: 3
  GUTTER_LF: 100
  DS_COUNT: 4
  slopes:
    F1: {SQ: 12.5, SF: 1250, PITCH: 5, EAVE: 50, RIDGE: 25, VALLEY: 10, HIP: 0, RAKE: 40}
    F2: {SQ: 12.5, SF: 1250, PITCH: 5, EAVE: 50, RIDGE: 25, VALLEY: 10, HIP: 0, RAKE: 40}

geographic_pricing:
  id: geo-default
  name: Default region
  material_multiplier: 1.0
  labor_multiplier: 1.0
  equipment_multiplier: 1.0

line_items:
  - line_item:
      id: li-shingles
      item_code: SHNG-ARCH
      name: Architectural shingles
      category: shingles
      unit_type: SQ
      base_material_cost: 120
      base_labor_cost: 80
      quantity_formula: SQ
      default_waste_factor: 1.15
      is_taxable: true
      sort_order: 1
  - line_item:
      id: li-drip
      item_code: DRIP-EDGE
      name: Drip edge
      category: flashing
      unit_type: LF
      base_material_cost: 1.5
      base_labor_cost: 0.75
      quantity_formula: EAVE+RAKE
      default_waste_factor: 1.05
      is_taxable: true
      sort_order: 2
  - line_item:
      id: li-gutter
      item_code: GUTTER-5K
      name: 5in K-style gutter
      category: gutters
      unit_type: LF
      base_material_cost: 4
      base_labor_cost: 3
      quantity_formula: GUTTER_LF
      sort_order: 3
    is_optional: true
"""


def scaffold_project(target_dir: Path) -> Path:
    """Create a new project with a config and a sample estimate spec.

    Args:
        target_dir: Directory to create.  Must not already contain a config.

    Returns:
        Path to the created project directory.

    Raises:
        FileExistsError: If ``roofcalc.yaml`` already exists there.
    """
    target_dir = Path(target_dir)
    config_path = target_dir / CONFIG_FILENAME
    if config_path.exists():
        raise FileExistsError(f"Project already exists at {target_dir}")

    (target_dir / "estimates").mkdir(parents=True, exist_ok=True)
    (target_dir / "logs").mkdir(exist_ok=True)
    config_path.write_text(DEMO_CONFIG)
    (target_dir / "estimates" / "sample.yaml").write_text(DEMO_ESTIMATE)
    return target_dir
