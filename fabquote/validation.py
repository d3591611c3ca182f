"""
Validation gate: runs before any costing.

Every quantity that references a price table must find a positive entry
there, and core inputs must be positive. A non-empty result blocks pricing.
These are hard blockers, not warnings: the pricing pipeline downstream
assumes this gate passed and never raises for missing data itself.

Input: PricingTables, PricingRules, SheetPolicy per family, BOM
Output: list of ValidationIssue {field, message}
"""

import logging
from typing import Dict, List, Optional

from .models import SheetMode
from .schemas import BOM, PricingRules, PricingTables, SheetBlank, SheetPolicy, ValidationIssue

logger = logging.getLogger(__name__)


def _positive(value) -> bool:
    return value is not None and value > 0


def validate_blanks(blanks: List[SheetBlank]) -> List[ValidationIssue]:
    """Geometry checks for sheet blanks, shared by the quote gate and the nesting API."""
    issues = []
    for part in blanks:
        if not (part.width > 0 and part.height > 0 and part.quantity > 0):
            issues.append(ValidationIssue(
                field=f"sheet_part:{part.id}",
                message=f"Blank {part.id} needs positive width, height and quantity.",
            ))
        if not part.thickness_mm > 0:
            issues.append(ValidationIssue(
                field=f"sheet_part:{part.id}:thickness",
                message=f"Blank {part.id} needs a positive thickness.",
            ))
        if any(not 0 < angle <= 180 for angle in part.bend_angles_deg):
            issues.append(ValidationIssue(
                field=f"sheet_part:{part.id}:bends",
                message=f"Blank {part.id} has a bend angle outside (0, 180] degrees.",
            ))
    return issues


def validate(tables: PricingTables, rules: PricingRules,
             policies: Optional[Dict[str, SheetPolicy]], bom: BOM) -> List[ValidationIssue]:
    """
    Collect every problem that must stop a quote. Never raises.

    Zero-length tubes/angles, zero-quantity accessories and zero-minute
    processes are exempt from the table lookups. The same issue reported
    by several parts shows up once.
    """
    policies = policies or {}
    issues: List[ValidationIssue] = []

    def add(field: str, message: str):
        issue = ValidationIssue(field=field, message=message)
        if issue not in issues:
            issues.append(issue)

    # --- Tables and rules ---
    if not _positive(tables.material_price_per_kg):
        add("material_price_per_kg", "Material price per kg must be greater than zero.")
    if not _positive(tables.density_kg_m3):
        add("density_kg_m3", "Material density must be greater than zero.")
    if not tables.sheet_catalog:
        add("sheet_catalog", "Stock sheet catalog is empty.")

    if not _positive(rules.markup):
        add("markup", "Markup multiplier must be greater than zero.")
    if not (0 <= rules.min_margin_pct < 1):
        add("min_margin_pct", "Minimum margin must be at least 0% and below 100%.")

    # --- Manual sheet policy, only for families actually in the BOM ---
    families = sorted({p.family for p in bom.sheet_parts})
    for family in families:
        policy = policies.get(family)
        if policy is None or policy.mode != SheetMode.MANUAL:
            continue
        if not policy.manual_sheet_id:
            add(f"sheet_selected:{family}", f'Select a manual sheet for family "{family}".')
        elif tables.find_sheet(policy.manual_sheet_id) is None:
            add(f"sheet_selected:{family}",
                f'Manual sheet "{policy.manual_sheet_id}" for family "{family}" '
                f"is not in the catalog.")

    # --- Sheet blanks ---
    for issue in validate_blanks(bom.sheet_parts):
        add(issue.field, issue.message)

    # --- Tubes and angles ---
    for tube in bom.tube_parts:
        if tube.meters < 0:
            add(f"tube:{tube.id}", f"Tube {tube.id} has a negative length.")
        elif tube.meters > 0 and not _positive(tables.tube_kg_per_meter.get(tube.tube_key)):
            add(f"tube_key:{tube.tube_key}", f"No kg/m registered for tube key {tube.tube_key}.")

    for angle in bom.angle_parts:
        if angle.meters < 0:
            add(f"angle:{angle.id}", f"Angle {angle.id} has a negative length.")
        elif angle.meters > 0 and not _positive(tables.angle_kg_per_meter.get(angle.angle_key)):
            add(f"angle_key:{angle.angle_key}",
                f"No kg/m registered for angle key {angle.angle_key}.")

    # --- Accessories ---
    for acc in bom.accessories:
        if acc.quantity < 0:
            add(f"accessory:{acc.sku}", f"Accessory {acc.sku} has a negative quantity.")
        elif acc.quantity > 0 and not _positive(tables.accessory_unit_price.get(acc.sku)):
            add(f"accessory_price:{acc.sku}", f"No unit price registered for accessory {acc.sku}.")

    # --- Processes ---
    for proc in bom.processes:
        kind = proc.kind.value
        if proc.minutes < 0:
            add(f"process:{kind}", f"Process {kind} has negative minutes.")
        elif proc.minutes > 0 and not _positive(tables.process_cost_per_hour.get(proc.kind)):
            add(f"process_cost:{kind}", f"No cost per hour registered for process {kind}.")

    if issues:
        logger.info("Validation blocked quote: %d issue(s) [%s]",
                    len(issues), ", ".join(i.field for i in issues))
    return issues
