"""
Pricing Engine: sheet nesting, material mass and labor rolled into a price.

Pure math. Quantity × price, kg × price/kg, hours × rate, cost × markup,
then the anti-loss floor on top.

Input: PricingTables + PricingRules + SheetPolicy per family + BOM
Output: QuoteResult (per-group nesting and cost, cost breakdown, warnings)

Once the validation gate has passed, nothing in here raises for missing
data: a zero lookup found mid-pipeline costs zero and adds a warning.
The only exception that can escape is PlacementError, when a blank has
no sheet it physically fits.
"""

import hashlib
import json
import logging
from typing import Dict, List, Optional

from .config import settings
from .exceptions import PlacementError, QuoteValidationError
from .models import CostMode, SheetMode
from .nesting import Nester
from .schemas import (
    BOM, BatchItemResult, CostBreakdown, GroupQuote, MassSummary, PricingRules,
    PricingTables, QuoteRequest, QuoteResult, SheetBlank, SheetPolicy,
)
from .validation import validate
from .weights import mass_from_kg_per_meter, material_cost, sheet_group_kg

logger = logging.getLogger(__name__)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _round2(value: float) -> float:
    return round(value, 2)


def minimum_safe_price(cost_base: float, min_margin_pct: float,
                       epsilon: float = None) -> float:
    """
    Lowest price that keeps margin (as a share of revenue) at the floor.

    cost / (1 - margin); epsilon keeps a margin near 100% from blowing up.
    """
    eps = settings.MARGIN_EPSILON if epsilon is None else epsilon
    return cost_base / max(1.0 - _clamp01(min_margin_pct), eps)


def suggested_price(cost_base: float, markup: float, price_min_safe: float) -> float:
    """Markup price, never below the anti-loss floor."""
    return max(cost_base * markup, price_min_safe)


def margin_pct(price: float, cost_base: float) -> float:
    """Margin as a share of revenue. 0.0 for a zero price."""
    if price <= 0:
        return 0.0
    return (price - cost_base) / price


def quote_input_hash(tables: PricingTables, policies: Optional[Dict[str, SheetPolicy]],
                     bom: BOM) -> str:
    """
    sha256 of the canonical JSON of everything that feeds the costs, so an
    audited quote can be matched to the exact tables, policies and BOM.
    Rules are left out: they only move prices and are stored on the result.
    """
    payload = {
        "tables": tables.model_dump(mode="json"),
        "policies": {family: p.model_dump(mode="json") for family, p in (policies or {}).items()},
        "bom": bom.model_dump(mode="json"),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class PricingEngine:
    """
    Assembles a QuoteResult from tables, rules, policies and a BOM.
    Holds configuration only; no state survives between quotes.
    """

    def __init__(self, nester: Optional[Nester] = None,
                 scrap_min_pct_default: float = None, margin_epsilon: float = None):
        self.nester = nester or Nester()
        self.scrap_min_pct_default = (settings.SCRAP_MIN_PCT_DEFAULT
                                      if scrap_min_pct_default is None else scrap_min_pct_default)
        self.margin_epsilon = settings.MARGIN_EPSILON if margin_epsilon is None else margin_epsilon

    def build_quote(self, tables: PricingTables, rules: PricingRules,
                    policies: Optional[Dict[str, SheetPolicy]], bom: BOM) -> QuoteResult:
        """
        Validate, then price. Raises QuoteValidationError if the gate fails,
        so an invalid request can never come back with a price.
        """
        issues = validate(tables, rules, policies, bom)
        if issues:
            raise QuoteValidationError(issues)
        return self.price(tables, rules, policies, bom)

    def price(self, tables: PricingTables, rules: PricingRules,
              policies: Optional[Dict[str, SheetPolicy]], bom: BOM) -> QuoteResult:
        """
        Run the pricing pipeline on data that already passed validate().

        Steps, in order:
            1-2. group sheet blanks by (family, thickness), nest and cost each
            3-4. tubes and angles: meters × kg/m × price/kg
            5.   accessories: qty × unit price
            6.   processes: minutes / 60 × cost per hour
            7.   overhead on the five-category subtotal
            8.   cost base
            9.   minimum safe price (anti-loss floor)
            10.  suggested price = max(markup price, floor)
        """
        policies = policies or {}
        warnings: List[str] = []

        # --- Sheets ---
        groups = self._price_sheet_groups(tables, policies, bom.sheet_parts, warnings)
        sheet_cost = sum(g["cost"] for g in groups)
        sheet_kg = sum(g["kg"] for g in groups)

        # --- Linear stock ---
        tube_kg = self._linear_kg(
            ((t.meters, t.tube_key) for t in bom.tube_parts),
            tables.tube_kg_per_meter, "tube", warnings,
        )
        angle_kg = self._linear_kg(
            ((a.meters, a.angle_key) for a in bom.angle_parts),
            tables.angle_kg_per_meter, "angle", warnings,
        )
        tube_cost = material_cost(tube_kg, tables.material_price_per_kg)
        angle_cost = material_cost(angle_kg, tables.material_price_per_kg)

        # --- Accessories and processes ---
        accessory_cost = self._calculate_accessory_subtotal(bom, tables, warnings)
        process_cost = self._calculate_process_subtotal(bom, tables, warnings)

        # --- Overhead ---
        subtotal = sheet_cost + tube_cost + angle_cost + accessory_cost + process_cost
        overhead = subtotal * _clamp01(tables.overhead_percent)

        costs = self._assemble_costs(
            sheet_cost, tube_cost, angle_cost, accessory_cost, process_cost, overhead, rules,
        )

        for message in warnings:
            logger.warning(message)
        logger.info(
            "Quote priced: %d sheet group(s), cost base %.2f, min safe %.2f, suggested %.2f",
            len(groups), costs.cost_base, costs.price_min_safe, costs.price_suggested,
        )

        return QuoteResult(
            groups=[g["quote"] for g in groups],
            costs=costs,
            mass=MassSummary(
                sheet_kg=round(sheet_kg, 3),
                tube_kg=round(tube_kg, 3),
                angle_kg=round(angle_kg, 3),
                total_kg=round(sheet_kg + tube_kg + angle_kg, 3),
            ),
            rules=rules,
            input_hash=quote_input_hash(tables, policies, bom),
            warnings=warnings,
        )

    def price_batch(self, requests: List[QuoteRequest]) -> List[BatchItemResult]:
        """
        Price many BOMs. Each item comes back as a result or as its issues;
        one bad BOM never stops the batch.
        """
        results = []
        for index, req in enumerate(requests):
            try:
                quote = self.build_quote(req.tables, req.rules, req.policies, req.bom)
            except QuoteValidationError as e:
                results.append(BatchItemResult(
                    index=index, ok=False, errors=e.issues, error_code=e.code,
                ))
            except PlacementError as e:
                results.append(BatchItemResult(index=index, ok=False, error_code=e.code))
            else:
                results.append(BatchItemResult(index=index, ok=True, quote=quote))
        return results

    def recalculate_with_rules(self, quote: QuoteResult, rules: PricingRules) -> QuoteResult:
        """
        Re-run steps 9-10 with new margin/markup rules. Costs and input_hash
        stay as quoted. Returns a new QuoteResult; the input is not modified.
        """
        c = quote.costs
        costs = self._assemble_costs(
            c.sheet, c.tubes, c.angles, c.accessories, c.processes, c.overhead, rules,
        )
        return quote.model_copy(update={"costs": costs, "rules": rules})

    # --- Steps ---

    def _resolve_policy(self, family: str, policies: Dict[str, SheetPolicy]) -> SheetPolicy:
        policy = policies.get(family)
        if policy is None:
            return SheetPolicy(
                mode=SheetMode.AUTO,
                cost_mode=CostMode.BOUGHT,
                scrap_min_pct=self.scrap_min_pct_default,
            )
        return policy

    @staticmethod
    def _group_sheet_parts(parts: List[SheetBlank]) -> List[tuple]:
        """(family, thickness, blanks) in sorted key order so output never depends on input order."""
        groups: Dict[tuple, List[SheetBlank]] = {}
        for part in parts:
            groups.setdefault((part.family, part.thickness_mm), []).append(part)
        return [(family, thickness, groups[(family, thickness)])
                for family, thickness in sorted(groups)]

    def _price_sheet_groups(self, tables: PricingTables, policies: Dict[str, SheetPolicy],
                            parts: List[SheetBlank], warnings: List[str]) -> List[dict]:
        priced = []
        for family, thickness, blanks in self._group_sheet_parts(parts):
            group_key = f"{family}|{thickness:g}"
            policy = self._resolve_policy(family, policies)

            sheet = None
            if policy.mode == SheetMode.MANUAL:
                sheet = tables.find_sheet(policy.manual_sheet_id)
                if sheet is None:
                    warnings.append(
                        f'Family "{family}": manual sheet "{policy.manual_sheet_id}" '
                        f"not in catalog; picking automatically."
                    )
                else:
                    too_big = self.nester.oversized(blanks, sheet)
                    if too_big:
                        raise PlacementError.unplaced_parts(too_big, f"on sheet {sheet.id}")
            if sheet is None:
                sheet = self.nester.pick_sheet_auto(blanks, tables.sheet_catalog)

            nesting = self.nester.estimate(blanks, sheet)
            kg = sheet_group_kg(
                nesting.area_used_m2, nesting.area_bought_m2, thickness,
                tables.density_kg_m3, policy.cost_mode, policy.scrap_min_pct,
            )
            cost = material_cost(kg, tables.material_price_per_kg)

            if policy.cost_mode == CostMode.USED:
                warnings.append(
                    f'Family "{family}": "used" cost mode (net kg + '
                    f"{policy.scrap_min_pct:.0%} scrap). Leftover sheet goes to stock."
                )

            logger.debug("Group %s: sheet %s x%d, efficiency %.3f, %.3f kg, cost %.4f",
                         group_key, sheet.id, nesting.sheets_used, nesting.efficiency, kg, cost)

            priced.append({
                "kg": kg,
                "cost": cost,
                "quote": GroupQuote(
                    group_key=group_key,
                    family=family,
                    thickness_mm=thickness,
                    policy=policy,
                    nesting=nesting,
                    kg_bought=round(kg, 2),
                    cost_sheet=_round2(cost),
                ),
            })
        return priced

    @staticmethod
    def _linear_kg(items, kg_per_meter: Dict[str, float], label: str,
                   warnings: List[str]) -> float:
        """Σ meters × kg/m. A positive length with no kg/m counts zero and warns."""
        total = 0.0
        for meters, key in items:
            kgpm = kg_per_meter.get(key) or 0.0
            if meters > 0 and kgpm <= 0:
                warnings.append(f'No kg/m for {label} "{key}"; its cost is counted as zero.')
                continue
            total += mass_from_kg_per_meter(max(0.0, meters), kgpm)
        return total

    @staticmethod
    def _calculate_accessory_subtotal(bom: BOM, tables: PricingTables,
                                      warnings: List[str]) -> float:
        total = 0.0
        for acc in bom.accessories:
            unit = tables.accessory_unit_price.get(acc.sku) or 0.0
            if acc.quantity > 0 and unit <= 0:
                warnings.append(f'No unit price for accessory "{acc.sku}"; counted as zero.')
                continue
            total += max(0.0, acc.quantity) * unit
        return total

    @staticmethod
    def _calculate_process_subtotal(bom: BOM, tables: PricingTables,
                                    warnings: List[str]) -> float:
        total = 0.0
        for proc in bom.processes:
            rate = tables.process_cost_per_hour.get(proc.kind) or 0.0
            if proc.minutes > 0 and rate <= 0:
                warnings.append(
                    f'No cost per hour for process "{proc.kind.value}"; counted as zero.'
                )
                continue
            total += (max(0.0, proc.minutes) / 60.0) * rate
        return total

    def _assemble_costs(self, sheet: float, tubes: float, angles: float, accessories: float,
                        processes: float, overhead: float, rules: PricingRules) -> CostBreakdown:
        """
        Round each category once, here, and derive the prices from the
        rounded cost base so the printed breakdown adds up to the cent.
        """
        parts = [_round2(v) for v in (sheet, tubes, angles, accessories, processes, overhead)]
        cost_base = _round2(sum(parts))
        floor = minimum_safe_price(cost_base, rules.min_margin_pct, self.margin_epsilon)
        suggested = suggested_price(cost_base, rules.markup, floor)
        return CostBreakdown(
            sheet=parts[0],
            tubes=parts[1],
            angles=parts[2],
            accessories=parts[3],
            processes=parts[4],
            overhead=parts[5],
            cost_base=cost_base,
            price_min_safe=_round2(floor),
            price_suggested=_round2(suggested),
        )
