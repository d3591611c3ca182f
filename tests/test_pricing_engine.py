"""
Pricing engine: nesting + mass + labor rolled into cost base and prices.

Tests:
1-3.   Anti-loss floor and suggested price
4-6.   Sheet groups (bought vs used, grouping key, manual sheet)
7-9.   Linear stock, accessories, processes, overhead
10-12. Gate and placement errors, batch
13-16. Determinism, cost base sums, repricing, default tables
17-18. Missing prices found after the gate: zero cost plus a warning
19.    Input hash for audit

No AI, no storage: pure math.
"""

import pytest

from fabquote.catalog import make_default_tables
from fabquote.exceptions import PlacementError, QuoteValidationError
from fabquote.models import UNPLACED_PARTS, CostMode, ProcessKind, SheetMode
from fabquote.pricing_engine import (
    PricingEngine, margin_pct, minimum_safe_price, quote_input_hash, suggested_price,
)
from fabquote.schemas import (
    BOM, AccessoryPart, AnglePart, PricingRules, ProcessItem, QuoteRequest, SheetBlank,
    SheetPolicy, TubePart,
)


# --- Test fixtures ---

def _tampo(quantity=1, family="304", thickness=1.2):
    return SheetBlank(id="tampo", width=1000, height=700, quantity=quantity,
                      thickness_mm=thickness, family=family)


def _sample_bom():
    return BOM(
        sheet_parts=[_tampo()],
        tube_parts=[TubePart(id="leg", meters=3.2, tube_key="40x40x1.2")],
        angle_parts=[AnglePart(id="frame", meters=2.0, angle_key="30x30x3")],
        accessories=[AccessoryPart(sku="leveling_foot", quantity=4)],
        processes=[ProcessItem(kind=ProcessKind.WELD, minutes=45)],
    )


def _manual_2000(cost_mode=CostMode.BOUGHT):
    return {"304": SheetPolicy(mode=SheetMode.MANUAL, manual_sheet_id="2000x1250",
                               cost_mode=cost_mode)}


# --- Anti-loss floor ---

def test_markup_above_floor_wins():
    floor = minimum_safe_price(1000, 0.2)
    assert floor == pytest.approx(1250)
    assert suggested_price(1000, 3.0, floor) == pytest.approx(3000)


def test_low_markup_lifted_to_floor():
    floor = minimum_safe_price(1000, 0.2)
    assert suggested_price(1000, 1.1, floor) == pytest.approx(1250)
    assert margin_pct(1250, 1000) == pytest.approx(0.2)


def test_floor_with_margin_near_one_stays_finite():
    assert minimum_safe_price(100, 1.0, epsilon=1e-6) == pytest.approx(1e8)
    assert minimum_safe_price(100, -0.5) == pytest.approx(100)


# --- Sheet groups ---

def test_tampo_bought_mode(tables):
    quote = PricingEngine().build_quote(tables, PricingRules(), _manual_2000(), BOM(
        sheet_parts=[_tampo()],
    ))
    group = quote.groups[0]
    assert group.group_key == "304|1.2"
    assert group.nesting.sheets_used == 1
    assert group.nesting.area_used_m2 == pytest.approx(0.70)
    assert group.nesting.area_bought_m2 == pytest.approx(2.5)
    assert group.kg_bought == pytest.approx(23.79)
    assert group.cost_sheet == pytest.approx(1070.55)
    assert quote.costs.sheet == pytest.approx(1070.55)
    assert quote.costs.price_suggested == pytest.approx(1070.55)


def test_used_mode_never_costs_more_than_bought(tables):
    engine = PricingEngine()
    bom = BOM(sheet_parts=[_tampo()])
    bought = engine.build_quote(tables, PricingRules(), _manual_2000(CostMode.BOUGHT), bom)
    used = engine.build_quote(tables, PricingRules(), _manual_2000(CostMode.USED), bom)
    assert used.costs.sheet <= bought.costs.sheet
    assert used.groups[0].kg_bought == pytest.approx(round(0.7 * 0.0012 * 7930 * 1.15, 2))
    assert any("Leftover sheet goes to stock" in w for w in used.warnings)


def test_groups_split_by_family_and_thickness(tables):
    bom = BOM(sheet_parts=[_tampo(family="430"), _tampo(thickness=0.8), _tampo()])
    quote = PricingEngine().build_quote(tables, PricingRules(), {}, bom)
    assert [g.group_key for g in quote.groups] == ["304|0.8", "304|1.2", "430|1.2"]
    # auto mode picks the smallest purchased area
    assert all(g.nesting.sheet.id == "1500x1250" for g in quote.groups)


def test_linear_stock_accessories_processes(tables):
    quote = PricingEngine().build_quote(tables, PricingRules(), {}, BOM(
        tube_parts=[TubePart(id="leg", meters=4.0, tube_key="40x40x1.2")],
        angle_parts=[AnglePart(id="frame", meters=2.0, angle_key="30x30x3")],
        accessories=[AccessoryPart(sku="leveling_foot", quantity=4)],
        processes=[ProcessItem(kind=ProcessKind.WELD, minutes=45)],
    ))
    assert quote.costs.tubes == pytest.approx(round(4.0 * 1.45 * 45, 2))
    assert quote.costs.angles == pytest.approx(round(2.0 * 1.36 * 45, 2))
    assert quote.costs.accessories == pytest.approx(48.0)
    assert quote.costs.processes == pytest.approx(45.0)
    assert quote.mass.tube_kg == pytest.approx(5.8)
    assert quote.mass.sheet_kg == 0


def test_overhead_applied_to_subtotal(tables):
    with_overhead = tables.model_copy(update={"overhead_percent": 0.1})
    quote = PricingEngine().build_quote(with_overhead, PricingRules(), {}, BOM(
        accessories=[AccessoryPart(sku="leveling_foot", quantity=10)],
    ))
    assert quote.costs.accessories == pytest.approx(120.0)
    assert quote.costs.overhead == pytest.approx(12.0)
    assert quote.costs.cost_base == pytest.approx(132.0)


def test_invalid_request_never_priced(tables):
    bom = BOM(tube_parts=[TubePart(id="t", meters=1.0, tube_key="99x99x9")])
    with pytest.raises(QuoteValidationError) as exc:
        PricingEngine().build_quote(tables, PricingRules(), {}, bom)
    assert [i.field for i in exc.value.issues] == ["tube_key:99x99x9"]
    assert exc.value.code == "VALIDATION_FAILED"


def test_oversized_blank_raises_unplaced(tables):
    huge = SheetBlank(id="huge", width=4000, height=2000, thickness_mm=1.2, family="304")
    with pytest.raises(PlacementError) as exc:
        PricingEngine().build_quote(tables, PricingRules(), {}, BOM(sheet_parts=[huge]))
    assert exc.value.code == UNPLACED_PARTS
    assert exc.value.unplaced == ["huge"]

    with pytest.raises(PlacementError):
        PricingEngine().build_quote(tables, PricingRules(), _manual_2000(),
                                    BOM(sheet_parts=[huge]))


def test_batch_keeps_going(tables):
    good = QuoteRequest(tables=tables, bom=BOM(sheet_parts=[_tampo()]))
    invalid = QuoteRequest(tables=tables, bom=BOM(
        accessories=[AccessoryPart(sku="caster", quantity=1)],
    ))
    huge = QuoteRequest(tables=tables, bom=BOM(sheet_parts=[
        SheetBlank(id="huge", width=4000, height=2000, thickness_mm=1.2, family="304"),
    ]))
    results = PricingEngine().price_batch([good, invalid, huge])
    assert [r.ok for r in results] == [True, False, False]
    assert results[1].error_code == "VALIDATION_FAILED"
    assert results[1].errors[0].field == "accessory_price:caster"
    assert results[2].error_code == UNPLACED_PARTS


def test_same_input_same_output(tables):
    engine = PricingEngine()
    rules = PricingRules(min_margin_pct=0.25, markup=1.8)
    first = engine.build_quote(tables, rules, {}, _sample_bom())
    second = engine.build_quote(tables, rules, {}, _sample_bom())
    assert first.model_dump_json() == second.model_dump_json()


def test_cost_base_is_sum_of_categories(tables):
    with_overhead = tables.model_copy(update={"overhead_percent": 0.07})
    quote = PricingEngine().build_quote(with_overhead, PricingRules(markup=1.3), {}, _sample_bom())
    c = quote.costs
    total = c.sheet + c.tubes + c.angles + c.accessories + c.processes + c.overhead
    assert c.cost_base == pytest.approx(round(total, 2))
    assert c.price_suggested >= c.price_min_safe
    assert c.price_min_safe >= c.cost_base


def test_reprice_keeps_costs(tables):
    engine = PricingEngine()
    quote = engine.build_quote(tables, PricingRules(), {}, _sample_bom())
    repriced = engine.recalculate_with_rules(quote, PricingRules(min_margin_pct=0.2, markup=1.1))
    assert repriced.costs.cost_base == quote.costs.cost_base
    assert repriced.costs.price_suggested == pytest.approx(round(quote.costs.cost_base / 0.8, 2))
    assert quote.costs.price_suggested == quote.costs.cost_base
    assert repriced.input_hash == quote.input_hash
    assert repriced.rules.min_margin_pct == 0.2


def test_default_tables_block_until_priced():
    tables = make_default_tables(price_per_kg=45.0)
    assert "40x40x1.2" in tables.tube_kg_per_meter
    bom = BOM(accessories=[AccessoryPart(sku="caster", quantity=2)])
    with pytest.raises(QuoteValidationError):
        PricingEngine().build_quote(tables, PricingRules(), {}, bom)


# --- Missing data found after the gate ---

def test_missing_prices_cost_zero_and_warn(tables):
    bom = BOM(
        tube_parts=[
            TubePart(id="t", meters=2.0, tube_key="99x99x9"),
            TubePart(id="z", meters=0.0, tube_key="88x88x8"),
        ],
        angle_parts=[AnglePart(id="a", meters=1.5, angle_key="nope")],
        accessories=[AccessoryPart(sku="caster", quantity=2)],
        processes=[ProcessItem(kind=ProcessKind.FINISH, minutes=30)],
    )
    quote = PricingEngine().price(tables, PricingRules(), {}, bom)

    assert quote.costs.tubes == 0
    assert quote.costs.angles == 0
    assert quote.costs.accessories == 0
    assert quote.costs.processes == 0
    assert quote.warnings == [
        'No kg/m for tube "99x99x9"; its cost is counted as zero.',
        'No kg/m for angle "nope"; its cost is counted as zero.',
        'No unit price for accessory "caster"; counted as zero.',
        'No cost per hour for process "finish"; counted as zero.',
    ]


def test_manual_sheet_missing_at_pricing_falls_back(tables):
    policies = {"304": SheetPolicy(mode=SheetMode.MANUAL, manual_sheet_id="9999x9999")}
    quote = PricingEngine().price(tables, PricingRules(), policies, BOM(sheet_parts=[_tampo()]))
    assert quote.groups[0].nesting.sheet.id == "1500x1250"
    assert quote.warnings == [
        'Family "304": manual sheet "9999x9999" not in catalog; picking automatically.',
    ]


# --- Audit ---

def test_input_hash_identifies_costing_inputs(tables):
    engine = PricingEngine()
    first = engine.build_quote(tables, PricingRules(), {}, _sample_bom())
    again = engine.build_quote(tables, PricingRules(), {}, _sample_bom())
    assert len(first.input_hash) == 64
    assert first.input_hash == again.input_hash
    assert first.input_hash == quote_input_hash(tables, {}, _sample_bom())

    more_tampos = _sample_bom().model_copy(update={"sheet_parts": [_tampo(quantity=2)]})
    changed = engine.build_quote(tables, PricingRules(), {}, more_tampos)
    assert changed.input_hash != first.input_hash

    pricier = tables.model_copy(update={"material_price_per_kg": 50.0})
    changed = engine.build_quote(pricier, PricingRules(), {}, _sample_bom())
    assert changed.input_hash != first.input_hash

    # rules only move prices; they are recorded next to the hash
    marked_up = engine.build_quote(tables, PricingRules(markup=2.0), {}, _sample_bom())
    assert marked_up.input_hash == first.input_hash
    assert marked_up.rules.markup == 2.0
