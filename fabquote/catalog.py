"""
Default catalog tables: a starting structure, not market prices.

Callers normally load PricingTables from their own catalog store. These
defaults give the keys the BOM builders use so a new shop can fill in
numbers. Every price here is zero, so the validation gate blocks
until real values are registered.
"""

from typing import Dict, Iterable

from .config import settings
from .models import ProcessKind
from .schemas import PricingTables, StockSheet
from .weights import DENSITIES, density_for_alloy, kg_per_meter_for_profile

DEFAULT_SHEET_CATALOG = [
    StockSheet(id="2000x1250", width=2000, height=1250, label="2000×1250"),
    StockSheet(id="3000x1250", width=3000, height=1250, label="3000×1250"),
    StockSheet(id="1500x1250", width=1500, height=1250, label="1500×1250"),
]

# Cost per hour by process kind (fill in)
DEFAULT_PROCESS_COST_PER_HOUR: Dict[ProcessKind, float] = {kind: 0.0 for kind in ProcessKind}

# Common stainless profiles, "<w>x<h>x<wall>" in mm. kg/m is derived from
# the cross section so only the density has to be right.
TUBE_PROFILES = [
    "20x20x1.2",
    "25x25x1.2",
    "30x30x1.2",
    "40x40x1.2",
    "40x40x1.5",
    "50x50x1.5",
    "40x20x1.2",
    "50x30x1.5",
]

ROUND_TUBE_PROFILES = [
    "25.4x1.2",
    "31.75x1.2",
    "38.1x1.2",
    "50.8x1.5",
]

ANGLE_PROFILES = [
    "25x25x3",
    "30x30x3",
    "40x40x3",
    "50x50x4",
]

DEFAULT_ACCESSORY_SKUS = [
    "leveling_foot",
    "shelf_bracket",
    "caster",
    "drain_valve",
    "hose",
    "elbow",
    "pedal",
    "tall_faucet",
    "short_faucet",
    "mdf_panel",
]


def kg_per_meter_table(profiles: Iterable[str], density_kg_m3: float,
                       kind: str = "tube") -> Dict[str, float]:
    """{profile: kg/m} for each profile string, rounded to grams per metre."""
    return {
        profile: round(kg_per_meter_for_profile(profile, density_kg_m3, kind), 3)
        for profile in profiles
    }


def make_default_tables(price_per_kg: float, overhead_percent: float = 0.0,
                        density_kg_m3: float = None, alloy: str = None) -> PricingTables:
    """
    PricingTables with the default catalog and geometry-derived kg/m tables.
    Accessory and process prices stay at zero until the shop registers them.

    Density: explicit value, else the alloy's, else the configured default.
    """
    if alloy:
        density = density_for_alloy(alloy, density_kg_m3)
    else:
        density = density_kg_m3 or settings.DEFAULT_DENSITY_KG_M3
    tubes = kg_per_meter_table(TUBE_PROFILES, density)
    tubes.update(kg_per_meter_table(ROUND_TUBE_PROFILES, density, kind="round"))
    return PricingTables(
        material_price_per_kg=price_per_kg,
        density_kg_m3=density,
        sheet_catalog=list(DEFAULT_SHEET_CATALOG),
        tube_kg_per_meter=tubes,
        angle_kg_per_meter=kg_per_meter_table(ANGLE_PROFILES, density, kind="angle"),
        accessory_unit_price={sku: 0.0 for sku in DEFAULT_ACCESSORY_SKUS},
        process_cost_per_hour=dict(DEFAULT_PROCESS_COST_PER_HOUR),
        overhead_percent=overhead_percent,
    )


def catalog_defaults() -> dict:
    """Plain-data view of the defaults for the catalog endpoint."""
    return {
        "sheet_catalog": [s.model_dump() for s in DEFAULT_SHEET_CATALOG],
        "densities_kg_m3": dict(DENSITIES),
        "process_kinds": [kind.value for kind in ProcessKind],
        "tube_profiles": TUBE_PROFILES + ROUND_TUBE_PROFILES,
        "angle_profiles": list(ANGLE_PROFILES),
        "accessory_skus": list(DEFAULT_ACCESSORY_SKUS),
    }
