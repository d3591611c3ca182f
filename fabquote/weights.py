# Metal mass constants and kg / currency math for sheets, tubes and angle stock.
# Source for densities: stainless mill certificates (kg/m³).

import math

from .models import CostMode


# Densities (kg/m³) by alloy
DENSITIES = {
    "304": 7930,
    "316L": 8000,
    "430": 7750,
    "409": 7800,
    "441": 7800,
    "201": 7850,
}

_DEFAULT_STAINLESS_DENSITY = 8000


def density_for_alloy(alloy: str, override: float = None) -> float:
    """
    Density in kg/m³ for an alloy name like "304", "AISI 304" or "SS316L".
    An explicit positive override always wins.
    """
    if override and override > 0:
        return override
    normalized = (alloy or "").upper().replace("AISI", "").replace("SS", "").strip()
    for key, value in DENSITIES.items():
        if key.upper() == normalized:
            return value
    return _DEFAULT_STAINLESS_DENSITY


def parse_profile(profile: str):
    """
    Parse a profile string "40x40x1.2" into (width, height, wall) in mm.
    A two-part string "38.1x1.2" is a round tube: (od, od, wall).
    Returns None when the string is not a profile.
    """
    if not profile:
        return None
    try:
        numbers = [float(p) for p in profile.lower().replace("×", "x").split("x")]
    except ValueError:
        return None
    if len(numbers) == 3:
        return numbers[0], numbers[1], numbers[2]
    if len(numbers) == 2:
        return numbers[0], numbers[0], numbers[1]
    return None


# --- Cross sections (m²) ---

def rect_hollow_section_m2(width_mm: float, height_mm: float, wall_mm: float) -> float:
    """Rectangular hollow section: outer box minus inner (w-2t)(h-2t)."""
    inner_w = max(0.0, width_mm - 2 * wall_mm)
    inner_h = max(0.0, height_mm - 2 * wall_mm)
    return (width_mm * height_mm - inner_w * inner_h) / 1_000_000


def round_tube_section_m2(od_mm: float, wall_mm: float) -> float:
    inner = max(0.0, od_mm - 2 * wall_mm)
    return math.pi / 4 * (od_mm ** 2 - inner ** 2) / 1_000_000


def angle_section_m2(leg_a_mm: float, leg_b_mm: float, thickness_mm: float) -> float:
    """L-profile: two legs sharing one t × t corner."""
    return (leg_a_mm + leg_b_mm - thickness_mm) * thickness_mm / 1_000_000


# --- Mass ---

def sheet_mass_kg(area_m2: float, thickness_mm: float, density_kg_m3: float) -> float:
    """Mass of flat stock: area × thickness × density."""
    return area_m2 * (thickness_mm / 1000) * density_kg_m3


def tube_mass_kg(length_m: float, section_m2: float, density_kg_m3: float,
                 quantity: float = 1) -> float:
    return length_m * section_m2 * density_kg_m3 * quantity


def kg_per_meter(section_m2: float, density_kg_m3: float) -> float:
    """Mass of one metre of a profile, i.e. what the kg/m tables hold."""
    return tube_mass_kg(1.0, section_m2, density_kg_m3)


def kg_per_meter_for_profile(profile: str, density_kg_m3: float, kind: str = "tube") -> float:
    """
    kg/m straight from a profile string. 0.0 when the string can't be parsed,
    which the pricing pipeline then reports as a missing kg/m entry.
    """
    dims = parse_profile(profile)
    if dims is None:
        return 0.0
    width, height, wall = dims
    if kind == "angle":
        section = angle_section_m2(width, height, wall)
    elif kind == "round":
        section = round_tube_section_m2(width, wall)
    else:
        section = rect_hollow_section_m2(width, height, wall)
    return kg_per_meter(section, density_kg_m3)


def mass_from_kg_per_meter(meters: float, kg_per_m: float) -> float:
    return meters * kg_per_m


def sheet_group_kg(area_used_m2: float, area_bought_m2: float, thickness_mm: float,
                   density_kg_m3: float, cost_mode: CostMode, scrap_min_pct: float) -> float:
    """
    kg charged for one nested sheet group.

    "bought" charges the purchased area: whole sheets, scrap included.
    "used" charges the net area inflated by the scrap floor; anything
    beyond that floor is left over as reusable stock.
    """
    if cost_mode == CostMode.USED:
        kg_used = sheet_mass_kg(area_used_m2, thickness_mm, density_kg_m3)
        return kg_used * (1 + max(0.0, scrap_min_pct))
    return sheet_mass_kg(area_bought_m2, thickness_mm, density_kg_m3)


def material_cost(weight_kg: float, price_per_kg: float) -> float:
    """Currency cost for a mass. Not rounded; callers round once at output."""
    return weight_kg * price_per_kg
