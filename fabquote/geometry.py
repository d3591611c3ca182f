"""
Rectangle primitives for nesting: fit checks, rotation, kerf/margin math.

All lengths in millimetres. Areas come back in mm² unless the name says m².
"""

import math
from typing import Tuple

_EPS = 1e-9


def mm2_to_m2(area_mm2: float) -> float:
    return area_mm2 / 1_000_000


def rotated(width: float, height: float, rotate: bool) -> Tuple[float, float]:
    """(width, height) as placed, swapped for a 90° turn."""
    return (height, width) if rotate else (width, height)


def aspect_ratio(width: float, height: float) -> float:
    """Long side over short side. 1.0 for a degenerate rectangle."""
    long_side, short_side = max(width, height), min(width, height)
    if long_side <= 0:
        return 1.0
    return long_side / max(short_side, _EPS)


def shape_penalty(width: float, height: float, per_aspect: float, cap: float) -> float:
    """
    Cutting/turning overhead factor for an elongated blank.

    1.0 for a square, growing by `per_aspect` per unit of aspect ratio
    above 1, never more than 1 + cap.
    """
    return 1.0 + min(cap, (aspect_ratio(width, height) - 1.0) * per_aspect)


def usable_size(sheet_width: float, sheet_height: float, margin: float) -> Tuple[float, float]:
    """Sheet size left after the edge margin on all four sides."""
    return (max(0.0, sheet_width - 2 * margin), max(0.0, sheet_height - 2 * margin))


def fits_at(x: float, y: float, width: float, height: float,
            sheet_width: float, sheet_height: float, margin: float) -> bool:
    """True if a width × height piece with its corner at (x, y) stays inside the margin."""
    return (x + width <= sheet_width - margin + _EPS
            and y + height <= sheet_height - margin + _EPS)


def can_fit_on_sheet(part_width: float, part_height: float,
                     sheet_width: float, sheet_height: float,
                     margin: float = 0.0, allow_rotate: bool = True) -> bool:
    """True if the part fits an empty sheet, optionally turned 90°."""
    usable_w, usable_h = usable_size(sheet_width, sheet_height, margin)
    if part_width <= usable_w + _EPS and part_height <= usable_h + _EPS:
        return True
    if allow_rotate:
        return part_height <= usable_w + _EPS and part_width <= usable_h + _EPS
    return False


def developed_width(flat_width: float, bend_angles_deg, thickness_mm: float,
                    k_factor: float = 0.33) -> float:
    """
    Blank width for a bent part using the K-factor bend allowance.

    BA = angle_rad * (inside_radius + k * t), inside radius taken as t.
    Bends run along the height, so only the width grows. Rounded up to
    the next whole millimetre like the shop drawings.
    """
    angles = list(bend_angles_deg or [])
    if not angles:
        return flat_width
    inside_radius = thickness_mm
    allowance = sum(
        math.radians(angle) * (inside_radius + k_factor * thickness_mm)
        for angle in angles
    )
    return float(math.ceil(flat_width + allowance))
