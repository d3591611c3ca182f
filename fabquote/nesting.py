"""
Nesting engine: lays rectangular blanks onto stock sheets and cut
lengths onto bars.

The two sheet operations share the same shape-penalty and rotation rules:

    estimate  area-based sheet count with a shape penalty. Fast; used to
              pick stock per group and to cost it.
    place     guillotine row packing that gives every blank an
              (x, y, rotation). Used when a physical layout is needed.

estimate_bars counts tube/angle bars with first-fit decreasing.

Heuristic, not optimal. No polygon nesting: everything is an
axis-aligned rectangle, optionally turned 90°.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from .config import settings
from .exceptions import PlacementError
from .geometry import can_fit_on_sheet, fits_at, mm2_to_m2, rotated, shape_penalty
from .schemas import (
    BarLayout, BarNestingResult, BarPart, NestingResult, PlacedBlank, PlacementResult, SheetBlank,
    SheetLayout, StockSheet,
)

logger = logging.getLogger(__name__)

_EPS = 1e-9


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


class Nester:
    """Sheet and bar nesting with one set of kerf/margin/rotation/penalty rules."""

    def __init__(self, kerf: float = None, margin: float = None,
                 allow_rotate: bool = None, min_utilization: float = None,
                 penalty_per_aspect: float = None, penalty_cap: float = None,
                 max_sheets: int = None):
        self.kerf = settings.NESTING_KERF_MM if kerf is None else kerf
        self.margin = settings.NESTING_MARGIN_MM if margin is None else margin
        self.allow_rotate = settings.NESTING_ALLOW_ROTATE if allow_rotate is None else allow_rotate
        self.min_utilization = (settings.NESTING_MIN_UTILIZATION
                                if min_utilization is None else min_utilization)
        self.penalty_per_aspect = (settings.SHAPE_PENALTY_PER_ASPECT
                                   if penalty_per_aspect is None else penalty_per_aspect)
        self.penalty_cap = settings.SHAPE_PENALTY_CAP if penalty_cap is None else penalty_cap
        self.max_sheets = settings.NESTING_MAX_SHEETS if max_sheets is None else max_sheets

    # --- Shared rules ---

    @staticmethod
    def expand(blanks: Sequence[SheetBlank]) -> List[Tuple[str, SheetBlank]]:
        """One (instance_id, blank) pair per unit of quantity."""
        instances = []
        for blank in blanks:
            for i in range(max(0, int(blank.quantity))):
                instances.append((f"{blank.id}#{i + 1}", blank))
        return instances

    def can_rotate(self, blank: SheetBlank) -> bool:
        return self.allow_rotate and blank.rotatable

    @staticmethod
    def flat(blanks: Sequence[SheetBlank]) -> List[SheetBlank]:
        """Blanks as cut: developed width for bent parts."""
        return [b.developed() for b in blanks]

    def shape_factor(self, blanks: Sequence[SheetBlank]) -> float:
        """Mean shape penalty over every unit of quantity (1.0 when empty)."""
        count = sum(max(0, b.quantity) for b in blanks)
        if count == 0:
            return 1.0
        weighted = sum(
            max(0, b.quantity)
            * shape_penalty(b.width, b.height, self.penalty_per_aspect, self.penalty_cap)
            for b in blanks
        )
        return weighted / count

    def oversized(self, blanks: Sequence[SheetBlank], sheet: StockSheet) -> List[str]:
        """Ids of blanks that cannot fit an empty `sheet` in any allowed orientation."""
        return [
            b.id for b in self.flat(blanks)
            if not can_fit_on_sheet(b.width, b.height, sheet.width, sheet.height,
                                    self.margin, self.can_rotate(b))
        ]

    # --- Estimator ---

    def estimate(self, blanks: Sequence[SheetBlank], sheet: StockSheet) -> NestingResult:
        """
        Sheets needed for `blanks` on `sheet`, without placing anything.

        used area × mean shape penalty / sheet area, rounded up, at least 1.
        """
        blanks = self.flat(blanks)
        used_mm2 = sum(max(0, b.quantity) * b.width * b.height for b in blanks)
        factor = self.shape_factor(blanks)

        sheet_mm2 = max(sheet.area_mm2, 1e-9)
        # tolerance keeps 1.0000000001 sheets from becoming 2
        sheets_used = max(1, math.ceil(used_mm2 * factor / sheet_mm2 - 1e-9))

        area_used_m2 = mm2_to_m2(used_mm2)
        area_bought_m2 = sheets_used * sheet.area_m2
        efficiency = _clamp01(area_used_m2 / max(area_bought_m2, 1e-9))

        return NestingResult(
            sheet=sheet,
            sheets_used=sheets_used,
            area_used_m2=area_used_m2,
            area_bought_m2=area_bought_m2,
            efficiency=efficiency,
            waste=1.0 - efficiency,
        )

    def pick_sheet_auto(self, blanks: Sequence[SheetBlank],
                        catalog: Sequence[StockSheet]) -> StockSheet:
        """
        Catalog sheet with the smallest purchased area for `blanks`.

        Purchased area, not efficiency, because that is what gets paid for.
        Sheets that some blank cannot physically fit are never candidates;
        if no sheet fits every blank, raises PlacementError(UNPLACED_PARTS).
        Ties keep the earlier catalog entry.
        """
        if not catalog:
            raise PlacementError.no_sheets()

        best: Optional[StockSheet] = None
        best_bought = math.inf
        for sheet in catalog:
            if self.oversized(blanks, sheet):
                continue
            bought = self.estimate(blanks, sheet).area_bought_m2
            if bought < best_bought:
                best, best_bought = sheet, bought

        if best is None:
            too_big = [
                b.id for b in blanks
                if all(self.oversized([b], sheet) for sheet in catalog)
            ]
            raise PlacementError.unplaced_parts(
                too_big or [b.id for b in blanks], "on any catalog sheet"
            )
        return best

    # --- Placement ---

    def place(self, blanks: Sequence[SheetBlank], sheets: Sequence[StockSheet],
              reuse_last: bool = True) -> PlacementResult:
        """
        Guillotine row packing of `blanks` across `sheets`, in order.

        Largest blanks first. Once the list is used up and `reuse_last` is
        set, fresh copies of the last sheet are opened (up to max_sheets)
        while they still take pieces.

        Raises PlacementError(NO_SHEETS) for an empty sheet list and
        PlacementError(UNPLACED_PARTS) if anything is left over. A leftover
        is a hard failure: no sheet count can be quoted for it.
        """
        if not sheets:
            raise PlacementError.no_sheets()

        pending = sorted(self.expand(self.flat(blanks)),
                         key=lambda it: it[1].width * it[1].height, reverse=True)
        layouts: List[SheetLayout] = []
        sheet_pos = 0

        while pending:
            if sheet_pos < len(sheets):
                sheet = sheets[sheet_pos]
            elif reuse_last and len(layouts) < self.max_sheets:
                sheet = sheets[-1]
            else:
                break
            sheet_pos += 1

            layout, pending = self._place_on_sheet(pending, sheet, len(layouts))
            if layout.placed:
                layouts.append(layout)
            elif sheet_pos >= len(sheets):
                # a fresh copy of this sheet takes nothing either
                break

        if pending:
            unplaced = [instance_id for instance_id, _ in pending]
            logger.warning("Placement left %d blank(s) unplaced: %s", len(unplaced), unplaced)
            raise PlacementError.unplaced_parts(unplaced)

        utilization = (sum(lay.utilization for lay in layouts) / len(layouts)) if layouts else 0.0
        warnings = []
        if layouts and utilization < self.min_utilization:
            warnings.append(
                f"Low sheet utilization: {utilization:.0%} "
                f"(minimum {self.min_utilization:.0%})."
            )
        logger.debug("Placed %d blank(s) on %d sheet(s), utilization %.3f",
                     sum(len(lay.placed) for lay in layouts), len(layouts), utilization)

        return PlacementResult(layouts=layouts, utilization=utilization, warnings=warnings)

    def _orientation_at(self, blank: SheetBlank, x: float, y: float,
                        sheet: StockSheet) -> Optional[Tuple[float, float, bool]]:
        """Placed (width, height, rotated) for `blank` at (x, y), or None."""
        options = [False, True] if self.can_rotate(blank) else [False]
        for rotate in options:
            w, h = rotated(blank.width, blank.height, rotate)
            if fits_at(x, y, w, h, sheet.width, sheet.height, self.margin):
                return w, h, rotate
        return None

    def _place_on_sheet(self, pending, sheet: StockSheet, sheet_index: int):
        """Fill one sheet row by row. Returns (layout, leftovers)."""
        x = y = self.margin
        row_height = 0.0
        placed: List[PlacedBlank] = []
        leftovers = []

        for instance_id, blank in pending:
            hit = self._orientation_at(blank, x, y, sheet)
            if hit is None and row_height > 0:
                next_y = y + row_height + self.kerf
                hit = self._orientation_at(blank, self.margin, next_y, sheet)
                if hit is not None:
                    x, y, row_height = self.margin, next_y, 0.0
            if hit is None:
                leftovers.append((instance_id, blank))
                continue

            width, height, rotate = hit
            placed.append(PlacedBlank(
                instance_id=instance_id,
                blank_id=blank.id,
                x=x,
                y=y,
                width=width,
                height=height,
                rotated=rotate,
            ))
            x += width + self.kerf
            row_height = max(row_height, height)

        used = sum(p.width * p.height for p in placed)
        sheet_area = sheet.area_mm2
        layout = SheetLayout(
            sheet_index=sheet_index,
            sheet=sheet,
            placed=placed,
            used_area_mm2=used,
            waste_area_mm2=max(0.0, sheet_area - used),
            utilization=_clamp01(used / sheet_area) if sheet_area > 0 else 0.0,
        )
        return layout, leftovers

    # --- Bars ---

    def estimate_bars(self, parts: Sequence[BarPart], bar_length_mm: float,
                      kerf: float = None, edge_loss: float = None) -> BarNestingResult:
        """
        First-fit decreasing cut plan for tube or angle bars.

        Pieces go longest first into the first bar with room. Every cut
        consumes the piece length plus the saw kerf; `edge_loss` is trimmed
        from both ends of each bar. A piece longer than the usable bar
        raises PlacementError(UNPLACED_PARTS).
        """
        kerf = settings.BAR_KERF_MM if kerf is None else kerf
        edge_loss = settings.BAR_EDGE_LOSS_MM if edge_loss is None else edge_loss
        usable = max(0.0, bar_length_mm - 2 * edge_loss)

        too_long = [p.id for p in parts if p.length_mm > usable + _EPS]
        if too_long:
            raise PlacementError.unplaced_parts(too_long, f"on a {bar_length_mm:g} mm bar")

        pieces = [
            (f"{part.id}#{i + 1}", part.length_mm)
            for part in parts
            for i in range(part.quantity)
        ]
        pieces.sort(key=lambda it: it[1], reverse=True)

        consumed: List[float] = []
        contents: List[List[str]] = []
        for instance_id, length in pieces:
            needed = length + kerf
            for i, used in enumerate(consumed):
                if used + needed <= usable + _EPS:
                    consumed[i] += needed
                    contents[i].append(instance_id)
                    break
            else:
                consumed.append(needed)
                contents.append([instance_id])

        used_length = sum(length for _, length in pieces)
        available = usable * len(consumed)
        bars = [
            BarLayout(bar_index=i, pieces=ids, consumed_mm=used,
                      leftover_mm=max(0.0, usable - used))
            for i, (ids, used) in enumerate(zip(contents, consumed))
        ]
        logger.debug("Cut %d piece(s) from %d bar(s) of %g mm", len(pieces), len(bars), bar_length_mm)

        return BarNestingResult(
            bar_length_mm=bar_length_mm,
            usable_length_mm=usable,
            bars_used=len(bars),
            cuts=len(pieces),
            used_length_mm=used_length,
            utilization=_clamp01(used_length / available) if available > 0 else 0.0,
            leftover_m=sum(bar.leftover_mm for bar in bars) / 1000,
            bars=bars,
        )


def nesting_stats(result: PlacementResult) -> dict:
    """Summary numbers for a placement, as shown next to the layout drawing."""
    return {
        "total_parts": result.total_parts,
        "total_sheets": result.total_sheets,
        "avg_utilization": result.utilization,
        "avg_waste": 1.0 - result.utilization if result.layouts else 0.0,
    }
