"""
Nesting API: sheet estimates, physical layouts and bar counts, outside a full quote.

POST /api/nesting/estimate  sheets needed (auto-picks a sheet if none given)
POST /api/nesting/place     guillotine layout with (x, y, rotation) per blank
POST /api/nesting/bars      first-fit decreasing cut plan for tube/angle bars

Blanks with impossible geometry are rejected with 422 before any nesting.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..exceptions import PlacementError
from ..nesting import Nester, nesting_stats
from ..schemas import BarNestingResult, BarPart, NestingResult, SheetBlank, StockSheet
from ..validation import validate_blanks
from .quotes import placement_http_error

router = APIRouter(prefix="/nesting", tags=["nesting"])


class EstimateRequest(BaseModel):
    blanks: List[SheetBlank]
    catalog: List[StockSheet]
    sheet_id: Optional[str] = None


class PlaceRequest(BaseModel):
    blanks: List[SheetBlank]
    sheets: List[StockSheet]
    reuse_last: bool = True
    kerf: Optional[float] = None
    margin: Optional[float] = None
    allow_rotate: Optional[bool] = None
    min_utilization: Optional[float] = None


class BarRequest(BaseModel):
    parts: List[BarPart]
    bar_length_mm: float = Field(gt=0)
    kerf: Optional[float] = Field(default=None, ge=0)
    edge_loss: Optional[float] = Field(default=None, ge=0)


def _check_blanks(blanks: List[SheetBlank]):
    issues = validate_blanks(blanks)
    if issues:
        raise HTTPException(
            status_code=422,
            detail={"code": "VALIDATION_FAILED", "errors": [i.model_dump() for i in issues]},
        )


@router.post("/estimate", response_model=NestingResult)
def estimate(request: EstimateRequest):
    _check_blanks(request.blanks)
    nester = Nester()
    try:
        if request.sheet_id:
            sheet = next((s for s in request.catalog if s.id == request.sheet_id), None)
            if sheet is None:
                raise HTTPException(status_code=404, detail=f"Sheet {request.sheet_id} not in catalog")
            too_big = nester.oversized(request.blanks, sheet)
            if too_big:
                raise PlacementError.unplaced_parts(too_big, f"on sheet {sheet.id}")
        else:
            sheet = nester.pick_sheet_auto(request.blanks, request.catalog)
        return nester.estimate(request.blanks, sheet)
    except PlacementError as e:
        raise placement_http_error(e)


@router.post("/place")
def place(request: PlaceRequest):
    _check_blanks(request.blanks)
    nester = Nester(
        kerf=request.kerf,
        margin=request.margin,
        allow_rotate=request.allow_rotate,
        min_utilization=request.min_utilization,
    )
    try:
        result = nester.place(request.blanks, request.sheets, reuse_last=request.reuse_last)
    except PlacementError as e:
        raise placement_http_error(e)
    return {
        **result.model_dump(),
        "stats": nesting_stats(result),
    }


@router.post("/bars", response_model=BarNestingResult)
def bars(request: BarRequest):
    try:
        return Nester().estimate_bars(
            request.parts, request.bar_length_mm,
            kerf=request.kerf, edge_loss=request.edge_loss,
        )
    except PlacementError as e:
        raise placement_http_error(e)
