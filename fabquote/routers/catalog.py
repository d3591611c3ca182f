from typing import Optional

from fastapi import APIRouter, Query

from ..catalog import catalog_defaults, make_default_tables
from ..schemas import PricingTables

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/defaults")
def get_defaults():
    """Default sheet catalog, alloy densities, process kinds and profile keys."""
    return catalog_defaults()


@router.get("/tables", response_model=PricingTables)
def get_default_tables(
    price_per_kg: float = Query(..., gt=0),
    alloy: Optional[str] = None,
    overhead_percent: float = Query(0.0, ge=0, le=1),
):
    """Starter PricingTables for an alloy. Accessory and process prices come back as zero."""
    return make_default_tables(price_per_kg, overhead_percent=overhead_percent, alloy=alloy)
