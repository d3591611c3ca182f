"""
Quote API: validate and price a BOM. Stateless; every request carries its
own tables, rules and policies.

POST /api/quotes/validate  run the validation gate only
POST /api/quotes/price     validate, then price (422 on gate failure)
POST /api/quotes/batch     price many BOMs, one outcome per item
POST /api/quotes/reprice   new margin/markup rules on an existing result
"""

from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..exceptions import PlacementError, QuoteValidationError
from ..pricing_engine import PricingEngine
from ..schemas import BatchItemResult, PricingRules, QuoteRequest, QuoteResult
from ..validation import validate

router = APIRouter(prefix="/quotes", tags=["quotes"])

engine = PricingEngine()


class RepriceRequest(BaseModel):
    quote: QuoteResult
    rules: PricingRules


def placement_http_error(e: PlacementError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"code": e.code, "message": e.message, "unplaced": e.unplaced},
    )


@router.post("/validate")
def validate_quote(request: QuoteRequest):
    errors = validate(request.tables, request.rules, request.policies, request.bom)
    return {
        "valid": not errors,
        "errors": [e.model_dump() for e in errors],
    }


@router.post("/price", response_model=QuoteResult)
def price_quote(request: QuoteRequest):
    """
    Price one BOM. A request that fails validation never gets a price:
    422 with the issue list. No physical layout for the stock: 409.
    """
    try:
        return engine.build_quote(request.tables, request.rules, request.policies, request.bom)
    except QuoteValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"code": e.code, "errors": [i.model_dump() for i in e.issues]},
        )
    except PlacementError as e:
        raise placement_http_error(e)


@router.post("/batch", response_model=List[BatchItemResult])
def price_batch(requests: List[QuoteRequest]):
    return engine.price_batch(requests)


@router.post("/reprice", response_model=QuoteResult)
def reprice_quote(request: RepriceRequest):
    rules = request.rules
    if not (rules.markup > 0) or not (0 <= rules.min_margin_pct < 1):
        raise HTTPException(
            status_code=400,
            detail="markup must be > 0 and min_margin_pct within [0, 1)",
        )
    return engine.recalculate_with_rules(request.quote, rules)
