"""
Shared test fixtures: test client, default tables and small BOM builders.
"""

import pytest
from fastapi.testclient import TestClient

from fabquote.main import app
from fabquote.models import ProcessKind
from fabquote.schemas import PricingTables, StockSheet


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def catalog():
    """Three stock sheets, smallest purchased area last."""
    return [
        StockSheet(id="2000x1250", width=2000, height=1250),
        StockSheet(id="3000x1250", width=3000, height=1250),
        StockSheet(id="1500x1250", width=1500, height=1250),
    ]


@pytest.fixture
def tables(catalog):
    """Complete price tables: every key the sample BOMs reference is priced."""
    return PricingTables(
        material_price_per_kg=45.0,
        density_kg_m3=7930,
        sheet_catalog=catalog,
        tube_kg_per_meter={"40x40x1.2": 1.45},
        angle_kg_per_meter={"30x30x3": 1.36},
        accessory_unit_price={"leveling_foot": 12.0},
        process_cost_per_hour={ProcessKind.WELD: 60.0, ProcessKind.CUT: 30.0},
        overhead_percent=0.0,
    )
