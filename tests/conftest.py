"""
Shared fixtures for the PO lifecycle tests.
"""

import os
import tempfile

# Configuration is read at import time
os.environ["ENV"] = "test"
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "po_lifecycle_test.log"))

import copy

import pytest

from po_lifecycle.config import get_config
from po_lifecycle.main import build_container


def make_po(
    po_number="1000001",
    order_date="2026-01-15",
    status="UPLOADED",
    buyer=("Jane", "Smith"),
    location="Houston DC",
    products=None,
    **extra,
):
    """Build a PO document that passes schema and business-rule validation."""
    if products is None:
        products = [
            {"supc": "1234567", "description": "Chicken Breast", "quantity": 10, "fobCost": 20.0, "total": 200.0},
        ]
    document = {
        "header": {
            "poNumber": po_number,
            "orderDate": order_date,
            "status": status,
            "buyerInfo": {
                "firstName": buyer[0],
                "lastName": buyer[1],
                "email": f"{buyer[0].lower()}.{buyer[1].lower()}@example.com",
            },
            "syscoLocation": {"name": location, "region": "South"},
            "deliveryInfo": {"date": "2026-01-22"},
        },
        "products": products,
        "weights": {"grossWeight": 120.0, "netWeight": 100.0},
        "totalCost": sum(p["total"] for p in products),
    }
    document.update(extra)
    return document


@pytest.fixture
def sample_po():
    return make_po()


@pytest.fixture
def three_pos():
    """Three POs worth 100, 200 and 300."""
    return [
        make_po("1000001", "2026-01-10", products=[
            {"supc": "111111", "quantity": 10, "fobCost": 10.0, "total": 100.0, "category": "Dairy"},
        ]),
        make_po("1000002", "2026-01-20", buyer=("Sam", "Lee"), products=[
            {"supc": "222222", "quantity": 20, "fobCost": 10.0, "total": 200.0, "category": "Produce"},
        ]),
        make_po("1000003", "2026-02-05", location="Dallas DC", products=[
            {"supc": "333333", "quantity": 30, "fobCost": 10.0, "total": 300.0},
        ]),
    ]


@pytest.fixture
def test_config():
    return get_config("test")


@pytest.fixture
def database_path(tmp_path):
    return str(tmp_path / "purchase_orders.json")


@pytest.fixture
def container(test_config, database_path):
    container = build_container(test_config, database_path=database_path)
    container.service.initialize()
    yield container
    container.stop()


@pytest.fixture
def po_factory():
    def factory(*args, **kwargs):
        return copy.deepcopy(make_po(*args, **kwargs))
    return factory
