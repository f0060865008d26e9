"""Pytest configuration and fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from fdbms.config import get_settings
from fdbms.models import (
    Attachment,
    BillItem,
    BillMode,
    GrindingBill,
    GrindingCommodity,
    TransportBill,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings for every test so env overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def normal_item():
    """A Normal-mode line item: 100 bags at Rs 2.50/kg."""
    return BillItem(
        id="item-1",
        contract_id=1,
        from_location="Skardu",
        to_location="Gilgit",
        bags=100,
        mode=BillMode.NORMAL,
        rate_per_kg=Decimal("2.50"),
    )


@pytest.fixture
def transport_bill(normal_item):
    """A saved Draft transportation bill for October 2025."""
    return TransportBill(
        id="bill-1",
        bill_number="M-1/Oct 2025/1",
        bill_date=date(2025, 10, 5),
        contractor_name="Karakoram Carriers",
        items=(normal_item,),
    )


@pytest.fixture
def grinding_bill():
    """A Draft grinding bill with a wheat and a bran row."""
    return GrindingBill(
        id="grind-1",
        bill_number="(10/2025/1)",
        bill_date=date(2025, 10, 5),
        flour_mill_name="Indus Flour Mill",
        commodities=(
            GrindingCommodity(
                id="c-1", name="Wheat", quantity_kgs=Decimal("10000"),
                rate_per_100kg=Decimal("250"),
            ),
            GrindingCommodity(
                id="c-2", name="Bran", quantity_kgs=Decimal("200"),
                rate_per_100kg=Decimal("0"),
            ),
        ),
    )


@pytest.fixture
def attachment():
    return Attachment(id="att-1", name="scan.pdf", type="application/pdf", data_url="x" * 4096)
