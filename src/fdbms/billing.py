"""Assemble complete bills from form input on save.

This is the path a form takes when the user presses Save: line items are
recomputed, totals and deductions rebuilt, and a bill number is derived the
first time a bill is saved. Once a bill has left Draft its figures are
frozen and a recompute is rejected.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from typing import TypeVar
from uuid import uuid4

from fdbms.config import (
    get_logger,
    load_grinding_rates,
    load_mode_config,
    load_transport_rates,
)
from fdbms.deductions import RateSchedule, compute_grinding_totals, compute_transport_totals
from fdbms.lifecycle import Rejected
from fdbms.line_items import ModeConfig, compute_commodity, compute_line_item
from fdbms.models import BillStatus, BillType, GrindingBill, TransportBill
from fdbms.sequencing import next_bill_number

logger = get_logger(__name__)

B = TypeVar("B", TransportBill, GrindingBill)


def _stored(
    existing: Sequence[TransportBill | GrindingBill], bill_id: str
) -> TransportBill | GrindingBill | None:
    return next((bill for bill in existing if bill.id == bill_id), None)


def prepare_transport_bill(
    draft: TransportBill,
    existing: Sequence[TransportBill],
    mode_config: ModeConfig | None = None,
    rates: RateSchedule | None = None,
    today: date | None = None,
) -> TransportBill | Rejected:
    """Recompute a transportation bill ready to be saved.

    Items with no net weight are dropped. A bill without a number gets the
    next one for its bill date's month. Status and hand-off timestamps come
    from the stored copy, never from the form.
    """
    stored = _stored(existing, draft.id) if draft.id else None
    status = stored.status if stored else BillStatus.DRAFT
    if status is not BillStatus.DRAFT:
        return Rejected(
            reason=f"Bill has already been {status.value}", bill_id=draft.id, status=status
        )

    mode_config = mode_config or load_mode_config()
    rates = rates or load_transport_rates()
    items = [compute_line_item(item, mode_config) for item in draft.items]
    items = [item for item in items if item.net_kg > 0]
    totals = compute_transport_totals(items, draft.delay_days, rates, draft.custom_deductions)

    bill_date = draft.bill_date or today or date.today()
    bill_number = draft.bill_number or next_bill_number(
        existing, bill_date, BillType.TRANSPORTATION
    )

    bill = replace(
        draft,
        id=draft.id or str(uuid4()),
        bill_number=bill_number,
        bill_date=bill_date,
        items=tuple(items),
        deductions=totals.deductions,
        grand_total=totals.grand_total,
        total_deductions=totals.total_deductions,
        net_amount=totals.net_amount,
        amount_in_words=totals.amount_in_words,
        status=BillStatus.DRAFT,
        sent_at=None,
        processed_at=None,
    )
    logger.info(
        "transport_bill_prepared",
        bill_id=bill.id,
        bill_number=bill.bill_number,
        created=stored is None,
        net_amount=bill.net_amount,
    )
    return bill


def prepare_grinding_bill(
    draft: GrindingBill,
    existing: Sequence[GrindingBill],
    rates: RateSchedule | None = None,
    today: date | None = None,
) -> GrindingBill | Rejected:
    """Recompute a grinding bill ready to be saved."""
    stored = _stored(existing, draft.id) if draft.id else None
    status = stored.status if stored else BillStatus.DRAFT
    if status is not BillStatus.DRAFT:
        return Rejected(
            reason=f"Bill has already been {status.value}", bill_id=draft.id, status=status
        )

    rates = rates or load_grinding_rates()
    commodities = [compute_commodity(commodity) for commodity in draft.commodities]
    totals = compute_grinding_totals(
        commodities, rates, draft.custom_deductions, draft.other_deductions
    )

    bill_date = draft.bill_date or today or date.today()
    bill_number = draft.bill_number or next_bill_number(existing, bill_date, BillType.GRINDING)

    bill = replace(
        draft,
        id=draft.id or str(uuid4()),
        bill_number=bill_number,
        bill_date=bill_date,
        commodities=tuple(commodities),
        total_amount=totals.total_amount,
        deductions=totals.deductions,
        total_deduction=totals.total_deduction,
        net_amount_after_taxes=totals.net_amount_after_taxes,
        other_deductions=totals.other_deductions,
        amount_to_director=totals.amount_to_director,
        final_amount_to_mill=totals.final_amount_to_mill,
        amount_in_words=totals.amount_in_words,
        status=BillStatus.DRAFT,
        sent_at=None,
        processed_at=None,
    )
    logger.info(
        "grinding_bill_prepared",
        bill_id=bill.id,
        bill_number=bill.bill_number,
        created=stored is None,
        final_amount_to_mill=bill.final_amount_to_mill,
    )
    return bill


def upsert_bill(collection: Sequence[B], bill: B) -> list[B]:
    """Return a new collection with ``bill`` replacing its stored copy, or appended."""
    if any(existing.id == bill.id for existing in collection):
        return [bill if existing.id == bill.id else existing for existing in collection]
    return [*collection, bill]
