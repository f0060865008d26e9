"""Bill lifecycle (Draft -> Sent to AG -> Processed) and the AG Office queue.

Transitions only move forward. A transition attempted from the wrong state is
not an error: it returns a :class:`Rejected` value that the caller can show,
and the bill is left as it was.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import TypeVar

from fdbms.config import get_logger, get_settings
from fdbms.models import Bill, BillStatus, BillType, GrindingBill, TransportBill

logger = get_logger(__name__)

B = TypeVar("B", TransportBill, GrindingBill)

_NEXT_STATUS: dict[BillStatus, BillStatus] = {
    BillStatus.DRAFT: BillStatus.SENT_TO_AG,
    BillStatus.SENT_TO_AG: BillStatus.PROCESSED,
}


@dataclass(frozen=True)
class Rejected:
    """A refused operation, returned instead of raising."""

    reason: str
    bill_id: str | None = None
    status: BillStatus | None = None

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class UnifiedBill:
    """A bill of either kind, tagged for the AG Office queue."""

    bill_type: BillType
    bill: Bill

    @property
    def id(self) -> str:
        return self.bill.id

    @property
    def status(self) -> BillStatus:
        return self.bill.status

    @property
    def sent_at(self) -> datetime | None:
        return self.bill.sent_at

    @property
    def processed_at(self) -> datetime | None:
        return self.bill.processed_at


@dataclass(frozen=True)
class AGOfficeReport:
    start: date
    end: date
    sent: list[UnifiedBill] = field(default_factory=list)
    processed: list[UnifiedBill] = field(default_factory=list)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def can_transition(current: BillStatus, target: BillStatus) -> bool:
    return _NEXT_STATUS.get(current) is target


def create_bill(bill: B) -> B:
    """Put a freshly built bill into its initial Draft state."""
    return replace(bill, status=BillStatus.DRAFT, sent_at=None, processed_at=None)


def send_to_ag(bill: B, now: datetime | None = None) -> B | Rejected:
    """Hand a Draft bill to the AG Office. Any other state is rejected."""
    if not can_transition(bill.status, BillStatus.SENT_TO_AG):
        logger.warning(
            "send_to_ag_rejected",
            bill_id=bill.id,
            bill_number=bill.bill_number,
            status=bill.status.value,
        )
        return Rejected(
            reason=f"Bill has already been {bill.status.value}",
            bill_id=bill.id,
            status=bill.status,
        )

    sent = replace(bill, status=BillStatus.SENT_TO_AG, sent_at=_now(now))
    logger.info(
        "bill_sent_to_ag",
        bill_id=bill.id,
        bill_number=bill.bill_number,
        bill_type=bill.bill_type.value,
    )
    return sent


def mark_processed(bills: Iterable[B], now: datetime | None = None) -> list[B]:
    """Mark every Sent-to-AG bill in the batch as Processed.

    Each bill is handled on its own. Bills in any other state come back
    unchanged; all processed bills share one ``processed_at`` timestamp.
    """
    stamp = _now(now)
    result: list[B] = []
    skipped = 0
    for bill in bills:
        if can_transition(bill.status, BillStatus.PROCESSED):
            result.append(replace(bill, status=BillStatus.PROCESSED, processed_at=stamp))
        else:
            skipped += 1
            logger.warning(
                "mark_processed_skipped", bill_id=bill.id, status=bill.status.value
            )
            result.append(bill)

    logger.info("bills_processed", count=len(result) - skipped, skipped=skipped)
    return result


def apply_updates(collection: Sequence[B], updated: Iterable[B]) -> list[B]:
    """Return a new collection with bills replaced by id."""
    by_id = {bill.id: bill for bill in updated}
    return [by_id.get(bill.id, bill) for bill in collection]


def _sent_sort_key(item: UnifiedBill) -> float:
    if item.sent_at is None:
        return float("-inf")
    return item.sent_at.timestamp()


def unified_queue(
    transport_bills: Iterable[TransportBill],
    grinding_bills: Iterable[GrindingBill],
) -> list[UnifiedBill]:
    """Merge both bill kinds into one list, most recently sent first."""
    tagged = [UnifiedBill(BillType.TRANSPORTATION, bill) for bill in transport_bills]
    tagged += [UnifiedBill(BillType.GRINDING, bill) for bill in grinding_bills]
    return sorted(tagged, key=_sent_sort_key, reverse=True)


def pending(queue: Iterable[UnifiedBill]) -> list[UnifiedBill]:
    return [item for item in queue if item.status is BillStatus.SENT_TO_AG]


def processed(queue: Iterable[UnifiedBill]) -> list[UnifiedBill]:
    return [item for item in queue if item.status is BillStatus.PROCESSED]


def _within(stamp: datetime | None, start: date, end: date) -> bool:
    return stamp is not None and start <= stamp.date() <= end


def report_in_range(queue: Iterable[UnifiedBill], start: date, end: date) -> AGOfficeReport:
    """Bills sent and bills processed between ``start`` and ``end`` inclusive.

    Only the date part of each timestamp is compared; the lists keep the
    queue's order.
    """
    items = list(queue)
    return AGOfficeReport(
        start=start,
        end=end,
        sent=[item for item in items if _within(item.sent_at, start, end)],
        processed=[item for item in items if _within(item.processed_at, start, end)],
    )


def split_by_type(
    items: Iterable[UnifiedBill],
) -> tuple[list[TransportBill], list[GrindingBill]]:
    transport: list[TransportBill] = []
    grinding: list[GrindingBill] = []
    for item in items:
        if item.bill_type is BillType.TRANSPORTATION:
            transport.append(item.bill)  # type: ignore[arg-type]
        else:
            grinding.append(item.bill)  # type: ignore[arg-type]
    return transport, grinding


async def process_batch(
    items: Sequence[UnifiedBill],
    render: Callable[[UnifiedBill], Awaitable[None]],
    pause_seconds: float | None = None,
    now: datetime | None = None,
) -> list[UnifiedBill]:
    """Process a hand-off batch, then render each bill one at a time.

    The whole batch is marked Processed before the first render starts. The
    renderer shares a single output target, so bills are rendered strictly
    in sequence with a pause after each one.
    """
    pause = get_settings().print_pause_seconds if pause_seconds is None else pause_seconds
    stamp = _now(now)
    transport, grinding = split_by_type(items)
    done = {
        (bill.bill_type, bill.id): bill
        for bill in [*mark_processed(transport, stamp), *mark_processed(grinding, stamp)]
    }
    result = [UnifiedBill(item.bill_type, done[(item.bill_type, item.id)]) for item in items]

    log = logger.bind(batch_size=len(result))
    for item in result:
        log.debug("rendering_bill", bill_id=item.id, bill_type=item.bill_type.value)
        await render(item)
        await asyncio.sleep(pause)

    log.info("batch_rendered")
    return result
