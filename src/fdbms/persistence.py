"""Size-aware saving of a single bill record.

Browser-style storage has a hard quota, so a bill whose serialised form is
over budget is saved without its attachment payloads instead of failing.
Attachment metadata (id, name, type) is always kept.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from fdbms.config import get_logger, get_settings
from fdbms.models import GrindingBill, TransportBill

logger = get_logger(__name__)

B = TypeVar("B", TransportBill, GrindingBill)


@dataclass(frozen=True)
class SaveResult(Generic[B]):
    written: B
    stripped_attachments: bool = False


def estimate_size(bill: TransportBill | GrindingBill) -> int:
    """Return the UTF-8 byte length of the bill's JSON form."""
    return len(json.dumps(bill.to_dict(), ensure_ascii=False).encode("utf-8"))


def strip_attachments(bill: B) -> B:
    return replace(bill, attachments=tuple(a.stripped() for a in bill.attachments))


def guarded_save(
    bill: B,
    write_fn: Callable[[B], None],
    budget_bytes: int | None = None,
) -> SaveResult[B]:
    """Write ``bill`` through ``write_fn``, stripping attachment data if it is too big.

    Args:
        bill: The record to save.
        write_fn: Caller-supplied writer; its own errors propagate.
        budget_bytes: Size limit; defaults to the configured storage budget.

    Returns:
        The record actually written and whether attachments were stripped.
    """
    budget = budget_bytes if budget_bytes is not None else get_settings().storage_budget_bytes
    stripped = False
    candidate = bill

    try:
        size = estimate_size(bill)
    except (TypeError, ValueError, RecursionError, MemoryError) as exc:
        logger.error(
            "bill_size_estimate_failed",
            bill_id=bill.id,
            error=str(exc) or type(exc).__name__,
        )
        stripped = True
    else:
        if size > budget:
            logger.warning(
                "bill_over_storage_budget",
                bill_id=bill.id,
                size_mb=round(size / 1024 / 1024, 2),
                budget_mb=round(budget / 1024 / 1024, 2),
            )
            stripped = True

    if stripped:
        candidate = strip_attachments(bill)
        logger.warning(
            "attachments_stripped",
            bill_id=bill.id,
            attachments=len(candidate.attachments),
        )

    write_fn(candidate)
    return SaveResult(written=candidate, stripped_attachments=stripped)
