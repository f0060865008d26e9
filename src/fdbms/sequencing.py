"""Bill-number sequencing derived from the bills that already exist.

There is no stored counter. The next number for a month is always the
highest suffix found among that month's bills plus one, so manual edits and
deletions can never leave a counter out of step with the records.

Formats, which must stay stable because historic numbers are parsed back:

* transportation: ``M-1/Oct 2025/7``
* grinding: ``(10/2025/7)``
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date

from fdbms.config import get_logger, get_settings
from fdbms.models import BillType

logger = get_logger(__name__)

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_GRINDING_PATTERN = re.compile(r"\((\d{2})/(\d{4})/(\d+)\)")
_LEADING_DIGITS = re.compile(r"\s*(\d+)")


def transport_period_token(period: date) -> str:
    """Return the ``"<Mon> <YYYY>"`` token used inside transportation numbers."""
    return f"{MONTH_ABBREVIATIONS[period.month - 1]} {period.year}"


def _transport_suffix(number: str, prefix: str, token: str) -> int | None:
    parts = number.split("/")
    if len(parts) != 3 or parts[0] != prefix or parts[1] != token:
        return None
    match = _LEADING_DIGITS.match(parts[2])
    return int(match.group(1)) if match else None


def next_transport_bill_number(
    existing_numbers: Iterable[str],
    period: date,
    prefix: str | None = None,
) -> str:
    """Return the next transportation bill number for ``period``'s month."""
    prefix = prefix or get_settings().bill_number_prefix
    token = transport_period_token(period)

    highest = 0
    for number in existing_numbers:
        suffix = _transport_suffix(str(number or ""), prefix, token)
        if suffix is not None and suffix > highest:
            highest = suffix

    return f"{prefix}/{token}/{highest + 1}"


def next_grinding_bill_number(existing_numbers: Iterable[str], period: date) -> str:
    """Return the next grinding bill number for ``period``'s month."""
    month = f"{period.month:02d}"
    year = str(period.year)

    highest = 0
    for number in existing_numbers:
        match = _GRINDING_PATTERN.search(str(number or ""))
        if match and match.group(1) == month and match.group(2) == year:
            highest = max(highest, int(match.group(3)))

    return f"({month}/{year}/{highest + 1})"


def next_bill_number(
    existing_bills: Iterable[object],
    period: date,
    bill_type: BillType = BillType.TRANSPORTATION,
) -> str:
    """Derive the next bill number from a collection of bills of one kind.

    ``existing_bills`` may hold bill records or plain number strings.
    Numbers that do not follow the expected pattern are ignored.
    """
    numbers = [
        bill if isinstance(bill, str) else getattr(bill, "bill_number", "")
        for bill in existing_bills
    ]
    if bill_type is BillType.GRINDING:
        result = next_grinding_bill_number(numbers, period)
    else:
        result = next_transport_bill_number(numbers, period)
    logger.debug("bill_number_derived", bill_type=bill_type.value, bill_number=result)
    return result
