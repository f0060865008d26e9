"""Summaries over saved bills for the reports and dashboard screens.

Every report takes already loaded bills and returns plain records; nothing
here reads storage or changes a bill. Amounts are summed as stored, so a
report always agrees with the bills it was built from.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from fdbms.config import get_logger
from fdbms.deductions import TRANSPORT_RATES, RateSchedule
from fdbms.models import Contract, GrindingBill, TransportBill
from fdbms.numbers import ZERO, round2

logger = get_logger(__name__)

B = TypeVar("B", TransportBill, GrindingBill)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class BillTotals:
    """Running totals over a set of transportation bills."""

    bill_count: int = 0
    grand_total: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_amount: Decimal = ZERO

    def add(self, bill: TransportBill) -> BillTotals:
        return BillTotals(
            bill_count=self.bill_count + 1,
            grand_total=self.grand_total + bill.grand_total,
            total_deductions=self.total_deductions + bill.total_deductions,
            net_amount=self.net_amount + bill.net_amount,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalBills": self.bill_count,
            "grandTotal": float(self.grand_total),
            "totalDeductions": float(self.total_deductions),
            "netAmount": float(self.net_amount),
        }


@dataclass(frozen=True)
class SummaryRow:
    """One group of a summary table: a contractor or a month."""

    key: str
    label: str
    totals: BillTotals = field(default_factory=BillTotals)


@dataclass(frozen=True)
class RouteSummary:
    """Trips carried on one contract across the selected bills."""

    contract: Contract
    trips: int = 0
    net_kgs: Decimal = ZERO
    amount: Decimal = ZERO
    bill_ids: frozenset[str] = frozenset()

    @property
    def route(self) -> str:
        return f"{self.contract.from_location} -> {self.contract.to_location}"


@dataclass(frozen=True)
class DeductionSummary:
    """Deduction lines summed over many bills, in rate schedule order."""

    lines: dict[str, Decimal]
    labels: dict[str, str]
    others: Decimal = ZERO
    bill_count: int = 0

    @property
    def total(self) -> Decimal:
        return sum(self.lines.values(), ZERO) + self.others

    def rows(self) -> list[tuple[str, Decimal]]:
        """(label, amount) pairs ready for a table, custom deductions last."""
        result = [(self.labels.get(key, key), amount) for key, amount in self.lines.items()]
        result.append(("Others", self.others))
        return result


@dataclass(frozen=True)
class ContractorStatement:
    contractor_id: int
    contractor_name: str
    start: date | None
    end: date | None
    bills: list[TransportBill]
    totals: BillTotals
    deductions: DeductionSummary


@dataclass(frozen=True)
class BudgetStatus:
    """How much of a sanctioned budget the saved bills have used."""

    sanctioned: Decimal
    consumed: Decimal
    balance: Decimal
    consumed_percent: Decimal

    @property
    def exceeded(self) -> bool:
        return self.balance < 0


def _date_key(bill: TransportBill | GrindingBill) -> date:
    return bill.bill_date or date.min


def bills_in_range(
    bills: Iterable[B], start: date | None = None, end: date | None = None
) -> list[B]:
    """Bills dated between ``start`` and ``end`` inclusive, newest first.

    A missing bound is open. Undated bills only appear when neither bound is given.
    """
    selected = [
        bill
        for bill in bills
        if (start is None and end is None)
        or (
            bill.bill_date is not None
            and (start is None or bill.bill_date >= start)
            and (end is None or bill.bill_date <= end)
        )
    ]
    return sorted(selected, key=_date_key, reverse=True)


def summary_totals(bills: Iterable[TransportBill]) -> BillTotals:
    totals = BillTotals()
    for bill in bills:
        totals = totals.add(bill)
    return totals


def contractor_summary(bills: Iterable[TransportBill]) -> list[SummaryRow]:
    """Totals per contractor, largest net amount first.

    Bills without a contractor are left out.
    """
    rows: dict[int, SummaryRow] = {}
    for bill in bills:
        if not bill.contractor_id:
            continue
        row = rows.get(bill.contractor_id) or SummaryRow(
            key=str(bill.contractor_id), label=bill.contractor_name
        )
        rows[bill.contractor_id] = replace(row, totals=row.totals.add(bill))

    result = sorted(rows.values(), key=lambda row: row.totals.net_amount, reverse=True)
    logger.debug("contractor_summary_built", contractors=len(result))
    return result


def monthly_summary(bills: Iterable[TransportBill]) -> list[SummaryRow]:
    """Totals per ``YYYY-MM`` month of the bill date, latest month first."""
    rows: dict[str, SummaryRow] = {}
    for bill in bills:
        if bill.bill_date is None:
            continue
        month = f"{bill.bill_date.year:04d}-{bill.bill_date.month:02d}"
        row = rows.get(month) or SummaryRow(key=month, label=month)
        rows[month] = replace(row, totals=row.totals.add(bill))
    return [rows[month] for month in sorted(rows, reverse=True)]


def route_summary(
    bills: Iterable[TransportBill], contracts: Sequence[Contract]
) -> list[RouteSummary]:
    """Trips, net weight and amount per contract, largest amount first.

    Line items whose contract is not in ``contracts`` are not counted.
    """
    by_id = {contract.contract_id: contract for contract in contracts}
    rows: dict[int, RouteSummary] = {}
    for bill in bills:
        for item in bill.items:
            contract = by_id.get(item.contract_id) if item.contract_id else None
            if contract is None:
                continue
            row = rows.get(contract.contract_id) or RouteSummary(contract=contract)
            rows[contract.contract_id] = replace(
                row,
                trips=row.trips + 1,
                net_kgs=row.net_kgs + item.net_kg,
                amount=row.amount + item.amount,
                bill_ids=row.bill_ids | {bill.id},
            )
    return sorted(rows.values(), key=lambda row: row.amount, reverse=True)


def deduction_summary(
    bills: Iterable[TransportBill | GrindingBill], rates: RateSchedule = TRANSPORT_RATES
) -> DeductionSummary:
    """Sum every deduction line over the bills.

    Lines follow the schedule's order; a stored line the schedule does not
    know is kept after them under its own key.
    """
    lines = {line.key: ZERO for line in rates.lines}
    labels = {line.key: line.label for line in rates.lines}
    others = ZERO
    count = 0
    for bill in bills:
        if bill.deductions is None:
            continue
        count += 1
        for key, amount in bill.deductions.lines.items():
            lines[key] = lines.get(key, ZERO) + amount
        others += bill.deductions.others
    return DeductionSummary(lines=lines, labels=labels, others=others, bill_count=count)


def contractor_statement(
    bills: Iterable[TransportBill],
    contractor_id: int,
    start: date | None = None,
    end: date | None = None,
    rates: RateSchedule = TRANSPORT_RATES,
) -> ContractorStatement:
    """One contractor's bills for a period, oldest first, with totals and taxes withheld."""
    own = [bill for bill in bills if bill.contractor_id == contractor_id]
    selected = list(reversed(bills_in_range(own, start, end)))
    name = next((bill.contractor_name for bill in selected if bill.contractor_name), "")
    statement = ContractorStatement(
        contractor_id=contractor_id,
        contractor_name=name,
        start=start,
        end=end,
        bills=selected,
        totals=summary_totals(selected),
        deductions=deduction_summary(selected, rates),
    )
    logger.info(
        "contractor_statement_built",
        contractor_id=contractor_id,
        bills=len(selected),
        net_amount=statement.totals.net_amount,
    )
    return statement


def consumed_amount(bill: TransportBill | GrindingBill) -> Decimal:
    """What a bill draws from its budget: net amount, or the final amount to the mill."""
    if isinstance(bill, GrindingBill):
        return bill.final_amount_to_mill
    return bill.net_amount


def budget_status(
    bills: Iterable[TransportBill | GrindingBill], sanctioned: Decimal
) -> BudgetStatus:
    """Compare the bills' consumption against a sanctioned budget.

    Every bill counts whatever its status.
    """
    consumed = sum((consumed_amount(bill) for bill in bills), ZERO)
    balance = sanctioned - consumed
    percent = round2(consumed / sanctioned * HUNDRED) if sanctioned > 0 else ZERO
    status = BudgetStatus(
        sanctioned=sanctioned, consumed=consumed, balance=balance, consumed_percent=percent
    )
    if status.exceeded:
        logger.warning("budget_exceeded", sanctioned=sanctioned, consumed=consumed)
    return status
