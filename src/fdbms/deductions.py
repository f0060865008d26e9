"""Statutory and custom deductions, and the bill totals built on them.

Both bill kinds run the same pipeline over a :class:`RateSchedule`. Each
statutory line is rounded to 2 decimals on its own before anything is summed.
Lines are computed from the grand total independently, with two exceptions:
the delay penalty depends only on the number of days late, and the education
cess is a fraction of the income tax line *after* that line was rounded.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from fdbms.models import (
    BillItem,
    CustomDeduction,
    DeductionSet,
    GrindingCommodity,
    OtherDeductions,
)
from fdbms.numbers import ZERO, round2, to_decimal, to_int
from fdbms.words import amount_in_words

THOUSAND = Decimal("1000")
INCOME_TAX = "income_tax"
BRAN = "Bran"


class RateBasis(str, Enum):
    """What a statutory rate is applied to."""

    GRAND_TOTAL = "grand_total"     # fraction of the grand total
    PER_THOUSAND = "per_thousand"   # rupees per 1000 of the grand total
    INCOME_TAX = "income_tax"       # fraction of the rounded income tax line
    PER_DAY = "per_day"             # rupees per day of delay


@dataclass(frozen=True)
class StatutoryLine:
    key: str
    label: str
    rate: Decimal
    basis: RateBasis = RateBasis.GRAND_TOTAL


@dataclass(frozen=True)
class RateSchedule:
    """Ordered statutory lines for one bill kind."""

    name: str
    lines: tuple[StatutoryLine, ...]

    def rate(self, key: str) -> Decimal:
        for line in self.lines:
            if line.key == key:
                return line.rate
        raise KeyError(key)


TRANSPORT_RATES = RateSchedule(
    name="transportation",
    lines=(
        StatutoryLine("penalty", "Penalty for days delay", Decimal("100"), RateBasis.PER_DAY),
        StatutoryLine(INCOME_TAX, "Income Tax (I.T.O)", Decimal("0.06")),
        StatutoryLine(
            "tajveed_ul_quran", "Tajveed-ul Quran", Decimal("10"), RateBasis.PER_THOUSAND
        ),
        StatutoryLine(
            "education_cess", "Education Cess", Decimal("0.10"), RateBasis.INCOME_TAX
        ),
        StatutoryLine("klc", "K.L.C", Decimal("0.001")),
        StatutoryLine("sd_current", "S.D Current bill", Decimal("0.0025")),
        StatutoryLine("gst_current", "GST Current bill", Decimal("0.15")),
    ),
)

GRINDING_RATES = RateSchedule(
    name="grinding",
    lines=(
        StatutoryLine(INCOME_TAX, "Income Tax", Decimal("0.08")),
        StatutoryLine(
            "tajveed_ul_quran", "Tajveed-ul Quran", Decimal("5"), RateBasis.PER_THOUSAND
        ),
        StatutoryLine(
            "education_cess", "Education Cess", Decimal("0.10"), RateBasis.INCOME_TAX
        ),
        StatutoryLine("klc", "K.L.C", Decimal("1"), RateBasis.PER_THOUSAND),
        StatutoryLine("stump_duty", "Stump Duty", Decimal("0.0025")),
    ),
)


def _line_amount(
    line: StatutoryLine,
    grand_total: Decimal,
    delay_days: int,
    computed: dict[str, Decimal],
) -> Decimal:
    if line.basis is RateBasis.PER_DAY:
        return round2(delay_days * line.rate)
    if line.basis is RateBasis.PER_THOUSAND:
        return round2(grand_total / THOUSAND * line.rate)
    if line.basis is RateBasis.INCOME_TAX:
        return round2(computed.get(INCOME_TAX, ZERO) * line.rate)
    return round2(grand_total * line.rate)


def compute_deductions(
    grand_total: Decimal,
    delay_days: int,
    rates: RateSchedule,
    custom_entries: Iterable[CustomDeduction] = (),
) -> DeductionSet:
    """Compute the full deduction breakdown for a bill.

    Never raises on odd input: negative or oversized values simply flow
    through to a possibly negative ``net_amount``.
    """
    grand_total = to_decimal(grand_total)
    delay_days = to_int(delay_days)
    entries = list(custom_entries)

    lines: dict[str, Decimal] = {}
    for line in rates.lines:
        lines[line.key] = _line_amount(line, grand_total, delay_days, lines)

    others = round2(sum((to_decimal(entry.value) for entry in entries), ZERO))
    description = ", ".join(entry.label for entry in entries if entry.label)
    total = sum(lines.values(), ZERO) + others

    return DeductionSet(
        grand_total=grand_total,
        lines=lines,
        others=others,
        others_description=description,
        total_deductions=total,
        net_amount=grand_total - total,
    )


@dataclass(frozen=True)
class TransportTotals:
    grand_total: Decimal
    deductions: DeductionSet
    total_deductions: Decimal
    net_amount: Decimal
    amount_in_words: str


def compute_transport_totals(
    items: Sequence[BillItem],
    delay_days: int,
    rates: RateSchedule = TRANSPORT_RATES,
    custom_entries: Iterable[CustomDeduction] = (),
) -> TransportTotals:
    """Aggregate computed line items into the bill's totals."""
    grand_total = sum((item.amount for item in items), ZERO)
    deductions = compute_deductions(grand_total, delay_days, rates, custom_entries)
    return TransportTotals(
        grand_total=grand_total,
        deductions=deductions,
        total_deductions=deductions.total_deductions,
        net_amount=deductions.net_amount,
        amount_in_words=amount_in_words(deductions.net_amount),
    )


@dataclass(frozen=True)
class GrindingTotals:
    total_amount: Decimal
    deductions: DeductionSet
    total_deduction: Decimal
    net_amount_after_taxes: Decimal
    other_deductions: OtherDeductions = field(default_factory=OtherDeductions)
    amount_to_director: Decimal = ZERO
    final_amount_to_mill: Decimal = ZERO
    amount_in_words: str = ""


def compute_other_deductions(
    commodities: Sequence[GrindingCommodity], other: OtherDeductions
) -> OtherDeductions:
    """Price the empty-bag shortfall and the bran returned to the Directorate.

    The bran quantity always follows the Bran commodity row.
    """
    bran_quantity = next(
        (to_decimal(c.quantity_kgs) for c in commodities if c.name == BRAN), ZERO
    )
    e_bags = to_int(other.e_bags)
    e_bags_rate = to_decimal(other.e_bags_rate)
    bran_rate = to_decimal(other.bran_rate)
    return OtherDeductions(
        e_bags_month=other.e_bags_month,
        e_bags=e_bags,
        e_bags_rate=e_bags_rate,
        e_bags_amount=round2(e_bags * e_bags_rate),
        bran_quantity=bran_quantity,
        bran_rate=bran_rate,
        bran_amount=round2(bran_quantity * bran_rate),
    )


def compute_grinding_totals(
    commodities: Sequence[GrindingCommodity],
    rates: RateSchedule = GRINDING_RATES,
    custom_entries: Iterable[CustomDeduction] = (),
    other: OtherDeductions | None = None,
) -> GrindingTotals:
    """Aggregate computed commodity rows into the grinding bill's totals."""
    total_amount = sum((c.amount for c in commodities), ZERO)
    deductions = compute_deductions(total_amount, 0, rates, custom_entries)
    priced = compute_other_deductions(commodities, other or OtherDeductions())
    to_director = priced.e_bags_amount + priced.bran_amount
    final_amount = deductions.net_amount - to_director
    return GrindingTotals(
        total_amount=total_amount,
        deductions=deductions,
        total_deduction=deductions.total_deductions,
        net_amount_after_taxes=deductions.net_amount,
        other_deductions=priced,
        amount_to_director=to_director,
        final_amount_to_mill=final_amount,
        amount_in_words=amount_in_words(final_amount),
    )
