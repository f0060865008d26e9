"""Record types for bills and the reference data they draw on.

All records are frozen dataclasses. Operations in this package return new
records (via ``dataclasses.replace``) and new collections; they never mutate
what the caller passed in. ``to_dict`` produces the stored JSON shape, which
keeps the key names used by existing saved data and backups.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from fdbms.numbers import ZERO

PP_BAGS = "PP Bags"
JUTE_BAGS = "Jute Bags"


class BillStatus(str, Enum):
    """Lifecycle states shared by both bill kinds."""

    DRAFT = "Draft"
    SENT_TO_AG = "Sent to AG"
    PROCESSED = "Processed"


class BillType(str, Enum):
    """Kinds of bills that meet in the AG Office queue."""

    TRANSPORTATION = "transportation"
    GRINDING = "grinding"


class BillMode(str, Enum):
    """Weight mode of a transportation line item."""

    NORMAL = "Normal"
    BARDANA = "Bardana"


def _money(value: Decimal) -> float:
    return float(value)


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Attachment:
    """A file attached to a bill. ``data_url`` holds the encoded payload."""

    id: str
    name: str
    type: str
    data_url: str = ""

    def stripped(self) -> "Attachment":
        """Return the attachment with its payload removed."""
        return Attachment(id=self.id, name=self.name, type=self.type, data_url="")

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.type, "dataUrl": self.data_url}


@dataclass(frozen=True)
class CustomDeduction:
    """Free-text deduction entered on a bill."""

    id: str
    label: str = ""
    value: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "value": _money(self.value)}


@dataclass(frozen=True)
class CertificationPoint:
    id: str
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True)
class BillItem:
    """One transportation line: a route, a bag count and the weights derived from it."""

    id: str
    contract_id: int | None = None
    from_location: str = ""
    to_location: str = ""
    bags: int = 0
    mode: BillMode = BillMode.NORMAL
    bag_types: frozenset[str] = frozenset()
    pp_bags: int = 0
    jute_bags: int = 0
    rate_per_kg: Decimal = ZERO
    gross_kg: Decimal = ZERO
    bardana_kg: Decimal = ZERO
    net_kg: Decimal = ZERO
    amount: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "from": self.from_location,
            "to": self.to_location,
            "bags": self.bags,
            "mode": self.mode.value,
            "bagTypes": sorted(self.bag_types),
            "ppBags": self.pp_bags,
            "juteBags": self.jute_bags,
            "rate_per_kg": float(self.rate_per_kg),
            "grossKgs": float(self.gross_kg),
            "bardanaKgs": float(self.bardana_kg),
            "netKgs": float(self.net_kg),
            "rs": _money(self.amount),
        }


@dataclass(frozen=True)
class DeductionSet:
    """Statutory deduction lines plus the custom entries, with the bill totals.

    ``lines`` is keyed by the rate schedule's line keys, in schedule order.
    """

    grand_total: Decimal
    lines: dict[str, Decimal]
    others: Decimal = ZERO
    others_description: str = ""
    total_deductions: Decimal = ZERO
    net_amount: Decimal = ZERO

    def __getitem__(self, key: str) -> Decimal:
        return self.lines[key]

    @property
    def statutory_total(self) -> Decimal:
        return sum(self.lines.values(), ZERO)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {key: _money(value) for key, value in self.lines.items()}
        result["others"] = _money(self.others)
        result["others_description"] = self.others_description
        return result


@dataclass(frozen=True)
class TransportBill:
    """A transportation bill for a contractor's wheat movements."""

    bill_type: ClassVar[BillType] = BillType.TRANSPORTATION

    id: str
    bill_number: str
    bill_date: date | None = None
    bill_period: str = ""
    sanctioned_no: str = ""
    contract_id: int | None = None
    contractor_id: int = 0
    contractor_name: str = ""
    items: tuple[BillItem, ...] = ()
    delay_days: int = 0
    deductions: DeductionSet | None = None
    custom_deductions: tuple[CustomDeduction, ...] = ()
    certification_points: tuple[CertificationPoint, ...] = ()
    grand_total: Decimal = ZERO
    total_deductions: Decimal = ZERO
    net_amount: Decimal = ZERO
    amount_in_words: str = ""
    attachments: tuple[Attachment, ...] = ()
    status: BillStatus = BillStatus.DRAFT
    sent_at: datetime | None = None
    processed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bill_number": self.bill_number,
            "bill_date": self.bill_date.isoformat() if self.bill_date else "",
            "bill_period": self.bill_period,
            "sanctioned_no": self.sanctioned_no,
            "contract_id": self.contract_id,
            "contractor_id": self.contractor_id,
            "contractor_name": self.contractor_name,
            "bill_items": [item.to_dict() for item in self.items],
            "delay_days": self.delay_days,
            "deductions": self.deductions.to_dict() if self.deductions else {},
            "custom_deductions": [entry.to_dict() for entry in self.custom_deductions],
            "certification_points": [point.to_dict() for point in self.certification_points],
            "grandTotal": _money(self.grand_total),
            "totalDeductions": _money(self.total_deductions),
            "netAmount": _money(self.net_amount),
            "amountInWords": self.amount_in_words,
            "attachments": [attachment.to_dict() for attachment in self.attachments],
            "status": self.status.value,
            "agOfficeSentAt": _timestamp(self.sent_at),
            "agOfficeProcessedAt": _timestamp(self.processed_at),
        }


@dataclass(frozen=True)
class GrindingCommodity:
    """One commodity row on a grinding bill. Rates are per 100 kg."""

    id: str
    name: str
    quantity_kgs: Decimal = ZERO
    rate_per_100kg: Decimal = ZERO
    amount: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantityKgs": float(self.quantity_kgs),
            "ratePer100Kg": float(self.rate_per_100kg),
            "amount": _money(self.amount),
        }


@dataclass(frozen=True)
class OtherDeductions:
    """Recoveries paid to the Directorate rather than withheld as tax."""

    e_bags_month: str = ""
    e_bags: int = 0
    e_bags_rate: Decimal = Decimal("200")
    e_bags_amount: Decimal = ZERO
    bran_quantity: Decimal = ZERO
    bran_rate: Decimal = Decimal("45")
    bran_amount: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {
            "eBags": {
                "month": self.e_bags_month,
                "bags": self.e_bags,
                "rate": float(self.e_bags_rate),
                "amount": _money(self.e_bags_amount),
            },
            "branPrice": {
                "quantity": float(self.bran_quantity),
                "rate": float(self.bran_rate),
                "amount": _money(self.bran_amount),
            },
        }


@dataclass(frozen=True)
class GrindingBill:
    """A flour-mill grinding-charges bill."""

    bill_type: ClassVar[BillType] = BillType.GRINDING

    id: str
    bill_number: str
    bill_date: date | None = None
    bill_period_start: date | None = None
    bill_period_end: date | None = None
    district_for_tax: str = ""
    sanctioned_no: str = ""
    sanctioned_date: str = ""
    flour_mill_id: int | None = None
    flour_mill_name: str = ""
    commodities: tuple[GrindingCommodity, ...] = ()
    total_amount: Decimal = ZERO
    deductions: DeductionSet | None = None
    custom_deductions: tuple[CustomDeduction, ...] = ()
    total_deduction: Decimal = ZERO
    net_amount_after_taxes: Decimal = ZERO
    other_deductions: OtherDeductions = field(default_factory=OtherDeductions)
    amount_to_director: Decimal = ZERO
    final_amount_to_mill: Decimal = ZERO
    amount_in_words: str = ""
    attachments: tuple[Attachment, ...] = ()
    status: BillStatus = BillStatus.DRAFT
    sent_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def bill_period(self) -> str:
        if self.bill_period_start and self.bill_period_end:
            return f"{self.bill_period_start.isoformat()} to {self.bill_period_end.isoformat()}"
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "billNumber": self.bill_number,
            "billDate": self.bill_date.isoformat() if self.bill_date else "",
            "billPeriod": self.bill_period,
            "billPeriodStart": self.bill_period_start.isoformat() if self.bill_period_start else "",
            "billPeriodEnd": self.bill_period_end.isoformat() if self.bill_period_end else "",
            "districtForTax": self.district_for_tax,
            "sanctionedNo": self.sanctioned_no,
            "sanctionedDate": self.sanctioned_date,
            "flourMillId": self.flour_mill_id,
            "flourMillName": self.flour_mill_name,
            "commodities": [commodity.to_dict() for commodity in self.commodities],
            "totalAmount": _money(self.total_amount),
            "deductions": self.deductions.to_dict() if self.deductions else {},
            "customDeductions": [entry.to_dict() for entry in self.custom_deductions],
            "totalDeduction": _money(self.total_deduction),
            "netAmountAfterTaxes": _money(self.net_amount_after_taxes),
            "otherDeductions": self.other_deductions.to_dict(),
            "amountToDirector": _money(self.amount_to_director),
            "finalAmountToMill": _money(self.final_amount_to_mill),
            "amountInWords": self.amount_in_words,
            "attachments": [attachment.to_dict() for attachment in self.attachments],
            "status": self.status.value,
            "agOfficeSentAt": _timestamp(self.sent_at),
            "agOfficeProcessedAt": _timestamp(self.processed_at),
        }


Bill = TransportBill | GrindingBill


@dataclass(frozen=True)
class Contract:
    """A sanctioned transport rate for one contractor on one route."""

    contract_id: int
    contractor_name: str
    from_location: str
    to_location: str
    sanctioned_no: str = ""
    contractor_id: int = 0
    rate_per_kg: Decimal = ZERO
    effective_date: str | None = None
    status: str = "Active"

    def to_dict(self) -> dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "sanctioned_no": self.sanctioned_no,
            "contractor_id": self.contractor_id,
            "contractor_name": self.contractor_name,
            "from_location": self.from_location,
            "to_location": self.to_location,
            "rate_per_kg": float(self.rate_per_kg),
            "effective_date": self.effective_date or "",
            "status": self.status,
        }


@dataclass(frozen=True)
class User:
    id: str
    username: str
    role: str = "User"
    password: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "role": self.role}
