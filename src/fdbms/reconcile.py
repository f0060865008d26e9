"""Bulk-import reconciliation for reference data and recovered bills.

Imported rows come from spreadsheets and hand-edited files, so column names
vary. Each record type declares a header synonym table; a row is resolved
into a :class:`ParsedRow` holding canonical field names before anything is
merged.

Imported files do not carry the live system's ids, so records are matched on
a natural key built from domain fields (a contract is contractor + from + to).
Rows that cannot be resolved are dropped and only counted.
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Generic, TypeVar
from uuid import uuid4

from fdbms.config import get_logger
from fdbms.deductions import TRANSPORT_RATES
from fdbms.lifecycle import Rejected
from fdbms.models import (
    JUTE_BAGS,
    PP_BAGS,
    Attachment,
    BillItem,
    BillMode,
    BillStatus,
    CertificationPoint,
    Contract,
    CustomDeduction,
    DeductionSet,
    TransportBill,
    User,
)
from fdbms.numbers import to_decimal, to_int

logger = get_logger(__name__)

R = TypeVar("R", Contract, User)
T = TypeVar("T")

REPLACE_CONFIRMATION = "REPLACE ALL"

BILLS_SHEET = "Bills"
ITEMS_SHEET = "Bill Items"
ATTACHMENTS_SHEET = "Attachments"
CUSTOM_DEDUCTIONS_SHEET = "Custom Deductions"
CERT_POINTS_SHEET = "Certification Points"
CONTRACTS_SHEET = "Contracts"
USERS_SHEET = "Users"

USER_ROLES = ("Admin", "Manager", "User", "Viewer", "AG Office")

# Spreadsheet serial dates count days from this epoch.
_SPREADSHEET_EPOCH = date(1899, 12, 30)
_DATE_FORMATS = ("%m/%d/%Y", "%d %b %Y", "%d %b, %Y", "%b %d %Y", "%b %d, %Y", "%d-%b-%Y")


# =============================================================================
# HEADER RESOLUTION
# =============================================================================


CONTRACT_HEADERS: dict[str, tuple[str, ...]] = {
    "sanctioned_no": ("sanctioned no", "sanctioned_no", "sanction no"),
    "contractor_id": ("contractor id", "contractor_id"),
    "contractor_name": ("contractor name", "contractor_name", "contractor"),
    "from_location": ("from location", "from_location", "from"),
    "to_location": ("to location", "to_location", "to"),
    "rate_per_kg": ("rate per kg", "rate_per_kg", "rate", "rate/kg"),
    "effective_date": ("effective date", "effective_date", "date"),
    "status": ("status",),
}

USER_HEADERS: dict[str, tuple[str, ...]] = {
    "username": ("username", "user name", "user", "login"),
    "role": ("role", "user role"),
}


@dataclass(frozen=True)
class ParsedRow:
    """An imported row after header resolution: canonical field -> value."""

    record_type: str
    fields: dict[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def find_value(row: Mapping[str, Any], synonyms: Iterable[str]) -> Any:
    """Return the value under the first synonym found, ignoring case and padding."""
    normalized = {str(key).strip().lower(): key for key in row}
    for synonym in synonyms:
        key = normalized.get(synonym.strip().lower())
        if key is not None:
            return row[key]
    return None


def parse_date(value: Any) -> date | None:
    """Parse a date cell: date/datetime, spreadsheet serial number, or text."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        try:
            return _SPREADSHEET_EPOCH + timedelta(days=int(value))
        except (OverflowError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _coerce_contract_fields(fields: dict[str, Any]) -> dict[str, Any] | None:
    for required in ("contractor_name", "from_location", "to_location"):
        if required not in fields:
            return None

    result: dict[str, Any] = {}
    for name in ("sanctioned_no", "contractor_name", "from_location", "to_location"):
        if name in fields:
            result[name] = str(fields[name]).strip()
    if "rate_per_kg" in fields:
        result["rate_per_kg"] = to_decimal(fields["rate_per_kg"])
    if "contractor_id" in fields:
        result["contractor_id"] = to_int(fields["contractor_id"])
    if "status" in fields:
        status = str(fields["status"]).strip()
        result["status"] = status if status in ("Active", "Inactive") else "Active"
    if "effective_date" in fields:
        parsed = parse_date(fields["effective_date"])
        if parsed is not None:
            result["effective_date"] = parsed.isoformat()
    return result


def _coerce_user_fields(fields: dict[str, Any]) -> dict[str, Any] | None:
    if "username" not in fields:
        return None
    result: dict[str, Any] = {"username": str(fields["username"]).strip()}
    if "role" in fields:
        wanted = str(fields["role"]).strip().lower()
        result["role"] = next((r for r in USER_ROLES if r.lower() == wanted), "User")
    return result


def contract_key(fields: Mapping[str, Any]) -> str:
    """Natural key of a contract: contractor, origin and destination."""
    return (
        f"{fields.get('contractor_name', '')}|{fields.get('from_location', '')}"
        f"|{fields.get('to_location', '')}"
    ).lower().strip()


def user_key(fields: Mapping[str, Any]) -> str:
    return str(fields.get("username", "")).lower().strip()


def _build_contract(record_id: Any, fields: dict[str, Any]) -> Contract:
    return Contract(contract_id=record_id, **fields)


def _build_user(record_id: Any, fields: dict[str, Any]) -> User:
    # Imported users get an unusable random password until an admin resets it.
    return User(id=record_id, password=str(uuid4()), **fields)


@dataclass(frozen=True)
class RecordSchema(Generic[R]):
    """How one reference record type is imported."""

    name: str
    headers: dict[str, tuple[str, ...]]
    coerce: Callable[[dict[str, Any]], dict[str, Any] | None]
    key_fn: Callable[[Mapping[str, Any]], str]
    id_field: str
    sequential_ids: bool
    build: Callable[[Any, dict[str, Any]], R]

    def record_fields(self, record: R) -> dict[str, Any]:
        return {name: getattr(record, name) for name in self.headers}


CONTRACT_SCHEMA: RecordSchema[Contract] = RecordSchema(
    name="contract",
    headers=CONTRACT_HEADERS,
    coerce=_coerce_contract_fields,
    key_fn=contract_key,
    id_field="contract_id",
    sequential_ids=True,
    build=_build_contract,
)

USER_SCHEMA: RecordSchema[User] = RecordSchema(
    name="user",
    headers=USER_HEADERS,
    coerce=_coerce_user_fields,
    key_fn=user_key,
    id_field="id",
    sequential_ids=False,
    build=_build_user,
)


def resolve_row(raw: Mapping[str, Any], schema: RecordSchema[Any]) -> ParsedRow | None:
    """Resolve a raw row's headers, returning None when required fields are missing."""
    found: dict[str, Any] = {}
    for canonical, synonyms in schema.headers.items():
        value = find_value(raw, synonyms)
        if _present(value):
            found[canonical] = value

    coerced = schema.coerce(found)
    if coerced is None:
        return None
    return ParsedRow(record_type=schema.name, fields=coerced)


def resolve_rows(
    rows: Iterable[Mapping[str, Any] | ParsedRow], schema: RecordSchema[Any]
) -> tuple[list[ParsedRow], int]:
    """Resolve every row; returns the parsed rows and how many were dropped."""
    parsed: list[ParsedRow] = []
    skipped = 0
    for row in rows:
        resolved = row if isinstance(row, ParsedRow) else resolve_row(row, schema)
        if resolved is None:
            skipped += 1
        else:
            parsed.append(resolved)
    if skipped:
        logger.info("import_rows_skipped", record_type=schema.name, skipped=skipped)
    return parsed, skipped


# =============================================================================
# MERGE / REPLACE
# =============================================================================


@dataclass(frozen=True)
class MergeResult(Generic[T]):
    merged: list[T]
    added: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def added_count(self) -> int:
        return self.added

    @property
    def updated_count(self) -> int:
        return self.updated


@dataclass(frozen=True)
class ReplaceResult(Generic[T]):
    replaced: list[T]
    discarded: int = 0
    skipped: int = 0


def _next_sequential_id(records: Sequence[Any], id_field: str) -> int:
    ids = [to_int(getattr(record, id_field)) for record in records]
    return max(ids) + 1 if ids else 1


def merge_import(
    existing: Sequence[R],
    rows: Iterable[Mapping[str, Any] | ParsedRow],
    schema: RecordSchema[R],
    key_fn: Callable[[Mapping[str, Any]], str] | None = None,
) -> MergeResult[R]:
    """Upsert imported rows into ``existing`` by natural key.

    A matching record only has the imported fields overwritten. Unmatched rows
    are added with a fresh id. Existing records missing from the import are
    kept as they are. ``existing`` is not modified.
    """
    key_fn = key_fn or schema.key_fn
    parsed, skipped = resolve_rows(rows, schema)

    merged = list(existing)
    index: dict[str, int] = {}
    for position, record in enumerate(merged):
        index.setdefault(key_fn(schema.record_fields(record)), position)

    next_id = _next_sequential_id(merged, schema.id_field) if schema.sequential_ids else None
    added = updated = 0
    for row in parsed:
        key = key_fn(row.fields)
        position = index.get(key)
        if position is not None:
            merged[position] = replace(merged[position], **row.fields)
            updated += 1
            continue

        if next_id is not None:
            record_id: Any = next_id
            next_id += 1
        else:
            record_id = str(uuid4())
        index[key] = len(merged)
        merged.append(schema.build(record_id, dict(row.fields)))
        added += 1

    logger.info(
        "import_merged",
        record_type=schema.name,
        added=added,
        updated=updated,
        skipped=skipped,
    )
    return MergeResult(merged=merged, added=added, updated=updated, skipped=skipped)


def replace_all(
    existing: Sequence[R],
    rows: Iterable[Mapping[str, Any] | ParsedRow],
    schema: RecordSchema[R],
    confirmation: str | None,
) -> ReplaceResult[R] | Rejected:
    """Discard ``existing`` and rebuild the collection from the import.

    Destructive, so it only runs when ``confirmation`` is exactly the
    ``REPLACE ALL`` phrase the user was asked to type. Ids are reassigned
    1..n (or fresh UUIDs for UUID-keyed records).
    """
    if confirmation != REPLACE_CONFIRMATION:
        logger.warning("replace_all_rejected", record_type=schema.name, existing=len(existing))
        return Rejected(reason="Replacement cancelled by user.")

    parsed, skipped = resolve_rows(rows, schema)
    replaced: list[R] = []
    for position, row in enumerate(parsed, start=1):
        record_id: Any = position if schema.sequential_ids else str(uuid4())
        replaced.append(schema.build(record_id, dict(row.fields)))

    logger.info(
        "import_replaced",
        record_type=schema.name,
        discarded=len(existing),
        count=len(replaced),
    )
    return ReplaceResult(replaced=replaced, discarded=len(existing), skipped=skipped)


# =============================================================================
# BILL RECOVERY
# =============================================================================


@dataclass(frozen=True)
class Reconstruction:
    bills: list[TransportBill] = field(default_factory=list)
    skipped: int = 0


def _group_by_bill(rows: Iterable[Mapping[str, Any]]) -> dict[str, list[Mapping[str, Any]]]:
    groups: dict[str, list[Mapping[str, Any]]] = defaultdict(list)
    for row in rows:
        groups[str(row.get("bill_id"))].append(row)
    return groups


def _bag_types(raw: Any) -> frozenset[str]:
    if isinstance(raw, str):
        return frozenset(part.strip() for part in raw.split(",") if part.strip())
    if isinstance(raw, (list, tuple, set, frozenset)):
        return frozenset(str(part) for part in raw if part)
    return frozenset()


def item_from_record(raw: Mapping[str, Any]) -> BillItem:
    """Build a line item from a stored or imported record, coercing every number.

    Items saved before multiple bag types existed carry a single ``bagType``
    and put the whole count in ``bags``; those are moved to the matching
    PP or jute count.
    """
    mode = BillMode.BARDANA if raw.get("mode") == BillMode.BARDANA.value else BillMode.NORMAL
    bag_types = _bag_types(raw.get("bagTypes"))
    pp_bags = to_int(raw.get("ppBags"))
    jute_bags = to_int(raw.get("juteBags"))

    if not _present(raw.get("bagTypes")) and mode is BillMode.BARDANA:
        legacy = raw.get("bagType")
        if legacy == PP_BAGS:
            bag_types, pp_bags = frozenset({PP_BAGS}), to_int(raw.get("bags"))
        elif legacy == JUTE_BAGS:
            bag_types, jute_bags = frozenset({JUTE_BAGS}), to_int(raw.get("bags"))

    contract_id = raw.get("contract_id")
    return BillItem(
        id=str(raw.get("id") or uuid4()),
        contract_id=to_int(contract_id) if _present(contract_id) else None,
        from_location=str(raw.get("from") or ""),
        to_location=str(raw.get("to") or ""),
        bags=to_int(raw.get("bags")),
        mode=mode,
        bag_types=bag_types,
        pp_bags=pp_bags,
        jute_bags=jute_bags,
        rate_per_kg=to_decimal(raw.get("rate_per_kg")),
        gross_kg=to_decimal(raw.get("grossKgs")),
        bardana_kg=to_decimal(raw.get("bardanaKgs")),
        net_kg=to_decimal(raw.get("netKgs")),
        amount=to_decimal(raw.get("rs")),
    )


def _deductions_from_record(raw: Any, grand_total: Decimal, total: Decimal, net: Decimal) -> DeductionSet:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raw = {}
    if not isinstance(raw, Mapping):
        raw = {}
    return DeductionSet(
        grand_total=grand_total,
        lines={line.key: to_decimal(raw.get(line.key)) for line in TRANSPORT_RATES.lines},
        others=to_decimal(raw.get("others")),
        others_description=str(raw.get("others_description") or ""),
        total_deductions=total,
        net_amount=net,
    )


def _status(raw: Any) -> BillStatus:
    try:
        return BillStatus(raw)
    except ValueError:
        return BillStatus.DRAFT


def _rows(raw: Any) -> list[Mapping[str, Any]]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [row for row in raw if isinstance(row, Mapping)]


def bill_from_record(raw: Mapping[str, Any]) -> TransportBill | None:
    """Rebuild a transportation bill from a loosely typed record.

    Returns None for records without a string ``id`` and ``bill_number``.
    Numbers that fail to parse become 0. Bills saved before the lifecycle
    existed have no status and come back as Drafts.
    """
    bill_id, bill_number = raw.get("id"), raw.get("bill_number")
    if not isinstance(bill_id, str) or not isinstance(bill_number, str):
        return None

    grand_total = to_decimal(raw.get("grandTotal"))
    total_deductions = to_decimal(raw.get("totalDeductions"))
    net_amount = to_decimal(raw.get("netAmount"))
    # to_decimal already maps NaN to 0. Whether such bills should be surfaced
    # instead of dropped is still open with the billing section.
    if not net_amount.is_finite():
        logger.warning("bill_skipped_nan_net_amount", bill_id=bill_id)
        return None

    status = _status(raw.get("status"))
    has_status = "status" in raw and raw.get("status") is not None
    contract_id = raw.get("contract_id")

    return TransportBill(
        id=bill_id,
        bill_number=bill_number,
        bill_date=parse_date(raw.get("bill_date")),
        bill_period=str(raw.get("bill_period") or ""),
        sanctioned_no=str(raw.get("sanctioned_no") or ""),
        contract_id=to_int(contract_id) if _present(contract_id) else None,
        contractor_id=to_int(raw.get("contractor_id")),
        contractor_name=str(raw.get("contractor_name") or ""),
        items=tuple(item_from_record(item) for item in _rows(raw.get("bill_items"))),
        delay_days=to_int(raw.get("delay_days")),
        deductions=_deductions_from_record(
            raw.get("deductions"), grand_total, total_deductions, net_amount
        ),
        custom_deductions=tuple(
            CustomDeduction(
                id=str(entry.get("id") or uuid4()),
                label=str(entry.get("label") or ""),
                value=to_decimal(entry.get("value")),
            )
            for entry in _rows(raw.get("custom_deductions"))
        ),
        certification_points=tuple(
            CertificationPoint(id=str(point.get("id") or uuid4()), text=str(point.get("text") or ""))
            for point in _rows(raw.get("certification_points"))
        ),
        grand_total=grand_total,
        total_deductions=total_deductions,
        net_amount=net_amount,
        amount_in_words=str(raw.get("amountInWords") or ""),
        attachments=tuple(
            Attachment(
                id=str(att.get("id") or uuid4()),
                name=str(att.get("name") or ""),
                type=str(att.get("type") or ""),
                data_url=str(att.get("dataUrl") or ""),
            )
            for att in _rows(raw.get("attachments"))
        ),
        status=status,
        sent_at=parse_timestamp(raw.get("agOfficeSentAt")) if has_status else None,
        processed_at=parse_timestamp(raw.get("agOfficeProcessedAt")) if has_status else None,
    )


def reconstruct_bills(sheets: Mapping[str, Sequence[Mapping[str, Any]]]) -> Reconstruction:
    """Rebuild full bills from the normalised sheets of a backup workbook.

    Child sheets are joined onto ``Bills`` rows through their ``bill_id``
    column. Bills that cannot be rebuilt are skipped and only counted.
    """
    items = _group_by_bill(sheets.get(ITEMS_SHEET, ()))
    attachments = _group_by_bill(sheets.get(ATTACHMENTS_SHEET, ()))
    custom = _group_by_bill(sheets.get(CUSTOM_DEDUCTIONS_SHEET, ()))
    points = _group_by_bill(sheets.get(CERT_POINTS_SHEET, ()))

    bills: list[TransportBill] = []
    skipped = 0
    for row in sheets.get(BILLS_SHEET, ()):
        key = str(row.get("id"))
        record = dict(row)
        record["bill_items"] = items.get(key, [])
        record["attachments"] = attachments.get(key, [])
        record["custom_deductions"] = custom.get(key, [])
        record["certification_points"] = points.get(key, [])

        bill = bill_from_record(record)
        if bill is None:
            skipped += 1
        else:
            bills.append(bill)

    logger.info("bills_reconstructed", count=len(bills), skipped=skipped)
    return Reconstruction(bills=bills, skipped=skipped)


def merge_bills(
    existing: Sequence[TransportBill], imported: Iterable[TransportBill]
) -> MergeResult[TransportBill]:
    """Add recovered bills or replace existing ones with the same bill id."""
    merged = list(existing)
    index = {bill.id: position for position, bill in enumerate(merged)}
    added = updated = 0
    for bill in imported:
        position = index.get(bill.id)
        if position is None:
            index[bill.id] = len(merged)
            merged.append(bill)
            added += 1
        else:
            merged[position] = bill
            updated += 1

    logger.info("bills_merged", added=added, updated=updated)
    return MergeResult(merged=merged, added=added, updated=updated)
