"""Audit trail entries for billing actions."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fdbms.models import GrindingBill, TransportBill, User

MAX_LOG_ENTRIES = 500


@dataclass(frozen=True)
class AuditEntry:
    """One recorded user action."""

    action: str
    user_id: str
    username: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "userId": self.user_id,
            "username": self.username,
            "action": self.action,
            "details": self.details,
        }


def record_action(
    log: Sequence[AuditEntry],
    action: str,
    user: User | None,
    details: dict[str, Any] | None = None,
) -> list[AuditEntry]:
    """Return a new log with the action prepended, capped at MAX_LOG_ENTRIES.

    Nothing is recorded without a user.
    """
    if user is None:
        return list(log)
    entry = AuditEntry(
        action=action,
        user_id=user.id,
        username=user.username,
        details=dict(details or {}),
    )
    return [entry, *log][:MAX_LOG_ENTRIES]


def sanitize_bill_for_logging(bill: TransportBill | GrindingBill | None) -> dict[str, Any] | None:
    """Bill snapshot small enough for the audit log.

    Attachments keep only name and type. Certification points collapse to a count.
    """
    if bill is None:
        return None
    data = bill.to_dict()
    data["attachments"] = [{"name": a.name, "type": a.type} for a in bill.attachments]
    if isinstance(bill, TransportBill):
        data["certification_points"] = f"{len(bill.certification_points)} points"
    return data
