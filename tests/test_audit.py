"""Tests for the audit trail."""

from dataclasses import replace

from fdbms.audit import MAX_LOG_ENTRIES, record_action, sanitize_bill_for_logging
from fdbms.models import CertificationPoint, User

ADMIN = User(id="u-1", username="admin", role="Admin")


class TestRecordAction:
    def test_newest_first(self):
        log = record_action([], "CREATE_BILL", ADMIN, {"bill_number": "M-1/Oct 2025/1"})
        log = record_action(log, "SEND_TO_AG", ADMIN)

        assert [entry.action for entry in log] == ["SEND_TO_AG", "CREATE_BILL"]
        assert log[1].details == {"bill_number": "M-1/Oct 2025/1"}
        assert log[0].username == "admin"

    def test_capped(self):
        log = []
        for n in range(MAX_LOG_ENTRIES + 5):
            log = record_action(log, f"ACTION_{n}", ADMIN)

        assert len(log) == MAX_LOG_ENTRIES
        assert log[0].action == f"ACTION_{MAX_LOG_ENTRIES + 4}"

    def test_no_user_no_entry(self):
        log = record_action([], "LOGIN", None)

        assert log == []

    def test_to_dict(self):
        (entry,) = record_action([], "LOGIN", ADMIN)

        data = entry.to_dict()

        assert data["userId"] == "u-1"
        assert data["action"] == "LOGIN"
        assert "timestamp" in data


def test_sanitize_drops_attachment_payloads(transport_bill, attachment):
    bill = replace(
        transport_bill,
        attachments=(attachment,),
        certification_points=(CertificationPoint(id="p", text="Certified"),),
    )

    data = sanitize_bill_for_logging(bill)

    assert data["attachments"] == [{"name": "scan.pdf", "type": "application/pdf"}]
    assert data["certification_points"] == "1 points"
    assert sanitize_bill_for_logging(None) is None
