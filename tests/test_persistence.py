"""Tests for size-aware bill saving."""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from fdbms.persistence import estimate_size, guarded_save, strip_attachments


@pytest.fixture
def bill_with_attachment(transport_bill, attachment):
    return replace(transport_bill, attachments=(attachment,))


class TestGuardedSave:
    def test_small_bill_written_as_is(self, bill_with_attachment):
        write = MagicMock()

        result = guarded_save(bill_with_attachment, write, budget_bytes=1_000_000)

        write.assert_called_once_with(bill_with_attachment)
        assert result.written is bill_with_attachment
        assert result.stripped_attachments is False

    def test_oversized_bill_loses_payload_only(self, bill_with_attachment):
        """Test attachment metadata survives when the payload is stripped."""
        write = MagicMock()

        result = guarded_save(bill_with_attachment, write, budget_bytes=1024)

        assert result.stripped_attachments is True
        (written,) = result.written.attachments
        assert written.data_url == ""
        assert (written.id, written.name, written.type) == ("att-1", "scan.pdf", "application/pdf")
        write.assert_called_once_with(result.written)

    def test_default_budget_from_settings(self, monkeypatch, bill_with_attachment):
        monkeypatch.setenv("STORAGE_BUDGET_BYTES", "100")

        result = guarded_save(bill_with_attachment, MagicMock())

        assert result.stripped_attachments is True

    def test_estimate_failure_strips(self, monkeypatch, bill_with_attachment):
        def broken(bill):
            raise TypeError("not serialisable")

        monkeypatch.setattr("fdbms.persistence.estimate_size", broken)

        result = guarded_save(bill_with_attachment, MagicMock(), budget_bytes=1_000_000)

        assert result.stripped_attachments is True

    def test_writer_errors_propagate(self, transport_bill):
        write = MagicMock(side_effect=OSError("disk full"))

        with pytest.raises(OSError):
            guarded_save(transport_bill, write, budget_bytes=1_000_000)


def test_estimate_size_counts_utf8_bytes(transport_bill):
    ascii_size = estimate_size(transport_bill)
    wide = replace(transport_bill, contractor_name=transport_bill.contractor_name + "ع")

    assert estimate_size(wide) == ascii_size + 2


def test_strip_attachments_keeps_original(bill_with_attachment):
    stripped = strip_attachments(bill_with_attachment)

    assert stripped.attachments[0].data_url == ""
    assert bill_with_attachment.attachments[0].data_url != ""
