"""Tests for the bill lifecycle and the AG Office queue."""

from dataclasses import replace
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from fdbms import lifecycle
from fdbms.lifecycle import (
    Rejected,
    UnifiedBill,
    apply_updates,
    can_transition,
    create_bill,
    mark_processed,
    pending,
    process_batch,
    processed,
    report_in_range,
    send_to_ag,
    unified_queue,
)
from fdbms.models import BillStatus, BillType

SENT = datetime(2025, 10, 10, 9, 30, tzinfo=timezone.utc)
LATER = datetime(2025, 10, 12, 16, 0, tzinfo=timezone.utc)


class TestTransitions:
    """Tests for forward-only status transitions."""

    def test_allowed_transitions(self):
        assert can_transition(BillStatus.DRAFT, BillStatus.SENT_TO_AG)
        assert can_transition(BillStatus.SENT_TO_AG, BillStatus.PROCESSED)

    def test_no_backward_or_skipping(self):
        assert not can_transition(BillStatus.PROCESSED, BillStatus.DRAFT)
        assert not can_transition(BillStatus.SENT_TO_AG, BillStatus.DRAFT)
        assert not can_transition(BillStatus.DRAFT, BillStatus.PROCESSED)

    def test_create_bill_resets_to_draft(self, transport_bill):
        stale = replace(transport_bill, status=BillStatus.PROCESSED, sent_at=SENT)

        bill = create_bill(stale)

        assert bill.status is BillStatus.DRAFT
        assert bill.sent_at is None
        assert bill.processed_at is None


class TestSendToAG:
    def test_send_draft(self, transport_bill):
        sent = send_to_ag(transport_bill, now=SENT)

        assert sent.status is BillStatus.SENT_TO_AG
        assert sent.sent_at == SENT
        assert transport_bill.status is BillStatus.DRAFT

    def test_send_twice_is_rejected(self, transport_bill):
        """Test a second send is refused and leaves the bill untouched."""
        sent = send_to_ag(transport_bill, now=SENT)

        again = send_to_ag(sent, now=LATER)

        assert isinstance(again, Rejected)
        assert not again
        assert again.reason == "Bill has already been Sent to AG"
        assert again.bill_id == "bill-1"
        assert sent.sent_at == SENT

    def test_send_grinding_bill(self, grinding_bill):
        sent = send_to_ag(grinding_bill, now=SENT)

        assert sent.status is BillStatus.SENT_TO_AG


class TestMarkProcessed:
    def test_batch_shares_timestamp(self, transport_bill):
        first = send_to_ag(transport_bill, now=SENT)
        second = send_to_ag(replace(transport_bill, id="bill-2"), now=SENT)

        result = mark_processed([first, second], now=LATER)

        assert [bill.status for bill in result] == [BillStatus.PROCESSED] * 2
        assert {bill.processed_at for bill in result} == {LATER}

    def test_ineligible_bills_come_back_unchanged(self, transport_bill):
        sent = send_to_ag(replace(transport_bill, id="bill-2"), now=SENT)

        result = mark_processed([transport_bill, sent], now=LATER)

        assert result[0] is transport_bill
        assert result[1].status is BillStatus.PROCESSED


class TestQueue:
    """Tests for the unified AG Office queue."""

    def test_most_recently_sent_first(self, transport_bill, grinding_bill):
        older = send_to_ag(transport_bill, now=SENT)
        newer = send_to_ag(grinding_bill, now=LATER)
        draft = replace(transport_bill, id="bill-9")

        queue = unified_queue([older, draft], [newer])

        assert [item.id for item in queue] == ["grind-1", "bill-1", "bill-9"]
        assert queue[0].bill_type is BillType.GRINDING

    def test_pending_and_processed_views(self, transport_bill, grinding_bill):
        sent = send_to_ag(transport_bill, now=SENT)
        done = mark_processed([send_to_ag(grinding_bill, now=SENT)], now=LATER)[0]

        queue = unified_queue([sent], [done])

        assert [item.id for item in pending(queue)] == ["bill-1"]
        assert [item.id for item in processed(queue)] == ["grind-1"]


class TestReport:
    def test_range_is_inclusive_by_date(self, transport_bill, grinding_bill):
        """Test a bill sent late on the end date is still in range."""
        late = datetime(2025, 10, 12, 23, 59, tzinfo=timezone.utc)
        sent = send_to_ag(transport_bill, now=late)
        done = mark_processed([send_to_ag(grinding_bill, now=SENT)], now=LATER)[0]
        queue = unified_queue([sent], [done])

        report = report_in_range(queue, date(2025, 10, 11), date(2025, 10, 12))

        assert [item.id for item in report.sent] == ["bill-1"]
        assert [item.id for item in report.processed] == ["grind-1"]

    def test_empty_range(self, transport_bill):
        queue = unified_queue([send_to_ag(transport_bill, now=SENT)], [])

        report = report_in_range(queue, date(2025, 11, 1), date(2025, 11, 30))

        assert report.sent == []
        assert report.processed == []


class TestProcessBatch:
    """Tests for batch processing and sequential rendering."""

    @pytest.mark.asyncio
    async def test_marks_all_before_first_render(self, transport_bill, grinding_bill):
        items = [
            UnifiedBill(BillType.TRANSPORTATION, send_to_ag(transport_bill, now=SENT)),
            UnifiedBill(BillType.GRINDING, send_to_ag(grinding_bill, now=SENT)),
        ]
        seen: list[list[BillStatus]] = []

        async def render(item):
            seen.append([item.status])

        result = await process_batch(items, render, pause_seconds=0, now=LATER)

        assert [item.status for item in result] == [BillStatus.PROCESSED] * 2
        assert seen == [[BillStatus.PROCESSED], [BillStatus.PROCESSED]]

    @pytest.mark.asyncio
    async def test_renders_in_order(self, transport_bill, grinding_bill):
        items = [
            UnifiedBill(BillType.GRINDING, send_to_ag(grinding_bill, now=SENT)),
            UnifiedBill(BillType.TRANSPORTATION, send_to_ag(transport_bill, now=SENT)),
        ]
        render = AsyncMock()

        await process_batch(items, render, pause_seconds=0, now=LATER)

        rendered = [call.args[0].id for call in render.await_args_list]
        assert rendered == ["grind-1", "bill-1"]

    @pytest.mark.asyncio
    async def test_same_id_in_both_kinds(self, transport_bill, grinding_bill):
        """Test bills of different kinds sharing an id are kept apart."""
        items = [
            UnifiedBill(BillType.TRANSPORTATION, send_to_ag(transport_bill, now=SENT)),
            UnifiedBill(BillType.GRINDING, send_to_ag(replace(grinding_bill, id="bill-1"), now=SENT)),
        ]

        result = await process_batch(items, AsyncMock(), pause_seconds=0, now=LATER)

        assert [item.bill_type for item in result] == [BillType.TRANSPORTATION, BillType.GRINDING]
        assert result[1].bill.bill_number == "(10/2025/1)"


def test_apply_updates_replaces_by_id(transport_bill):
    other = replace(transport_bill, id="bill-2")
    sent = send_to_ag(other, now=SENT)

    result = apply_updates([transport_bill, other], [sent])

    assert result == [transport_bill, sent]


class TestBatchPause:
    """Tests for the pause between renders of a batch."""

    def _items(self, transport_bill, grinding_bill):
        return [
            UnifiedBill(BillType.TRANSPORTATION, send_to_ag(transport_bill, now=SENT)),
            UnifiedBill(BillType.GRINDING, send_to_ag(grinding_bill, now=SENT)),
        ]

    def _patch_sleep(self, monkeypatch):
        sleep = AsyncMock()
        monkeypatch.setattr(lifecycle.asyncio, "sleep", sleep)
        return sleep

    @pytest.mark.asyncio
    async def test_pause_follows_each_render(self, monkeypatch, transport_bill, grinding_bill):
        """Test the order render, sleep, render, sleep."""
        sleep = self._patch_sleep(monkeypatch)
        render = AsyncMock()
        steps = MagicMock()
        steps.attach_mock(render, "render")
        steps.attach_mock(sleep, "sleep")

        await process_batch(self._items(transport_bill, grinding_bill), render, pause_seconds=2)

        assert [name for name, _, _ in steps.mock_calls] == ["render", "sleep", "render", "sleep"]
        assert [c.args for c in sleep.await_args_list] == [(2,), (2,)]

    @pytest.mark.asyncio
    async def test_default_pause(self, monkeypatch, transport_bill, grinding_bill):
        sleep = self._patch_sleep(monkeypatch)

        await process_batch(self._items(transport_bill, grinding_bill), AsyncMock())

        sleep.assert_awaited_with(1.5)
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_pause_from_settings(self, monkeypatch, transport_bill, grinding_bill):
        monkeypatch.setenv("PRINT_PAUSE_SECONDS", "0.25")
        sleep = self._patch_sleep(monkeypatch)

        await process_batch(self._items(transport_bill, grinding_bill), AsyncMock())

        sleep.assert_awaited_with(0.25)
