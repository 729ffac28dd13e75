"""Latest-row selection and ordering over the status ledger"""
from datetime import datetime, timedelta, timezone

import pytest

from gatepass.domain.enums import Stage, StageState
from gatepass.domain.errors import StatusNotFoundError
from gatepass.domain.models import StageRecord, StatusRow
from gatepass.engine.ledger import (
    StatusLedger, latest_per_reference, select_latest, sort_newest
)
from gatepass.repositories.status_repo import StatusRepository

T0 = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)


def row(status_id, reference, created, updated=None, state=StageState.PENDING, stage=Stage.EXECUTIVE):
    return StatusRow(
        status_id=status_id,
        reference_number=reference,
        request_id=f"GPR-{reference}",
        stages={stage.value: StageRecord(state=state)},
        created_at=created,
        updated_at=updated,
    )


class TestLatestPerReference:

    def test_keeps_newest_updated_row_per_reference(self):
        rows = [
            row("a1", "REQ-A", T0, T0 + timedelta(minutes=5)),
            row("a2", "REQ-A", T0, T0 + timedelta(minutes=9)),
            row("b1", "REQ-B", T0, T0 + timedelta(minutes=1)),
        ]
        latest = {r.reference_number: r.status_id for r in latest_per_reference(rows)}
        assert latest == {"REQ-A": "a2", "REQ-B": "b1"}

    def test_falls_back_to_created_at(self):
        rows = [
            row("a1", "REQ-A", T0 + timedelta(minutes=3)),
            row("a2", "REQ-A", T0),
        ]
        assert select_latest(rows).status_id == "a1"

    def test_created_at_breaks_updated_at_ties(self):
        same = T0 + timedelta(hours=1)
        rows = [
            row("a1", "REQ-A", T0, same),
            row("a2", "REQ-A", T0 + timedelta(minutes=1), same),
        ]
        assert select_latest(rows).status_id == "a2"

    def test_full_tie_keeps_first_seen(self):
        rows = [row("a1", "REQ-A", T0, T0), row("a2", "REQ-A", T0, T0)]
        assert select_latest(rows).status_id == "a1"

    def test_naive_timestamps_compare_as_utc(self):
        rows = [
            row("a1", "REQ-A", T0, (T0 + timedelta(minutes=10)).replace(tzinfo=None)),
            row("a2", "REQ-A", T0, T0 + timedelta(minutes=5)),
        ]
        assert select_latest(rows).status_id == "a1"

    def test_select_latest_empty(self):
        assert select_latest([]) is None


def test_sort_newest_is_descending_and_stable():
    rows = [
        row("a", "REQ-A", T0, T0 + timedelta(minutes=1)),
        row("b", "REQ-B", T0, T0 + timedelta(minutes=3)),
        row("c", "REQ-C", T0, T0 + timedelta(minutes=1)),
    ]
    assert [r.status_id for r in sort_newest(rows)] == ["b", "a", "c"]


class TestStatusLedger:

    def test_state_filter_applies_after_selection(self, db):
        statuses = StatusRepository()
        # Older row still PENDING, newer row has moved on
        statuses.create_row(row("a1", "REQ-A", T0, T0 + timedelta(minutes=1)))
        statuses.create_row(row("a2", "REQ-A", T0, T0 + timedelta(minutes=2), state=StageState.APPROVED))
        statuses.create_row(row("b1", "REQ-B", T0, T0 + timedelta(minutes=3)))

        ledger = StatusLedger()
        pending = ledger.current_rows(Stage.EXECUTIVE, StageState.PENDING)
        approved = ledger.current_rows(Stage.EXECUTIVE, StageState.APPROVED)

        assert [r.status_id for r in pending] == ["b1"]
        assert [r.status_id for r in approved] == ["a2"]

    def test_latest_or_raise_without_rows(self, db):
        with pytest.raises(StatusNotFoundError):
            StatusLedger().latest_or_raise("REQ-NOPE")

    def test_latest_or_raise_without_request(self, db):
        StatusRepository().create_row(row("a1", "REQ-A", T0))
        with pytest.raises(StatusNotFoundError):
            StatusLedger().latest_or_raise("REQ-A")

    def test_first_created_at(self, db):
        statuses = StatusRepository()
        statuses.create_row(row("a1", "REQ-A", T0 + timedelta(days=1)))
        statuses.create_row(row("a2", "REQ-A", T0))
        assert StatusLedger().first_created_at("REQ-A") == T0
