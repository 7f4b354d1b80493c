"""
Tests for the charge stores.

The Google Sheets store runs against a fake worksheet that keeps rows
as lists of strings, the way gspread returns them.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from gspread.utils import a1_to_rowcol

from charge_scheduler.models.audit import AuditEventBuilder, AuditEventType
from charge_scheduler.models.charge import (
    Charge,
    ChargeStatus,
    ChargeUpdate,
    Frequency,
    NewCharge,
    Recurrence,
)
from charge_scheduler.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsChargeStore,
    InMemoryAuditStorage,
    InMemoryChargeStore,
    NotFoundError,
    StorageError,
)
from charge_scheduler.services.storage.google_sheets import AUDIT_COLUMNS, CHARGE_COLUMNS

from conftest import FIXED_NOW, make_new_charge, run


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the stores."""

    def __init__(self, header: list[str]):
        self.rows: list[list[str]] = [list(header)]
        self.batch_requests: list[list[dict]] = []
        self.fail_batch_update = False

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append([str(v) for v in values])

    def batch_update(self, data, value_input_option=None):
        # One API call: applied whole or not at all
        if self.fail_batch_update:
            raise RuntimeError("quota exceeded")
        self.batch_requests.append(data)
        for cell in data:
            row, col = a1_to_rowcol(cell["range"])
            target = self.rows[row - 1]
            while len(target) < col:
                target.append("")
            target[col - 1] = cell["values"][0][0]

    def delete_rows(self, index: int):
        del self.rows[index - 1]


class FakeSheetsClient:

    def __init__(self):
        self.charges_sheet = FakeWorksheet(CHARGE_COLUMNS)
        self.audit_sheet = FakeWorksheet(AUDIT_COLUMNS)

    def get_charges_sheet(self) -> FakeWorksheet:
        return self.charges_sheet

    def get_audit_sheet(self) -> FakeWorksheet:
        return self.audit_sheet


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def sheets_store(sheets_client) -> GoogleSheetsChargeStore:
    return GoogleSheetsChargeStore(sheets_client)


class TestInMemoryChargeStore:

    def test_list_is_inclusive_of_both_ends(self):
        store = InMemoryChargeStore()
        for day in (9, 10, 16, 17):
            run(store.insert(make_new_charge(due_date=date(2024, 3, day))))

        listed = run(store.list_by_due_date_range(date(2024, 3, 10), date(2024, 3, 16)))

        assert [c.due_date for c in listed] == [date(2024, 3, 10), date(2024, 3, 16)]

    def test_update_missing_raises(self):
        store = InMemoryChargeStore()
        with pytest.raises(NotFoundError):
            run(store.update(uuid4(), ChargeUpdate.settle(FIXED_NOW)))

    def test_delete_missing_is_a_no_op(self):
        store = InMemoryChargeStore()
        run(store.delete(uuid4()))
        assert len(store) == 0

    def test_transaction_rolls_back_on_error(self):
        store = InMemoryChargeStore()
        charge = run(store.insert(make_new_charge()))

        async def failing_block():
            async with store.transaction():
                await store.update(charge.id, ChargeUpdate.settle(FIXED_NOW))
                await store.insert(make_new_charge())
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            run(failing_block())

        assert len(store) == 1
        assert run(store.get(charge.id)).status == ChargeStatus.PENDING

    def test_transaction_commits(self):
        store = InMemoryChargeStore()
        charge = run(store.insert(make_new_charge()))

        async def block():
            async with store.transaction():
                await store.update(charge.id, ChargeUpdate.settle(FIXED_NOW))
                await store.insert(make_new_charge())

        run(block())

        assert len(store) == 2
        assert run(store.get(charge.id)).status == ChargeStatus.SETTLED


class TestInMemoryAuditStorage:

    def test_recent_events_newest_first(self):
        storage = InMemoryAuditStorage()
        charge_id = uuid4()
        first = AuditEventBuilder.charge_created(charge_id, "A", "1.00", "2024-03-10")
        second = AuditEventBuilder.charge_deleted(charge_id).model_copy(
            update={"timestamp": first.timestamp + timedelta(seconds=1)}
        )
        run(storage.append_event(first))
        run(storage.append_event(second))

        recent = run(storage.get_recent_events(limit=1))
        by_entity = run(storage.get_events_by_entity("charge", charge_id))

        assert recent == [second]
        assert [e.event_id for e in by_entity] == [first.event_id, second.event_id]


class TestGoogleSheetsChargeStore:

    def test_insert_writes_one_row(self, sheets_store, sheets_client):
        charge = run(sheets_store.insert(make_new_charge(
            amount="1650.10", frequency=Frequency.WEEKLY,
        )))

        rows = sheets_client.charges_sheet.rows
        assert len(rows) == 2
        row = dict(zip(CHARGE_COLUMNS, rows[1]))
        assert row["id"] == str(charge.id)
        assert row["amount"] == "1650.10"
        assert row["due_date"] == "2024-03-10"
        assert row["status"] == "pending"
        assert row["settled_at"] == ""
        assert row["frequency"] == "weekly"

    def test_row_round_trip_keeps_exact_values(self, sheets_store):
        original = run(sheets_store.insert(NewCharge(
            client_name="Ana Lima",
            reference="Apartment 12",
            amount=Decimal("0.10"),
            due_date=date(2024, 2, 29),
            due_time="09:30",
            recurrence=Recurrence(
                is_recurring=True,
                frequency=Frequency.MONTHLY,
                anchor_day_of_month=31,
            ),
            predecessor_id=uuid4(),
        )))

        loaded = run(sheets_store.get(original.id))

        assert loaded == original
        assert loaded.amount == Decimal("0.10")
        assert loaded.due_date == date(2024, 2, 29)

    def test_list_filters_by_range(self, sheets_store):
        for day in (9, 10, 16, 17):
            run(sheets_store.insert(make_new_charge(due_date=date(2024, 3, day))))

        listed = run(sheets_store.list_by_due_date_range(
            date(2024, 3, 10), date(2024, 3, 16),
        ))

        assert [c.due_date for c in listed] == [date(2024, 3, 10), date(2024, 3, 16)]

    def test_update_writes_only_changed_cells(self, sheets_store, sheets_client):
        """Settling touches the status and settled_at cells of one row, in one request."""
        run(sheets_store.insert(make_new_charge(due_date=date(2024, 3, 11))))
        target = run(sheets_store.insert(make_new_charge(due_date=date(2024, 3, 12))))

        run(sheets_store.update(target.id, ChargeUpdate.settle(FIXED_NOW)))

        requests = sheets_client.charges_sheet.batch_requests
        assert len(requests) == 1
        assert sorted((c["range"], c["values"]) for c in requests[0]) == [
            ("H3", [["settled"]]),
            ("I3", [[FIXED_NOW.isoformat()]]),
        ]
        assert CHARGE_COLUMNS[7:9] == ["status", "settled_at"]

        loaded = run(sheets_store.get(target.id))
        assert loaded.status == ChargeStatus.SETTLED
        assert loaded.settled_at == FIXED_NOW

    def test_failed_update_leaves_row_readable(self, sheets_store, sheets_client):
        """A rejected settle write leaves the charge pending and still listed."""
        charge = run(sheets_store.insert(make_new_charge()))
        sheets_client.charges_sheet.fail_batch_update = True

        with pytest.raises(StorageError):
            run(sheets_store.update(charge.id, ChargeUpdate.settle(FIXED_NOW)))

        listed = run(sheets_store.list_by_due_date_range(
            date(2024, 3, 1), date(2024, 3, 31),
        ))
        assert [c.id for c in listed] == [charge.id]
        assert listed[0].status == ChargeStatus.PENDING
        assert listed[0].settled_at is None

    def test_unsettle_clears_settled_at(self, sheets_store):
        charge = run(sheets_store.insert(make_new_charge()))
        run(sheets_store.update(charge.id, ChargeUpdate.settle(FIXED_NOW)))

        run(sheets_store.update(charge.id, ChargeUpdate.unsettle()))

        loaded = run(sheets_store.get(charge.id))
        assert loaded.status == ChargeStatus.PENDING
        assert loaded.settled_at is None

    def test_update_missing_raises_not_found(self, sheets_store):
        with pytest.raises(NotFoundError):
            run(sheets_store.update(uuid4(), ChargeUpdate.settle(FIXED_NOW)))

    def test_delete_removes_row(self, sheets_store, sheets_client):
        keep = run(sheets_store.insert(make_new_charge()))
        drop = run(sheets_store.insert(make_new_charge()))

        run(sheets_store.delete(drop.id))
        run(sheets_store.delete(uuid4()))

        assert len(sheets_client.charges_sheet.rows) == 2
        assert run(sheets_store.get(keep.id)) is not None
        assert run(sheets_store.get(drop.id)) is None

    def test_malformed_rows_are_skipped(self, sheets_store, sheets_client):
        good = run(sheets_store.insert(make_new_charge()))
        sheet = sheets_client.charges_sheet
        sheet.rows.append([str(uuid4()), "not-a-timestamp"])
        sheet.rows.append([])
        bad_amount = list(sheet.rows[1])
        bad_amount[0] = str(uuid4())
        bad_amount[CHARGE_COLUMNS.index("amount")] = "12,50"
        sheet.rows.append(bad_amount)

        listed = run(sheets_store.list_by_due_date_range(
            date(2024, 3, 1), date(2024, 3, 31),
        ))

        assert [c.id for c in listed] == [good.id]

    def test_settled_row_loads_with_timestamp(self, sheets_store):
        charge = Charge.from_new(NewCharge(
            client_name="Test",
            reference="Test",
            amount=Decimal("10"),
            due_date=date(2024, 3, 10),
            status=ChargeStatus.SETTLED,
            settled_at=datetime(2024, 3, 10, 8, tzinfo=timezone.utc),
        ))
        row = sheets_store._charge_to_row(charge)
        assert sheets_store._row_to_charge(row) == charge


class TestGoogleSheetsAuditStorage:

    def test_append_and_read_back(self, sheets_client):
        storage = GoogleSheetsAuditStorage(sheets_client)
        charge_id = uuid4()
        event = AuditEventBuilder.charge_settled(charge_id, FIXED_NOW.isoformat())

        assert run(storage.append_event(event)) is True

        events = run(storage.get_events_by_entity("charge", charge_id))
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.CHARGE_SETTLED
        assert events[0].details == event.details


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
