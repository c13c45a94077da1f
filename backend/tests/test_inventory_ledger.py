# Overview: Pytest coverage for the inventory ledger.

"""
Inventory Ledger Tests

Every quantity change must land in inventory_adjustments together with the
new quantity_on_hand; invalid input must leave both untouched.
"""

import logging

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError
from spa_pos.services.concurrency import run_with_retry
from spa_pos.services.inventory_service import InventoryLedger
from spa_pos.errors import (
    ConflictError,
    ForbiddenError,
    InvalidQuantityError,
    InvalidValueError,
    MissingInputError,
    NotFoundError,
)
from spa_pos.models import AuditEvent, InventoryAdjustment, InventoryItem


def _adjustments(db_session, item_id, kind=None):
    query = db_session.query(InventoryAdjustment).filter_by(item_id=item_id)
    if kind:
        query = query.filter_by(kind=kind)
    return query.order_by(InventoryAdjustment.id.asc()).all()


class TestReceive:
    def test_receive_adds_quantity_and_logs_one_adjustment(self, db_session, inventory, oil, staff):
        """quantity_on_hand == previous + q with exactly one received adjustment."""
        item = inventory.receive(oil.id, 3, actor=staff)

        assert item.quantity_on_hand == 7
        assert item.last_updated_by_user_id == staff.actor_id

        adjustments = _adjustments(db_session, oil.id)
        assert len(adjustments) == 1
        adj = adjustments[0]
        assert adj.kind == "received"
        assert adj.previous_qty == 4
        assert adj.new_qty == 7
        assert adj.difference == 3
        assert adj.actor_id == staff.actor_id
        assert adj.business_date_key == "2025-11-25"
        assert adj.reason == "Received stock"

    def test_receive_keeps_custom_reason(self, db_session, inventory, oil, admin):
        inventory.receive(oil.id, 2, "Supplier delivery #42", actor=admin)

        assert _adjustments(db_session, oil.id)[0].reason == "Supplier delivery #42"

    def test_receive_accepts_integral_float(self, inventory, oil, staff):
        item = inventory.receive(oil.id, 2.0, actor=staff)
        assert item.quantity_on_hand == 6

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, True, "3", None])
    def test_receive_rejects_invalid_quantity(self, db_session, inventory, oil, staff, quantity):
        with pytest.raises(InvalidQuantityError):
            inventory.receive(oil.id, quantity, actor=staff)

        db_session.refresh(oil)
        assert oil.quantity_on_hand == 4
        assert _adjustments(db_session, oil.id) == []

    def test_receive_unknown_item(self, inventory, staff):
        with pytest.raises(NotFoundError):
            inventory.receive(9999, 1, actor=staff)

    @pytest.mark.parametrize("item_id", [None, "", "abc"])
    def test_receive_without_usable_item_id_is_not_found(self, inventory, staff, item_id):
        with pytest.raises(NotFoundError):
            inventory.receive(item_id, 1, actor=staff)

    def test_receive_writes_audit_event(self, db_session, inventory, oil, staff):
        inventory.receive(oil.id, 1, actor=staff)

        event = db_session.query(AuditEvent).filter_by(kind="action").one()
        assert event.actor_id == staff.actor_id
        assert event.context["item_id"] == oil.id
        assert event.context["new_qty"] == 5

    def test_audit_failure_does_not_undo_receive(self, db_session, inventory, oil, staff, monkeypatch):
        """A broken audit sink is logged and swallowed; the receive stays committed."""
        def _boom(**kwargs):
            raise RuntimeError("audit store offline")

        monkeypatch.setattr("spa_pos.services.audit_service.AuditEvent", _boom)

        item = inventory.receive(oil.id, 5, actor=staff)

        assert item.quantity_on_hand == 9
        db_session.expire_all()
        assert db_session.get(InventoryItem, oil.id).quantity_on_hand == 9
        assert len(_adjustments(db_session, oil.id)) == 1
        assert db_session.query(AuditEvent).count() == 0


class TestDailyCount:
    def test_count_rewrites_quantity_when_different(self, db_session, inventory, oil, staff):
        outcome = inventory.record_daily_count([{"item_id": oil.id, "actual_qty": 1}], actor=staff)

        assert outcome.date_key == "2025-11-25"
        assert outcome.results == [
            {"item_id": oil.id, "previous_qty": 4, "new_qty": 1, "difference": -3},
        ]
        assert outcome.skipped == []

        db_session.refresh(oil)
        assert oil.quantity_on_hand == 1

        adj = _adjustments(db_session, oil.id, kind="daily_count")
        assert len(adj) == 1
        assert adj[0].difference == -3

    def test_count_history_is_kept_when_nothing_changes(self, db_session, inventory, oil, staff):
        """Same count twice: difference 0 both times, two log entries, no item rewrite."""
        version_before = oil.version_id

        first = inventory.record_daily_count([{"item_id": oil.id, "actual_qty": 4}], actor=staff)
        second = inventory.record_daily_count([{"item_id": oil.id, "actual_qty": 4}], actor=staff)

        assert first.results[0]["difference"] == 0
        assert second.results[0]["difference"] == 0

        adj = _adjustments(db_session, oil.id, kind="daily_count")
        assert len(adj) == 2
        assert all(a.previous_qty == 4 and a.new_qty == 4 for a in adj)

        db_session.refresh(oil)
        assert oil.quantity_on_hand == 4
        assert oil.version_id == version_before

    @pytest.mark.parametrize("actual_qty", [-1, "five", None, 2.5, False])
    def test_invalid_quantity_entries_are_skipped(self, db_session, inventory, oil, staff, actual_qty):
        outcome = inventory.record_daily_count(
            [{"item_id": oil.id, "actual_qty": actual_qty}],
            actor=staff,
        )

        assert outcome.results == []
        assert outcome.skipped == [{
            "index": 0,
            "item_id": oil.id,
            "reason": "actual_qty must be a non-negative whole number",
        }]

        db_session.refresh(oil)
        assert oil.quantity_on_hand == 4
        assert _adjustments(db_session, oil.id) == []

    def test_batch_processes_entries_independently(self, db_session, inventory, oil, towels, staff):
        outcome = inventory.record_daily_count(
            [
                {"item_id": oil.id, "actual_qty": 6},
                {"item_id": 9999, "actual_qty": 1},
                "not-an-entry",
                {"actual_qty": 3},
                {"item_id": towels.id, "actual_qty": -2},
                {"item_id": str(towels.id), "actual_qty": 8},
            ],
            actor=staff,
        )

        assert [r["item_id"] for r in outcome.results] == [oil.id, towels.id]
        assert [(s["index"], s["reason"]) for s in outcome.skipped] == [
            (1, "item not found"),
            (2, "invalid entry"),
            (3, "missing item_id"),
            (4, "actual_qty must be a non-negative whole number"),
        ]

        db_session.refresh(oil)
        db_session.refresh(towels)
        assert oil.quantity_on_hand == 6
        assert towels.quantity_on_hand == 8

    def test_supplied_business_date_is_used(self, db_session, inventory, oil, staff):
        outcome = inventory.record_daily_count(
            [{"item_id": oil.id, "actual_qty": 4}],
            actor=staff,
            business_date_key="2025-11-24",
        )

        assert outcome.date_key == "2025-11-24"
        assert _adjustments(db_session, oil.id)[0].business_date_key == "2025-11-24"

    @pytest.mark.parametrize("business_date_key", ["24/11/2025", "25-11-2025", "2025-02-30"])
    def test_malformed_business_date_falls_back_to_today(self, db_session, inventory, oil, staff, business_date_key):
        outcome = inventory.record_daily_count(
            [{"item_id": oil.id, "actual_qty": 3}],
            actor=staff,
            business_date_key=business_date_key,
        )

        assert outcome.date_key == "2025-11-25"
        assert outcome.rejected_date_key == business_date_key
        assert [r["new_qty"] for r in outcome.results] == [3]
        assert _adjustments(db_session, oil.id)[0].business_date_key == "2025-11-25"

        db_session.refresh(oil)
        assert oil.quantity_on_hand == 3

    @pytest.mark.parametrize("entries", [[], None, {"item_id": 1, "actual_qty": 1}])
    def test_missing_entries(self, inventory, staff, entries):
        with pytest.raises(MissingInputError):
            inventory.record_daily_count(entries, actor=staff)


class TestCreateItem:
    def test_initial_stock_is_booked_as_received(self, db_session, towels, admin):
        assert towels.quantity_on_hand == 10

        adj = _adjustments(db_session, towels.id)
        assert len(adj) == 1
        assert adj[0].kind == "received"
        assert adj[0].previous_qty == 0
        assert adj[0].difference == 10
        assert adj[0].reason == "Initial stock"

    def test_zero_initial_stock_has_no_history(self, db_session, inventory, admin):
        item = inventory.create_item(actor=admin, name="Ginger tea", sku="DRK-TEA", category="drink")

        assert item.quantity_on_hand == 0
        assert _adjustments(db_session, item.id) == []

    def test_staff_cannot_create_items(self, inventory, staff):
        with pytest.raises(ForbiddenError):
            inventory.create_item(actor=staff, name="Slippers", sku="DSP-SLIP")

    def test_duplicate_sku(self, inventory, towels, admin):
        with pytest.raises(ConflictError):
            inventory.create_item(actor=admin, name="Other towel", sku="TWL-BATH")

    def test_invalid_category(self, inventory, admin):
        with pytest.raises(InvalidValueError):
            inventory.create_item(actor=admin, name="Candle", sku="CND-1", category="decor")

    def test_name_and_sku_required(self, inventory, admin):
        with pytest.raises(MissingInputError):
            inventory.create_item(actor=admin, name="  ", sku="X-1")

    def test_negative_initial_quantity(self, inventory, admin):
        with pytest.raises(InvalidQuantityError):
            inventory.create_item(actor=admin, name="Robe", sku="RB-1", quantity_on_hand=-5)


class TestAdjust:
    def test_admin_correction(self, db_session, inventory, towels, admin):
        item = inventory.adjust(towels.id, -3, "Torn during laundry", actor=admin)

        assert item.quantity_on_hand == 7
        adj = _adjustments(db_session, towels.id, kind="adjustment")
        assert len(adj) == 1
        assert adj[0].difference == -3
        assert adj[0].reason == "Torn during laundry"

    def test_staff_cannot_adjust(self, inventory, towels, staff):
        with pytest.raises(ForbiddenError):
            inventory.adjust(towels.id, -1, "Lost", actor=staff)

    def test_cannot_go_negative(self, db_session, inventory, towels, admin):
        with pytest.raises(InvalidQuantityError):
            inventory.adjust(towels.id, -11, "Write-off", actor=admin)

        db_session.rollback()
        db_session.refresh(towels)
        assert towels.quantity_on_hand == 10

    def test_zero_delta(self, inventory, towels, admin):
        with pytest.raises(InvalidQuantityError):
            inventory.adjust(towels.id, 0, "Nothing", actor=admin)

    def test_reason_required(self, inventory, towels, admin):
        with pytest.raises(MissingInputError):
            inventory.adjust(towels.id, 2, "", actor=admin)


class TestListing:
    def test_list_items_sorted_by_name(self, inventory, oil, towels):
        assert [i.sku for i in inventory.list_items()] == ["TWL-BATH", "OIL-LAV"]

    def test_list_items_can_hide_inactive(self, db_session, inventory, oil, towels):
        oil.is_active = False
        db_session.commit()

        assert [i.sku for i in inventory.list_items(include_inactive=False)] == ["TWL-BATH"]

    def test_list_adjustments_filters(self, inventory, oil, towels, staff):
        inventory.receive(oil.id, 1, actor=staff)
        inventory.record_daily_count([{"item_id": oil.id, "actual_qty": 5}], actor=staff)

        counts = inventory.list_adjustments(kind="daily_count")
        assert [a.item_id for a in counts] == [oil.id]

        oil_history = inventory.list_adjustments(item_id=oil.id)
        assert [a.kind for a in oil_history] == ["daily_count", "received"]

    def test_list_adjustments_rejects_unknown_kind(self, inventory):
        with pytest.raises(InvalidValueError):
            inventory.list_adjustments(kind="theft")


class TestConcurrentWrites:
    @pytest.fixture(autouse=True)
    def no_backoff(self, monkeypatch):
        delays = []
        monkeypatch.setattr("spa_pos.services.concurrency.time.sleep", delays.append)
        return delays

    def test_stale_write_is_retried(self, db_session, caplog, no_backoff):
        calls = []

        def _op():
            calls.append(1)
            if len(calls) == 1:
                raise StaleDataError("version mismatch")
            return "ok"

        with caplog.at_level(logging.WARNING, logger="spa_pos"):
            assert run_with_retry(db_session, _op) == "ok"

        assert len(calls) == 2
        assert no_backoff == [0.1]
        assert "Concurrent write conflict (StaleDataError), retry 1/2" in caplog.text

    def test_gives_up_after_three_attempts(self, db_session, no_backoff):
        calls = []

        def _op():
            calls.append(1)
            raise OperationalError("UPDATE inventory_items", {}, Exception("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(db_session, _op)

        assert len(calls) == 3
        assert no_backoff == [0.1, 0.2]

    def test_ledger_errors_are_not_retried(self, db_session, no_backoff):
        calls = []

        def _op():
            calls.append(1)
            raise NotFoundError("Item not found")

        with pytest.raises(NotFoundError):
            run_with_retry(db_session, _op)

        assert len(calls) == 1

    def test_receive_rereads_after_version_conflict(self, db_session, inventory, oil, staff, monkeypatch):
        """Another writer bumps the row version between our read and our commit."""
        original_load = InventoryLedger._load_item
        loads = []

        def _load_then_bump(self, item_id, *, lock=False):
            item = original_load(self, item_id, lock=lock)
            loads.append(item_id)
            if len(loads) == 1:
                db_session.execute(
                    text("UPDATE inventory_items SET version_id = version_id + 1 WHERE id = :id"),
                    {"id": item_id},
                )
            return item

        monkeypatch.setattr(InventoryLedger, "_load_item", _load_then_bump)

        item = inventory.receive(oil.id, 3, actor=staff)

        assert len(loads) == 2
        assert item.quantity_on_hand == 7
        received = _adjustments(db_session, oil.id, kind="received")
        assert [(a.previous_qty, a.new_qty) for a in received] == [(4, 7)]

    def test_failed_commit_leaves_item_and_log_untouched(self, db_session, inventory, oil, staff, monkeypatch):
        session = db_session()

        def _fail_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "commit", _fail_commit)

        with pytest.raises(OperationalError):
            inventory.receive(oil.id, 3, actor=staff)

        monkeypatch.undo()
        db_session.expire_all()
        assert db_session.get(InventoryItem, oil.id).quantity_on_hand == 4
        assert _adjustments(db_session, oil.id) == []
