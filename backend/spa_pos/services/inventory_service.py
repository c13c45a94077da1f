# Overview: Inventory ledger; owns on-hand quantities and the adjustment log.

# backend/spa_pos/services/inventory_service.py
"""
Spa Inventory Invariants (authoritative)

Inventory model:
- InventoryItem.quantity_on_hand is the current-state projection. It is never
  recomputed from adjustments at read time.
- Every change to quantity_on_hand is paired with exactly one
  InventoryAdjustment row, committed in the same DB transaction.
- Adjustments are append-only: never updated or deleted.

Operations:
- receive: any authenticated role; quantity is a positive whole number.
- record_daily_count: any authenticated role; every entry is processed on its
  own. Invalid entries are skipped (and reported back), valid ones commit one
  by one. A daily_count row is written for each processed entry even when the
  count matches, so the count history is complete; quantity_on_hand is only
  rewritten when the count differs.
- adjust: admin-only manual correction.
- create_item: admin-only; initial stock is booked as a "received" adjustment.

Time:
- Adjustments are stamped with the business date from BusinessCalendar.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..business_calendar import BusinessCalendar, is_date_key
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidQuantityError,
    InvalidValueError,
    MissingInputError,
    NotFoundError,
)
from ..models import InventoryAdjustment, InventoryItem
from ..models.inventory import (
    ADJUSTMENT_DAILY_COUNT,
    ADJUSTMENT_KINDS,
    ADJUSTMENT_MANUAL,
    ADJUSTMENT_RECEIVED,
    ITEM_CATEGORIES,
)
from ..validation import as_amount, as_id, as_whole_number, clean_text
from .audit_service import AuditLog
from .concurrency import lock_for_update, run_with_retry
from .identity_service import Identity


DEFAULT_RECEIVE_REASON = "Received stock"
INITIAL_STOCK_REASON = "Initial stock"
DAILY_COUNT_REASON = "End-of-day inventory count"


@dataclass
class DailyCountResult:
    date_key: str
    results: list[dict] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    # set when a supplied business_date_key was malformed and today was used
    rejected_date_key: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "date_key": self.date_key,
            "results": self.results,
            "skipped": self.skipped,
            "rejected_date_key": self.rejected_date_key,
        }


class InventoryLedger:
    def __init__(self, session, calendar: BusinessCalendar, audit: AuditLog | None = None):
        self.session = session
        self.calendar = calendar
        self.audit = audit or AuditLog(session)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _load_item(self, item_id: int, *, lock: bool = False) -> Optional[InventoryItem]:
        query = self.session.query(InventoryItem).filter_by(id=item_id)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def _append(
        self,
        item: InventoryItem,
        *,
        kind: str,
        previous_qty: int,
        new_qty: int,
        reason: Optional[str],
        actor: Identity,
        date_key: str,
    ) -> InventoryAdjustment:
        adjustment = InventoryAdjustment(
            item_id=item.id,
            business_date_key=date_key,
            kind=kind,
            previous_qty=previous_qty,
            new_qty=new_qty,
            difference=new_qty - previous_qty,
            reason=reason,
            actor_id=actor.actor_id,
        )
        self.session.add(adjustment)
        return adjustment

    def _set_quantity(self, item: InventoryItem, new_qty: int, actor: Identity) -> None:
        item.quantity_on_hand = new_qty
        item.last_updated_by_user_id = actor.actor_id

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get_item(self, item_id) -> InventoryItem:
        parsed = as_id(item_id)
        item = self._load_item(parsed) if parsed is not None else None
        if item is None:
            raise NotFoundError("Item not found")
        return item

    def list_items(self, *, include_inactive: bool = True) -> list[InventoryItem]:
        query = self.session.query(InventoryItem)
        if not include_inactive:
            query = query.filter(InventoryItem.is_active.is_(True))
        return query.order_by(InventoryItem.name.asc()).all()

    def list_adjustments(
        self,
        *,
        item_id=None,
        business_date_key: Optional[str] = None,
        kind: Optional[str] = None,
        limit: int = 200,
    ) -> list[InventoryAdjustment]:
        query = self.session.query(InventoryAdjustment)

        if item_id is not None:
            parsed = as_id(item_id)
            if parsed is None:
                raise InvalidValueError("item_id must be a positive integer")
            query = query.filter(InventoryAdjustment.item_id == parsed)

        if business_date_key:
            if not is_date_key(business_date_key):
                raise InvalidValueError("business_date_key must be YYYY-MM-DD")
            query = query.filter(InventoryAdjustment.business_date_key == business_date_key)

        if kind:
            if kind not in ADJUSTMENT_KINDS:
                raise InvalidValueError(f"Invalid kind: {kind}")
            query = query.filter(InventoryAdjustment.kind == kind)

        return (
            query.order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def create_item(
        self,
        *,
        actor: Identity,
        name,
        sku,
        category=None,
        reorder_level=None,
        quantity_on_hand=None,
        unit_cost=None,
        unit_price=None,
    ) -> InventoryItem:
        """Admin-only. Initial stock is booked as a received adjustment."""
        if not actor.is_admin:
            raise ForbiddenError("Only admin can create inventory items")

        name = clean_text(name)
        sku = clean_text(sku)
        if not name or not sku:
            raise MissingInputError("Name and SKU are required")

        category = category or "other"
        if category not in ITEM_CATEGORIES:
            raise InvalidValueError(f"Invalid category: {category}")

        reorder = 0 if reorder_level is None else as_whole_number(reorder_level)
        if reorder is None or reorder < 0:
            raise InvalidQuantityError("reorder_level must be a non-negative whole number")

        initial_qty = 0 if quantity_on_hand is None else as_whole_number(quantity_on_hand)
        if initial_qty is None or initial_qty < 0:
            raise InvalidQuantityError("quantity_on_hand must be a non-negative whole number")

        prices = {}
        for key, raw in (("unit_cost", unit_cost), ("unit_price", unit_price)):
            if raw is None:
                prices[key] = None
                continue
            amount = as_amount(raw)
            if amount is None or amount < 0:
                raise InvalidValueError(f"{key} must be a non-negative number")
            prices[key] = amount

        if self.session.query(InventoryItem.id).filter_by(sku=sku).first():
            raise ConflictError("An item with this SKU already exists")

        item = InventoryItem(
            name=name,
            sku=sku,
            category=category,
            quantity_on_hand=0,
            reorder_level=reorder,
            unit_cost=prices["unit_cost"],
            unit_price=prices["unit_price"],
            last_updated_by_user_id=actor.actor_id,
        )

        try:
            self.session.add(item)
            self.session.flush()

            if initial_qty > 0:
                self._append(
                    item,
                    kind=ADJUSTMENT_RECEIVED,
                    previous_qty=0,
                    new_qty=initial_qty,
                    reason=INITIAL_STOCK_REASON,
                    actor=actor,
                    date_key=self.calendar.today(),
                )
                item.quantity_on_hand = initial_qty

            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("An item with this SKU already exists")

        self.audit.record(
            "action",
            f"Created inventory item {item.sku} ({item.name})",
            actor_id=actor.actor_id,
            path="/api/inventory/items",
            context={"item_id": item.id, "sku": item.sku, "initial_qty": initial_qty},
        )
        return item

    def receive(self, item_id, quantity, reason: Optional[str] = None, *, actor: Identity) -> InventoryItem:
        """
        Add delivered stock: new_qty = previous_qty + quantity.

        Raises:
            InvalidQuantityError: quantity is not a positive whole number
            NotFoundError: item_id missing or no such item
        """
        qty = as_whole_number(quantity)
        if qty is None or qty <= 0:
            raise InvalidQuantityError("quantity must be a positive whole number")

        parsed_id = as_id(item_id)
        if parsed_id is None:
            raise NotFoundError("Item not found")

        reason = clean_text(reason) or DEFAULT_RECEIVE_REASON
        date_key = self.calendar.today()

        def _op():
            item = self._load_item(parsed_id, lock=True)
            if item is None:
                raise NotFoundError("Item not found")

            previous_qty = item.quantity_on_hand or 0
            new_qty = previous_qty + qty

            self._set_quantity(item, new_qty, actor)
            adjustment = self._append(
                item,
                kind=ADJUSTMENT_RECEIVED,
                previous_qty=previous_qty,
                new_qty=new_qty,
                reason=reason,
                actor=actor,
                date_key=date_key,
            )
            self.session.commit()
            return item, adjustment

        item, adjustment = run_with_retry(self.session, _op)

        self.audit.record(
            "action",
            f"Received {qty} x {item.sku}",
            actor_id=actor.actor_id,
            path="/api/inventory/receive",
            context={
                "item_id": item.id,
                "adjustment_id": adjustment.id,
                "previous_qty": adjustment.previous_qty,
                "new_qty": adjustment.new_qty,
                "business_date_key": date_key,
            },
        )
        return item

    def adjust(self, item_id, quantity_delta, reason, *, actor: Identity) -> InventoryItem:
        """Admin-only manual correction (breakage, spoilage, miscount)."""
        if not actor.is_admin:
            raise ForbiddenError("Only admin can make manual inventory adjustments")

        if item_id is None or item_id == "":
            raise MissingInputError("item_id is required")

        delta = as_whole_number(quantity_delta)
        if delta is None or delta == 0:
            raise InvalidQuantityError("quantity_delta must be a non-zero whole number")

        reason = clean_text(reason)
        if not reason:
            raise MissingInputError("reason is required for manual adjustments")

        parsed_id = as_id(item_id)
        if parsed_id is None:
            raise NotFoundError("Item not found")

        date_key = self.calendar.today()

        def _op():
            item = self._load_item(parsed_id, lock=True)
            if item is None:
                raise NotFoundError("Item not found")

            previous_qty = item.quantity_on_hand or 0
            new_qty = previous_qty + delta
            if new_qty < 0:
                raise InvalidQuantityError(
                    "Adjustment would make quantity on hand negative",
                    details={"on_hand": previous_qty, "quantity_delta": delta},
                )

            self._set_quantity(item, new_qty, actor)
            adjustment = self._append(
                item,
                kind=ADJUSTMENT_MANUAL,
                previous_qty=previous_qty,
                new_qty=new_qty,
                reason=reason,
                actor=actor,
                date_key=date_key,
            )
            self.session.commit()
            return item, adjustment

        item, adjustment = run_with_retry(self.session, _op)

        self.audit.record(
            "action",
            f"Adjusted {item.sku} by {delta}: {reason}",
            actor_id=actor.actor_id,
            path="/api/inventory/adjust",
            context={"item_id": item.id, "adjustment_id": adjustment.id, "difference": delta},
        )
        return item

    def record_daily_count(
        self,
        entries,
        *,
        actor: Identity,
        business_date_key: Optional[str] = None,
    ) -> DailyCountResult:
        """
        End-of-day physical count.

        Each entry is {"item_id": ..., "actual_qty": ...}. Entries are
        processed and committed independently; a bad entry is skipped and
        listed in the result, it never aborts the batch. A malformed
        business_date_key falls back to today and is echoed back as
        rejected_date_key.
        """
        if not isinstance(entries, (list, tuple)) or len(entries) == 0:
            raise MissingInputError("counts array is required")

        rejected_date_key = None
        if business_date_key and is_date_key(business_date_key):
            date_key = business_date_key
        else:
            if business_date_key:
                rejected_date_key = str(business_date_key)
                current_app.logger.warning(
                    "Daily count: ignoring malformed business_date_key %r", business_date_key
                )
            date_key = self.calendar.today()

        outcome = DailyCountResult(date_key=date_key, rejected_date_key=rejected_date_key)

        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                outcome.skipped.append({"index": index, "item_id": None, "reason": "invalid entry"})
                continue

            raw_item_id = entry.get("item_id")
            item_id = as_id(raw_item_id)
            if item_id is None:
                outcome.skipped.append({"index": index, "item_id": raw_item_id, "reason": "missing item_id"})
                continue

            actual_qty = as_whole_number(entry.get("actual_qty"))
            if actual_qty is None or actual_qty < 0:
                outcome.skipped.append({
                    "index": index,
                    "item_id": raw_item_id,
                    "reason": "actual_qty must be a non-negative whole number",
                })
                continue

            result = run_with_retry(
                self.session,
                lambda: self._count_one(item_id, actual_qty, actor=actor, date_key=date_key),
            )
            if result is None:
                outcome.skipped.append({"index": index, "item_id": raw_item_id, "reason": "item not found"})
                continue

            outcome.results.append(result)

        self.audit.record(
            "action",
            f"Recorded daily count for {len(outcome.results)} item(s) on {date_key}",
            actor_id=actor.actor_id,
            path="/api/inventory/daily",
            context={
                "business_date_key": date_key,
                "rejected_date_key": rejected_date_key,
                "counted": len(outcome.results),
                "skipped": len(outcome.skipped),
                "changed": sum(1 for r in outcome.results if r["difference"] != 0),
            },
        )
        return outcome

    def _count_one(self, item_id: int, actual_qty: int, *, actor: Identity, date_key: str) -> Optional[dict]:
        item = self._load_item(item_id, lock=True)
        if item is None:
            self.session.rollback()
            return None

        previous_qty = item.quantity_on_hand or 0
        difference = actual_qty - previous_qty

        if difference != 0:
            self._set_quantity(item, actual_qty, actor)

        self._append(
            item,
            kind=ADJUSTMENT_DAILY_COUNT,
            previous_qty=previous_qty,
            new_qty=actual_qty,
            reason=DAILY_COUNT_REASON,
            actor=actor,
            date_key=date_key,
        )
        self.session.commit()

        return {
            "item_id": item.id,
            "previous_qty": previous_qty,
            "new_qty": actual_qty,
            "difference": difference,
        }
