from __future__ import annotations

from ..extensions import db
from spa_pos.time_utils import to_utc_z


ITEM_CATEGORIES = ("oil", "towel", "disposable", "drink", "other")

ADJUSTMENT_RECEIVED = "received"
ADJUSTMENT_DAILY_COUNT = "daily_count"
ADJUSTMENT_MANUAL = "adjustment"
ADJUSTMENT_KINDS = (ADJUSTMENT_RECEIVED, ADJUSTMENT_DAILY_COUNT, ADJUSTMENT_MANUAL)


class InventoryItem(db.Model):
    """
    Consumable stock item (oils, towels, disposables, drinks).

    quantity_on_hand is the single current-state projection. It is only
    written by InventoryLedger, together with an InventoryAdjustment row in
    the same DB transaction; it is never recomputed from the log.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_name", "name"),
        db.Index("ix_inventory_items_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(16), nullable=False, default="other")

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)
    unit_price = db.Column(db.Numeric(12, 2), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_updated_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} on_hand={self.quantity_on_hand}>"

    @property
    def needs_reorder(self) -> bool:
        return self.quantity_on_hand <= (self.reorder_level or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "quantity_on_hand": self.quantity_on_hand,
            "reorder_level": self.reorder_level,
            "needs_reorder": self.needs_reorder,
            "unit_cost": float(self.unit_cost) if self.unit_cost is not None else None,
            "unit_price": float(self.unit_price) if self.unit_price is not None else None,
            "is_active": self.is_active,
            "last_updated_by_user_id": self.last_updated_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryAdjustment(db.Model):
    """
    Immutable quantity change record.

    One row per receive / daily count / manual correction. Daily counts are
    written even when difference == 0 so the count history stays complete.
    Never updated or deleted.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.Index("ix_invadj_item_date_kind", "item_id", "business_date_key", "kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    business_date_key = db.Column(db.String(10), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)

    previous_qty = db.Column(db.Integer, nullable=False)
    new_qty = db.Column(db.Integer, nullable=False)
    difference = db.Column(db.Integer, nullable=False)  # new_qty - previous_qty

    reason = db.Column(db.String(255), nullable=True)
    actor_id = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem", backref=db.backref("adjustments", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "business_date_key": self.business_date_key,
            "kind": self.kind,
            "previous_qty": self.previous_qty,
            "new_qty": self.new_qty,
            "difference": self.difference,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "created_at": to_utc_z(self.created_at),
        }
