from __future__ import annotations

from ..extensions import db
from spa_pos.time_utils import to_utc_z


SERVICE_STATUSES = ("ongoing", "done", "cancelled")
PAYMENT_STATUSES = ("unpaid", "paid", "complimentary")
PAYMENT_METHODS = ("cash", "gcash", "card", "other")


class Transaction(db.Model):
    """
    One guest visit: the services rendered plus service/payment status.

    business_date_key is fixed at creation from started_at and never
    changes afterwards. total_amount starts as the sum of service line
    amounts; only an admin may change it later.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_date_started", "business_date_key", "started_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    business_date_key = db.Column(db.String(10), nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False)

    guest_name = db.Column(db.String(255), nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    therapist_id = db.Column(db.String(64), nullable=True)
    therapist_name = db.Column(db.String(255), nullable=True)
    room_name = db.Column(db.String(64), nullable=True)

    service_status = db.Column(db.String(16), nullable=False, default="ongoing", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid", index=True)
    payment_method = db.Column(db.String(16), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    services = db.relationship(
        "ServiceLine",
        backref="transaction",
        order_by="ServiceLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} date={self.business_date_key} "
            f"service={self.service_status} payment={self.payment_status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_date_key": self.business_date_key,
            "started_at": to_utc_z(self.started_at),
            "guest_name": self.guest_name,
            "services": [line.to_dict() for line in self.services],
            "total_amount": float(self.total_amount) if self.total_amount is not None else 0.0,
            "therapist_id": self.therapist_id,
            "therapist_name": self.therapist_name,
            "room_name": self.room_name,
            "service_status": self.service_status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ServiceLine(db.Model):
    """Individual service rendered within a transaction."""
    __tablename__ = "transaction_services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    service_name = db.Column(db.String(255), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_name": self.service_name,
            "duration_minutes": self.duration_minutes,
            "amount": float(self.amount) if self.amount is not None else 0.0,
        }
