# Overview: Transaction ledger; guest visits, their service lines and status changes.

# backend/spa_pos/services/transaction_service.py
"""
Spa Transaction Invariants (authoritative)

- business_date_key is computed once, from the effective started_at, and is
  never changed by a patch.
- Staff work on the current business day only: they cannot backdate a new
  transaction and cannot edit one from an earlier business day.
- Staff cannot move a paid/complimentary transaction back to unpaid.
- total_amount is the sum of line amounts at creation; afterwards only an
  admin may overwrite it.
- A patch is validated completely before any attribute is assigned, so a
  rejected patch leaves the row untouched.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..business_calendar import BusinessCalendar, is_date_key
from ..errors import (
    ForbiddenError,
    InvalidValueError,
    MissingInputError,
    NoOpError,
    NotFoundError,
)
from ..models import ServiceLine, Transaction
from ..models.transactions import PAYMENT_METHODS, PAYMENT_STATUSES, SERVICE_STATUSES
from ..validation import as_amount, as_id, as_whole_number, clean_text
from .audit_service import AuditLog
from .concurrency import lock_for_update, run_with_retry
from .identity_service import Identity


SCOPE_ACTIVE = "active"
SCOPE_TODAY = "today"
SCOPE_HISTORY = "history"

SCOPE_LIMITS = {
    SCOPE_ACTIVE: 100,
    SCOPE_TODAY: 200,
    SCOPE_HISTORY: 500,
}

# Statuses a staff member may not revert from
SETTLED_PAYMENT_STATUSES = ("paid", "complimentary")

TEXT_FIELDS = ("guest_name", "therapist_id", "therapist_name", "room_name", "notes")

PATCHABLE_FIELDS = (
    "service_status",
    "payment_status",
    "payment_method",
    "total_amount",
) + TEXT_FIELDS


def _json_value(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


class TransactionLedger:
    def __init__(self, session, calendar: BusinessCalendar, audit: AuditLog | None = None):
        self.session = session
        self.calendar = calendar
        self.audit = audit or AuditLog(session)

    def _load(self, transaction_id, *, lock: bool = False) -> Transaction:
        parsed = as_id(transaction_id)
        if parsed is None:
            raise NotFoundError("Transaction not found")
        query = self.session.query(Transaction).filter_by(id=parsed)
        if lock:
            query = lock_for_update(query)
        tx = query.first()
        if tx is None:
            raise NotFoundError("Transaction not found")
        return tx

    def get(self, transaction_id) -> Transaction:
        return self._load(transaction_id)

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def _build_lines(self, services) -> list[ServiceLine]:
        if not isinstance(services, (list, tuple)) or len(services) == 0:
            raise MissingInputError("At least one service is required")

        lines = []
        for position, raw in enumerate(services):
            if not isinstance(raw, dict):
                raise MissingInputError(f"Service #{position + 1} is missing service_name")

            service_name = raw.get("service_name")
            service_name = service_name.strip() if isinstance(service_name, str) else ""
            if not service_name:
                raise MissingInputError(f"Service #{position + 1} is missing service_name")

            # Non-numeric amounts count as zero
            amount = as_amount(raw.get("amount"))
            if amount is None:
                amount = Decimal("0.00")

            duration = as_whole_number(raw.get("duration_minutes"))
            if duration is not None and duration < 0:
                duration = None

            lines.append(ServiceLine(
                position=position,
                service_name=service_name,
                duration_minutes=duration,
                amount=amount,
            ))
        return lines

    def create(
        self,
        services,
        *,
        actor: Identity,
        started_at=None,
        guest_name=None,
        therapist_id=None,
        therapist_name=None,
        room_name=None,
        notes=None,
    ) -> Transaction:
        """
        Open a transaction for a guest visit.

        Staff-supplied started_at is ignored; admins may backdate, but an
        unparseable value falls back to now.

        Raises:
            MissingInputError: no services, or a line without service_name
            ForbiddenError: staff creating for a non-current business date
        """
        lines = self._build_lines(services)

        now = self.calendar.now()
        effective_start = now
        if actor.is_admin and started_at:
            effective_start = self.calendar.parse_local(started_at) or now

        date_key = self.calendar.date_key(effective_start)
        if actor.is_staff and date_key != self.calendar.today():
            raise ForbiddenError("Staff can only create transactions for the current business day")

        total = sum((line.amount for line in lines), Decimal("0.00"))

        tx = Transaction(
            business_date_key=date_key,
            started_at=effective_start,
            guest_name=clean_text(guest_name),
            therapist_id=clean_text(therapist_id),
            therapist_name=clean_text(therapist_name),
            room_name=clean_text(room_name),
            notes=clean_text(notes),
            total_amount=total,
            service_status="ongoing",
            payment_status="unpaid",
            created_by_user_id=actor.actor_id,
        )
        tx.services = lines

        self.session.add(tx)
        self.session.commit()

        self.audit.record(
            "action",
            f"Created transaction #{tx.id} ({date_key}) total {total}",
            actor_id=actor.actor_id,
            path="/api/transactions",
            context={
                "transaction_id": tx.id,
                "business_date_key": date_key,
                "total_amount": float(total),
                "service_count": len(lines),
            },
        )
        return tx

    # ------------------------------------------------------------------
    # patch
    # ------------------------------------------------------------------

    def _validate_updates(self, tx: Transaction, updates: dict, actor: Identity) -> dict:
        """Return {field: new_value} for every recognised field, or raise."""
        accepted = {}

        if "service_status" in updates:
            value = updates["service_status"]
            if value not in SERVICE_STATUSES:
                raise InvalidValueError(f"Invalid service_status: {value}")
            accepted["service_status"] = value

        if "payment_status" in updates:
            value = updates["payment_status"]
            if value not in PAYMENT_STATUSES:
                raise InvalidValueError(f"Invalid payment_status: {value}")
            if actor.is_staff and tx.payment_status in SETTLED_PAYMENT_STATUSES and value == "unpaid":
                raise ForbiddenError("Only admin can revert a settled transaction to unpaid")
            accepted["payment_status"] = value

        if "payment_method" in updates:
            value = updates["payment_method"]
            if value is not None and value not in PAYMENT_METHODS:
                raise InvalidValueError(f"Invalid payment_method: {value}")
            accepted["payment_method"] = value

        for field in TEXT_FIELDS:
            if field not in updates:
                continue
            value = updates[field]
            if value is not None and not isinstance(value, str):
                raise InvalidValueError(f"{field} must be text")
            accepted[field] = clean_text(value)

        if "total_amount" in updates:
            if not actor.is_admin:
                raise ForbiddenError("Only admin can change total_amount")
            amount = as_amount(updates["total_amount"])
            if amount is None:
                raise InvalidValueError("total_amount must be a number")
            accepted["total_amount"] = amount

        return accepted

    def patch(self, transaction_id, updates, *, actor: Identity) -> Transaction:
        """
        Apply a partial update.

        Raises:
            NotFoundError: unknown transaction
            ForbiddenError: staff editing a past business day, reverting a
                settled payment, or touching total_amount
            InvalidValueError: value outside the allowed set
            NoOpError: no recognised field in updates
        """
        if not isinstance(updates, dict):
            updates = {}

        today = self.calendar.today()

        def _op():
            tx = self._load(transaction_id, lock=True)

            if actor.is_staff and tx.business_date_key != today:
                raise ForbiddenError("Staff cannot edit transactions from a previous business day")

            accepted = self._validate_updates(tx, updates, actor)
            if not accepted:
                raise NoOpError("Nothing to update")

            for field, value in accepted.items():
                setattr(tx, field, value)

            self.session.commit()
            return tx, accepted

        tx, accepted = run_with_retry(self.session, _op)

        self.audit.record(
            "action",
            f"Updated transaction #{tx.id}: {', '.join(sorted(accepted))}",
            actor_id=actor.actor_id,
            path=f"/api/transactions/{tx.id}",
            context={
                "transaction_id": tx.id,
                "changes": {field: _json_value(value) for field, value in accepted.items()},
            },
        )
        return tx

    # ------------------------------------------------------------------
    # query
    # ------------------------------------------------------------------

    def query(
        self,
        scope: str,
        *,
        actor: Identity,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[Transaction]:
        if scope not in SCOPE_LIMITS:
            raise InvalidValueError(f"Invalid scope: {scope}")

        query = self.session.query(Transaction)

        if scope == SCOPE_ACTIVE:
            query = query.filter(
                Transaction.business_date_key == self.calendar.today(),
                Transaction.service_status.in_(("ongoing", "done")),
                Transaction.payment_status != "paid",
            )
        elif scope == SCOPE_TODAY:
            query = query.filter(Transaction.business_date_key == self.calendar.today())
        else:
            if not actor.is_admin:
                raise ForbiddenError("Only admin can view transaction history")
            for bound in (date_from, date_to):
                if bound and not is_date_key(bound):
                    raise InvalidValueError("Date bounds must be YYYY-MM-DD")
            if date_from:
                query = query.filter(Transaction.business_date_key >= date_from)
            if date_to:
                query = query.filter(Transaction.business_date_key <= date_to)

        return (
            query.order_by(Transaction.started_at.desc(), Transaction.id.desc())
            .limit(SCOPE_LIMITS[scope])
            .all()
        )
