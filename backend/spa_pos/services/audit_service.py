# Overview: Append-only event log used by auth flows, ledgers and the client log endpoint.

"""
Audit log

- Create-only: rows are never updated or deleted.
- Best-effort: a failed write is rolled back, logged, and swallowed. It must
  never mask or undo the ledger operation that triggered it, so ledgers call
  record() only after their own commit.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..models import AuditEvent


AUDIT_KINDS = ("auth", "navigation", "action", "system")

MAX_MESSAGE_LENGTH = 512


class AuditLog:
    def __init__(self, session):
        self.session = session

    def record(
        self,
        kind: str,
        message: str,
        *,
        actor_id: Optional[int] = None,
        path: Optional[str] = None,
        context: Optional[dict] = None,
    ) -> Optional[AuditEvent]:
        """Append one event. Returns the event, or None if the write failed."""
        if kind not in AUDIT_KINDS:
            kind = "system"

        try:
            event = AuditEvent(
                actor_id=actor_id,
                kind=kind,
                message=(message or "")[:MAX_MESSAGE_LENGTH],
                path=path,
                context=context,
            )
            self.session.add(event)
            self.session.commit()
            return event
        except Exception:
            self.session.rollback()
            current_app.logger.exception("Failed to write audit event (%s): %s", kind, message)
            return None

    def list(
        self,
        *,
        kind: Optional[str] = None,
        actor_id: Optional[int] = None,
        limit: int = 200,
    ) -> list[AuditEvent]:
        query = self.session.query(AuditEvent)
        if kind:
            query = query.filter(AuditEvent.kind == kind)
        if actor_id is not None:
            query = query.filter(AuditEvent.actor_id == actor_id)
        return (
            query.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
            .limit(limit)
            .all()
        )
