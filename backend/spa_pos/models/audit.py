from __future__ import annotations

from ..extensions import db
from spa_pos.time_utils import to_utc_z

class AuditEvent(db.Model):
    """
    Generic event log: logins, ledger mutations, client navigation.

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_kind_created", "kind", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for anonymous events (failed logins, pre-auth client logs)
    actor_id = db.Column(db.Integer, nullable=True, index=True)

    kind = db.Column(db.String(16), nullable=False)  # auth, navigation, action, system
    message = db.Column(db.String(512), nullable=False)
    path = db.Column(db.String(255), nullable=True)
    context = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "kind": self.kind,
            "message": self.message,
            "path": self.path,
            "context": self.context,
            "created_at": to_utc_z(self.created_at),
        }
