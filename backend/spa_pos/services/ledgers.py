# Overview: Builds ledgers bound to the request's DB session and the app's business calendar.

from flask import current_app

from ..business_calendar import BusinessCalendar
from ..extensions import db
from .audit_service import AuditLog
from .inventory_service import InventoryLedger
from .transaction_service import TransactionLedger


def get_calendar() -> BusinessCalendar:
    return current_app.extensions["business_calendar"]


def audit_log() -> AuditLog:
    return AuditLog(db.session)


def inventory_ledger() -> InventoryLedger:
    return InventoryLedger(db.session, get_calendar(), audit_log())


def transaction_ledger() -> TransactionLedger:
    return TransactionLedger(db.session, get_calendar(), audit_log())
