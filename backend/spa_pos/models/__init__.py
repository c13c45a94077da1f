from .auth import User, SessionToken
from .inventory import InventoryItem, InventoryAdjustment
from .transactions import Transaction, ServiceLine
from .audit import AuditEvent

__all__ = [
    'User', 'SessionToken',
    'InventoryItem', 'InventoryAdjustment',
    'Transaction', 'ServiceLine',
    'AuditEvent',
]
