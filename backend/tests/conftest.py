"""
Pytest fixtures for spa POS backend tests.

Provides an in-memory database per test, a frozen business clock, admin and
staff accounts with session tokens, and ledgers bound to the test session.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from spa_pos import create_app
from spa_pos.business_calendar import BusinessCalendar
from spa_pos.extensions import db
from spa_pos.models import InventoryItem
from spa_pos.services import session_service
from spa_pos.services.audit_service import AuditLog
from spa_pos.services.auth_service import create_user
from spa_pos.services.identity_service import Identity, Role
from spa_pos.services.inventory_service import InventoryLedger
from spa_pos.services.transaction_service import TransactionLedger


MANILA = ZoneInfo("Asia/Manila")
PASSWORD = "Password123!"


def local_to_utc(*args) -> datetime:
    """Business-local wall time -> UTC-naive instant (the storage format)."""
    return datetime(*args, tzinfo=MANILA).astimezone(timezone.utc).replace(tzinfo=None)


class FrozenClock:
    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current


@pytest.fixture
def clock():
    # 2025-11-25 04:30 in Manila; business date "2025-11-25"
    return FrozenClock(local_to_utc(2025, 11, 25, 4, 30))


@pytest.fixture
def app(clock):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })
    app.extensions["business_calendar"] = BusinessCalendar(
        cutoff_hour=4,
        timezone_name="Asia/Manila",
        clock=clock,
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def db_session(app):
    return db.session


@pytest.fixture
def calendar(app):
    return app.extensions["business_calendar"]


@pytest.fixture
def admin_user(db_session):
    return create_user("admin", PASSWORD, role="admin")


@pytest.fixture
def staff_user(db_session):
    return create_user("maria", PASSWORD, role="staff")


@pytest.fixture
def admin(admin_user):
    return Identity(actor_id=admin_user.id, role=Role.ADMIN, username=admin_user.username)


@pytest.fixture
def staff(staff_user):
    return Identity(actor_id=staff_user.id, role=Role.STAFF, username=staff_user.username)


def _auth_headers(user) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _auth_headers(admin_user)


@pytest.fixture
def staff_headers(staff_user):
    return _auth_headers(staff_user)


@pytest.fixture
def audit(db_session):
    return AuditLog(db_session)


@pytest.fixture
def inventory(db_session, calendar, audit):
    return InventoryLedger(db_session, calendar, audit)


@pytest.fixture
def transactions(db_session, calendar, audit):
    return TransactionLedger(db_session, calendar, audit)


@pytest.fixture
def towels(inventory, admin):
    """Bath towels with 10 on hand (booked as initial stock)."""
    return inventory.create_item(
        actor=admin,
        name="Bath towel",
        sku="TWL-BATH",
        category="towel",
        reorder_level=5,
        quantity_on_hand=10,
    )


@pytest.fixture
def oil(db_session, admin):
    """Massage oil inserted directly with 4 on hand and no adjustment history."""
    item = InventoryItem(name="Lavender oil", sku="OIL-LAV", category="oil", quantity_on_hand=4)
    db_session.add(item)
    db_session.commit()
    return item
