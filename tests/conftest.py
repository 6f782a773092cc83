import base64
import hashlib
import hmac
import os
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

# Must be set before config/database are imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("RECURRING_SCHEDULER_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from models import (
    Base,
    Lease,
    LeaseStatus,
    PaymentMethod,
    PaymentMethodStatus,
    PaymentType,
    Unit,
    UnitStatus,
    User,
    UserRole,
)
from services import GatewayResult, SettlementEngine

WEBHOOK_SECRET = "whsec_test"


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


class FakeGateway:
    """In-memory gateway. Charges succeed unless an outcome is queued."""

    def __init__(self):
        self.charges = []
        self.refunds = []
        self.outcomes = []
        self.declined_tokens = set()
        self.raise_for_tokens = set()
        self.transaction_statuses = {}
        self.status_lookup_fails = False
        self.refund_fails = False
        self.on_charge = None
        self._seq = 0

    def _next_id(self, prefix):
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def decline_next(self, reason="declined", message="Card declined"):
        self.outcomes.append({"reason": reason, "message": message})

    def tokenize_instrument(self, payment_type, instrument, billing_info):
        if instrument.get("number") == "4000000000000002":
            return GatewayResult(success=False, status="failed", error={"message": "Invalid card", "reason": "declined"})
        number = instrument.get("number") or instrument.get("account_number") or ""
        return GatewayResult(
            success=True,
            status="active",
            token=self._next_id("tok"),
            card_brand="visa" if payment_type == "card" else None,
            last_four=number[-4:],
        )

    def authorize_and_capture(self, token, amount, currency, order_reference, billing_info, description=None):
        self.charges.append(
            {"token": token, "amount": amount, "currency": currency, "order_reference": order_reference}
        )
        if self.on_charge is not None:
            self.on_charge(token, amount, order_reference)
        if token in self.raise_for_tokens:
            raise RuntimeError("connection reset")
        if token in self.declined_tokens:
            return GatewayResult(
                success=False,
                status="failed",
                transaction_id=self._next_id("txn"),
                error={"message": "Card declined", "reason": "declined"},
            )
        if self.outcomes:
            error = self.outcomes.pop(0)
            return GatewayResult(success=False, status="failed", error=error)
        return GatewayResult(
            success=True,
            status="completed",
            transaction_id=self._next_id("txn"),
            authorization_code="831000",
            response_code="100",
        )

    def refund(self, transaction_id, amount, reason, currency=None):
        self.refunds.append({"transaction_id": transaction_id, "amount": amount, "reason": reason})
        if self.refund_fails:
            return GatewayResult(success=False, status="failed", error={"message": "Refund rejected", "reason": "http_error"})
        return GatewayResult(success=True, status="refunded", refund_id=self._next_id("rfnd"))

    def get_transaction_status(self, transaction_id):
        if self.status_lookup_fails:
            return GatewayResult(success=False, error={"message": "Payment gateway timed out", "reason": "timeout"})
        return GatewayResult(
            success=True,
            status=self.transaction_statuses.get(transaction_id, "AUTHORIZED"),
            transaction_id=transaction_id,
        )

    def verify_webhook_signature(self, body, signature):
        return bool(signature) and hmac.compare_digest(sign(body), signature)


class Factory:
    def __init__(self, db):
        self.db = db
        self._n = 0

    def _seq(self):
        self._n += 1
        return self._n

    def user(self, role=UserRole.TENANT, **kwargs):
        n = self._seq()
        user = User(
            first_name=kwargs.pop("first_name", "Tess"),
            last_name=kwargs.pop("last_name", f"Tenant{n}"),
            email=kwargs.pop("email", f"tenant{n}@example.com"),
            role=role,
            **kwargs,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def unit(self, **kwargs):
        unit = Unit(unit_number=kwargs.pop("unit_number", f"U-{self._seq()}"), status=UnitStatus.VACANT, **kwargs)
        self.db.add(unit)
        self.db.commit()
        return unit

    def lease(self, tenant, unit=None, **kwargs):
        unit = unit or self.unit()
        values = {
            "monthly_rent": Decimal("2500.00"),
            "lease_start_date": date(2026, 1, 1),
            "lease_end_date": date(2026, 12, 31),
            "rent_due_day": 1,
            "grace_period_days": 5,
            "late_fee_amount": Decimal("50.00"),
            "status": LeaseStatus.ACTIVE,
        }
        values.update(kwargs)
        lease = Lease(unit_id=unit.id, tenant_id=tenant.id, **values)
        unit.status = UnitStatus.OCCUPIED
        self.db.add(lease)
        self.db.commit()
        return lease

    def card(self, user, **kwargs):
        values = {
            "payment_type": PaymentType.CARD,
            "gateway_token": f"tok_card_{self._seq()}",
            "card_last_four": "4242",
            "card_brand": "visa",
            "card_expiry_month": "12",
            "card_expiry_year": "2030",
            "billing_country": "US",
            "is_default": False,
            "status": PaymentMethodStatus.ACTIVE,
        }
        values.update(kwargs)
        method = PaymentMethod(user_id=user.id, **values)
        self.db.add(method)
        self.db.commit()
        return method


@pytest.fixture
def engine(tmp_path):
    db_engine = create_engine(
        f"sqlite:///{tmp_path / 'rentpay.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session_scope(session_factory):
    @contextmanager
    def scope():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def now():
    return datetime(2026, 7, 3, 9, 0, 0)


@pytest.fixture
def settlement(gateway, now):
    return SettlementEngine(gateway, currency="USD", clock=lambda: now)
