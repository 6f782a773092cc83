# routers/dependencies.py
"""
Shared router dependencies: the service objects assembled in main.py live on
app.state so tests can swap them without patching modules.
"""
from typing import Optional

from fastapi import Depends, Request

from services import (
     PaymentMethodService,
     RecurringPaymentRunner,
     SettlementEngine,
)
from utils.auth import require_admin, verify_token


def get_settlement_engine(request: Request) -> SettlementEngine:
     return request.app.state.settlement_engine


def get_payment_method_service(request: Request) -> PaymentMethodService:
     return request.app.state.payment_method_service


def get_recurring_runner(request: Request) -> RecurringPaymentRunner:
     return request.app.state.recurring_runner


def admin_token(token: dict = Depends(verify_token)) -> dict:
     require_admin(token)
     return token


def tenant_scope(token: dict) -> Optional[int]:
     """Tenant id to restrict lookups to; admins see every tenant's records."""
     if token.get("role") == "admin":
          return None
     return token.get("id")
