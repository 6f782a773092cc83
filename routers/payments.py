# routers/payments.py
"""
Rent payment API.

POST /api/payments: tenant pays one period's rent with a stored method.
GET  /api/payments/{payment_id}: payment status, refreshed from the gateway.
POST /api/payments/{payment_id}/refund: admin refund (full or partial).
POST /api/payments/{payment_id}/reconcile: admin re-sync with the gateway.
POST /api/payments/webhook: signed gateway notifications.

Service errors propagate to the handlers registered in main.py.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from database import get_session
from schemas.payment import (
     GatewayEvent,
     OneTimePaymentRequest,
     PaymentResponse,
     RefundRequest,
     RefundResponse,
)
from services import NotFoundError, SettlementEngine, ledger_service
from utils.auth import verify_token
from .dependencies import admin_token, get_settlement_engine, tenant_scope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

SIGNATURE_HEADER = "X-Gateway-Signature"


@router.post(
     "",
     response_model=PaymentResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Pay rent for one period",
)
def create_payment(
     body: OneTimePaymentRequest,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
     engine: SettlementEngine = Depends(get_settlement_engine),
):
     """
     Charge a stored payment method for one month's rent.

     - **409** when the period already has a pending or completed payment
     - **402** when the gateway declines; the failed attempt is recorded
     """
     return engine.initiate_one_time_payment(
          db,
          tenant_id=token["id"],
          lease_id=body.lease_id,
          payment_method_id=body.payment_method_id,
          amount=body.amount,
          payment_month=body.payment_month,
          payment_year=body.payment_year,
          notes=body.notes,
     )


@router.get("", response_model=List[PaymentResponse], summary="Payment history for a lease")
def list_payments(
     lease_id: int = Query(..., gt=0),
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     lease = ledger_service.get_lease(db, lease_id, tenant_id=tenant_scope(token))
     if not lease:
          raise NotFoundError("Lease not found", detail={"lease_id": lease_id})
     return ledger_service.list_lease_payments(db, lease.id)


@router.post("/webhook", summary="Gateway webhook")
async def gateway_webhook(
     request: Request,
     db: Session = Depends(get_session),
     engine: SettlementEngine = Depends(get_settlement_engine),
):
     """
     Receives gateway payment events. The raw body must carry a valid
     X-Gateway-Signature; unknown events are acknowledged and ignored.
     """
     body = await request.body()
     if not engine.gateway.verify_webhook_signature(body, request.headers.get(SIGNATURE_HEADER)):
          logger.warning("Rejected gateway webhook with invalid signature")
          raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

     try:
          event = GatewayEvent.model_validate_json(body)
     except PydanticValidationError:
          raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed event")

     payment = engine.handle_gateway_event(db, event.eventType, event.data)
     if payment is None:
          return {"success": True, "message": "Event ignored"}
     return {"success": True, "payment_id": payment.id, "payment_status": payment.payment_status.value}


@router.get("/{payment_id}", response_model=PaymentResponse, summary="Get payment status")
def get_payment(
     payment_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
     engine: SettlementEngine = Depends(get_settlement_engine),
):
     return engine.get_payment_status(db, payment_id, tenant_id=tenant_scope(token))


@router.post("/{payment_id}/refund", response_model=RefundResponse, summary="Refund a payment")
def refund_payment(
     payment_id: int,
     body: RefundRequest,
     db: Session = Depends(get_session),
     token: dict = Depends(admin_token),
     engine: SettlementEngine = Depends(get_settlement_engine),
):
     """Refund a completed payment. Omitting the amount refunds the full total."""
     payment = engine.refund(db, payment_id, amount=body.amount, reason=body.reason)
     return RefundResponse(
          payment_id=payment.id,
          refund_id=payment.refund_transaction_id,
          amount=payment.refund_amount,
          status=payment.payment_status,
     )


@router.post("/{payment_id}/reconcile", response_model=PaymentResponse, summary="Re-sync status with the gateway")
def reconcile_payment(
     payment_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(admin_token),
     engine: SettlementEngine = Depends(get_settlement_engine),
):
     return engine.reconcile_status(db, payment_id)
