# services/settlement_service.py
"""
Payment Settlement Engine.

Drives one payment attempt through the gateway and records the outcome:

1. Validate the request, the lease and the payment method (no side effects
   on failure).
2. Claim the period: insert a `pending` RentPayment for
   (lease, month, year). The filtered unique index on rent_payments makes
   this check-and-insert atomic, so two concurrent attempts cannot both
   claim the same period. The claim is committed before the gateway call.
3. Call the gateway (bounded timeout).
4. Resolve the same row to `completed` or `failed`. A failure is committed
   first and then raised as GatewayError with the gateway's own payload.

Exactly one RentPayment row exists per attempt that passes validation.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import PAYMENT_CURRENCY
from models import Lease, PaymentStatus, RentPayment, REFUNDABLE_STATUSES
from . import ledger_service
from .exceptions import (
     DuplicatePeriodPayment,
     GatewayError,
     InvalidPaymentStateError,
     NotFoundError,
     RefundExceedsOriginalError,
     ValidationError,
)
from .gateway import GatewayResult
from .validation import compute_total_amount, due_date_for_period, to_money, validate_period

logger = logging.getLogger(__name__)


# Gateway / webhook status vocabulary -> local status
GATEWAY_STATUS_MAP = {
     "pending": PaymentStatus.PENDING,
     "processing": PaymentStatus.PROCESSING,
     "authorized": PaymentStatus.AUTHORIZED,
     "captured": PaymentStatus.CAPTURED,
     "settled": PaymentStatus.CAPTURED,
     "transmitted": PaymentStatus.CAPTURED,
     "completed": PaymentStatus.COMPLETED,
     "failed": PaymentStatus.FAILED,
     "declined": PaymentStatus.FAILED,
     "rejected": PaymentStatus.FAILED,
     "refunded": PaymentStatus.REFUNDED,
     "reversed": PaymentStatus.REFUNDED,
     "voided": PaymentStatus.CANCELLED,
     "cancelled": PaymentStatus.CANCELLED,
}

WEBHOOK_EVENT_MAP = {
     "authorized": PaymentStatus.AUTHORIZED,
     "captured": PaymentStatus.CAPTURED,
     "failed": PaymentStatus.FAILED,
     "refund.completed": PaymentStatus.REFUNDED,
}

_IN_FLIGHT = (PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.AUTHORIZED)
_CLOSED = (PaymentStatus.REFUNDED, PaymentStatus.CANCELLED)


def resolve_status(current: PaymentStatus, reported: PaymentStatus) -> PaymentStatus:
     """
     The status a payment should take when the gateway reports `reported`.

     Refunded and cancelled payments only move to refunded. Money that has
     been captured never goes back to an in-flight status, and completed
     outranks captured.
     """
     if current in _CLOSED:
          return PaymentStatus.REFUNDED if reported == PaymentStatus.REFUNDED else current
     if current == PaymentStatus.COMPLETED and (reported in _IN_FLIGHT or reported == PaymentStatus.CAPTURED):
          return current
     if current == PaymentStatus.CAPTURED and reported in _IN_FLIGHT:
          return current
     return reported


@dataclass
class SettlementRequest:
     """One attempt to pay rent for a lease period."""
     lease_id: int
     tenant_id: int
     payment_method_id: int
     amount: Any
     payment_month: int
     payment_year: int
     is_recurring: bool = False
     recurring_schedule_id: Optional[int] = None
     late_fee_amount: Any = 0
     processing_fee: Any = 0
     notes: Optional[str] = None

     @property
     def order_reference(self) -> str:
          if self.is_recurring and self.recurring_schedule_id is not None:
               return f"recurring_{self.recurring_schedule_id}_{self.payment_month}_{self.payment_year}"
          return f"rent_{self.lease_id}_{self.payment_month}_{self.payment_year}"


def assess_late_fee(lease: Lease, payment_month: int, payment_year: int, on_date: date) -> Decimal:
     """
     The lease's late fee when on_date falls after the period's due date plus
     the grace period; zero otherwise.
     """
     due = due_date_for_period(payment_month, payment_year, lease.rent_due_day)
     if on_date > due + timedelta(days=lease.grace_period_days or 0):
          return to_money(lease.late_fee_amount)
     return Decimal("0.00")


class SettlementEngine:
     """Settles, refunds and reconciles rent payments against the gateway."""

     def __init__(
          self,
          gateway,
          currency: str = PAYMENT_CURRENCY,
          clock: Callable[[], datetime] = datetime.utcnow,
     ):
          self.gateway = gateway
          self.currency = currency
          self.clock = clock

     # ------------------------------------------------------------------
     # Settlement
     # ------------------------------------------------------------------

     def settle_payment(self, db: Session, request: SettlementRequest) -> RentPayment:
          """
          Settle one period's rent.

          Returns the completed RentPayment.

          Raises:
               ValidationError: bad amount/period, or unusable payment method
               NotFoundError: lease or payment method missing / not the tenant's
               DuplicatePeriodPayment: the period already has an open payment
               GatewayError: the charge failed; a `failed` row was recorded
          """
          month, year = validate_period(request.payment_month, request.payment_year)
          amount = to_money(request.amount, "amount", allow_zero=False)
          late_fee = to_money(request.late_fee_amount, "late_fee_amount")
          processing_fee = to_money(request.processing_fee, "processing_fee")
          total = compute_total_amount(amount, late_fee, processing_fee)

          lease = ledger_service.get_lease(db, request.lease_id, tenant_id=request.tenant_id, active_only=True)
          if not lease:
               raise NotFoundError("Active lease not found", detail={"lease_id": request.lease_id})

          method = ledger_service.get_payment_method(
               db, request.payment_method_id, user_id=request.tenant_id, active_only=True
          )
          if not method:
               raise NotFoundError("Payment method not found", detail={"payment_method_id": request.payment_method_id})
          if method.is_card_expired(self.clock().date()):
               raise ValidationError("Payment method has expired", detail={"payment_method_id": method.id})

          existing = ledger_service.find_open_period_payment(db, lease.id, month, year)
          if existing:
               logger.info(
                    "Rejected duplicate payment for lease %s period %s/%s (existing payment %s)",
                    lease.id, month, year, existing.id
               )
               raise DuplicatePeriodPayment(lease.id, month, year, existing.id)

          payment = RentPayment(
               lease_id=lease.id,
               tenant_id=request.tenant_id,
               payment_method_id=method.id,
               amount=amount,
               late_fee_amount=late_fee,
               processing_fee=processing_fee,
               total_amount=total,
               currency=self.currency,
               payment_type=method.payment_type.value,
               payment_status=PaymentStatus.PENDING,
               payment_month=month,
               payment_year=year,
               rent_due_date=due_date_for_period(month, year, lease.rent_due_day),
               gateway_reference_code=request.order_reference,
               masked_payment_info=method.masked_info,
               is_recurring=request.is_recurring,
               recurring_schedule_id=request.recurring_schedule_id,
               notes=request.notes,
          )
          self._claim_period(db, payment)

          billing_info = {
               "first_name": lease.tenant.first_name if lease.tenant else None,
               "last_name": lease.tenant.last_name if lease.tenant else None,
               "email": lease.tenant.email if lease.tenant else None,
               "address": method.billing_info(),
          }
          kind = "Auto-pay rent" if request.is_recurring else "Rent payment"
          try:
               result = self.gateway.authorize_and_capture(
                    method.gateway_token,
                    total,
                    self.currency,
                    request.order_reference,
                    billing_info,
                    description=f"{kind} for {month}/{year}",
               )
          except Exception as e:
               logger.exception("Gateway client raised while charging payment %s", payment.id)
               result = GatewayResult(
                    success=False,
                    status="failed",
                    error={"message": f"Payment gateway error: {e}", "reason": "client_error"},
               )

          payment.payment_date = self.clock()
          if result.success:
               payment.payment_status = PaymentStatus.COMPLETED
               payment.gateway_transaction_id = result.transaction_id
               payment.authorization_code = result.authorization_code
               payment.processor_response_code = result.response_code
               db.commit()
               logger.info(
                    "Payment %s completed for lease %s period %s/%s: %s %s (transaction %s)",
                    payment.id, lease.id, month, year, total, self.currency, result.transaction_id
               )
               return payment

          payment.payment_status = PaymentStatus.FAILED
          payment.failure_reason = result.error_message
          payment.gateway_transaction_id = result.transaction_id
          db.commit()
          logger.warning(
               "Payment %s failed for lease %s period %s/%s: %s",
               payment.id, lease.id, month, year, payment.failure_reason
          )
          raise GatewayError(payment.failure_reason, detail=result.error, payment_id=payment.id)

     def _claim_period(self, db: Session, payment: RentPayment) -> None:
          db.add(payment)
          try:
               db.flush()
          except IntegrityError:
               db.rollback()
               existing = ledger_service.find_open_period_payment(
                    db, payment.lease_id, payment.payment_month, payment.payment_year
               )
               logger.info(
                    "Lost settlement race for lease %s period %s/%s",
                    payment.lease_id, payment.payment_month, payment.payment_year
               )
               raise DuplicatePeriodPayment(
                    payment.lease_id,
                    payment.payment_month,
                    payment.payment_year,
                    existing.id if existing else None,
               )
          db.commit()

     def initiate_one_time_payment(
          self,
          db: Session,
          tenant_id: int,
          lease_id: int,
          payment_method_id: int,
          amount: Any,
          payment_month: int,
          payment_year: int,
          notes: Optional[str] = None,
     ) -> RentPayment:
          """Tenant-initiated payment; the lease's late fee applies past the grace period."""
          late_fee = Decimal("0.00")
          month, year = validate_period(payment_month, payment_year)
          lease = ledger_service.get_lease(db, lease_id, tenant_id=tenant_id, active_only=True)
          if lease:
               late_fee = assess_late_fee(lease, month, year, self.clock().date())
          return self.settle_payment(
               db,
               SettlementRequest(
                    lease_id=lease_id,
                    tenant_id=tenant_id,
                    payment_method_id=payment_method_id,
                    amount=amount,
                    payment_month=month,
                    payment_year=year,
                    late_fee_amount=late_fee,
                    notes=notes,
               ),
          )

     # ------------------------------------------------------------------
     # Refunds
     # ------------------------------------------------------------------

     def refund(
          self,
          db: Session,
          payment_id: int,
          amount: Any = None,
          reason: Optional[str] = None
     ) -> RentPayment:
          payment = ledger_service.get_payment(db, payment_id)
          if not payment:
               raise NotFoundError("Payment not found", detail={"payment_id": payment_id})
          if payment.payment_status not in REFUNDABLE_STATUSES:
               raise InvalidPaymentStateError(
                    "Only completed payments can be refunded",
                    detail={"payment_id": payment.id, "payment_status": payment.payment_status.value},
               )
          if not payment.gateway_transaction_id:
               raise InvalidPaymentStateError("Payment has no gateway transaction to refund", detail={"payment_id": payment.id})

          refund_amount = payment.total_amount if amount is None else to_money(amount, "amount", allow_zero=False)
          if refund_amount > payment.total_amount:
               raise RefundExceedsOriginalError(
                    "Refund amount cannot exceed payment amount",
                    detail={"requested": str(refund_amount), "total_amount": str(payment.total_amount)},
               )

          reason = reason or "Refund requested"
          result = self.gateway.refund(payment.gateway_transaction_id, refund_amount, reason, payment.currency)
          if not result.success:
               logger.warning("Refund of payment %s failed: %s", payment.id, result.error_message)
               raise GatewayError(result.error_message, detail=result.error)

          payment.payment_status = PaymentStatus.REFUNDED
          payment.refund_amount = refund_amount
          payment.refund_date = self.clock()
          payment.refund_reason = reason
          payment.refund_transaction_id = result.refund_id
          db.commit()
          logger.info("Payment %s refunded %s (refund %s)", payment.id, refund_amount, result.refund_id)
          return payment

     # ------------------------------------------------------------------
     # Reconciliation / webhooks
     # ------------------------------------------------------------------

     def reconcile_status(self, db: Session, payment_id: int, tenant_id: Optional[int] = None) -> RentPayment:
          """Bring the local status in line with the gateway's view of the transaction."""
          payment = ledger_service.get_payment(db, payment_id, tenant_id=tenant_id)
          if not payment:
               raise NotFoundError("Payment not found", detail={"payment_id": payment_id})
          if not payment.gateway_transaction_id:
               raise InvalidPaymentStateError("Payment has no gateway transaction", detail={"payment_id": payment.id})

          result = self.gateway.get_transaction_status(payment.gateway_transaction_id)
          if not result.success:
               raise GatewayError(result.error_message, detail=result.error)

          new_status = GATEWAY_STATUS_MAP.get(str(result.status or "").lower())
          if new_status is None:
               logger.warning(
                    "Unrecognised gateway status %r for payment %s; leaving %s",
                    result.status, payment.id, payment.payment_status.value
               )
               return payment
          self._apply_status(db, payment, new_status, source="reconcile")
          return payment

     def get_payment_status(self, db: Session, payment_id: int, tenant_id: Optional[int] = None) -> RentPayment:
          """The local payment, refreshed from the gateway when it has a transaction."""
          payment = ledger_service.get_payment(db, payment_id, tenant_id=tenant_id)
          if not payment:
               raise NotFoundError("Payment not found", detail={"payment_id": payment_id})
          if payment.gateway_transaction_id:
               try:
                    payment = self.reconcile_status(db, payment.id)
               except GatewayError as e:
                    logger.warning("Could not refresh payment %s from gateway: %s", payment.id, e.message)
          return payment

     def handle_gateway_event(self, db: Session, event_type: str, data: dict) -> Optional[RentPayment]:
          """
          Apply an asynchronous gateway notification. Unknown events and
          unknown transactions are logged and ignored.
          """
          event = (event_type or "").lower()
          if event.startswith("payment."):
               event = event[len("payment."):]
          new_status = WEBHOOK_EVENT_MAP.get(event)
          if new_status is None:
               logger.warning("Unhandled gateway event: %s", event_type)
               return None

          transaction_id = data.get("transactionId") or data.get("id")
          if not transaction_id:
               logger.warning("Gateway event %s without a transaction id", event_type)
               return None

          payment = None
          if new_status == PaymentStatus.REFUNDED:
               payment = ledger_service.find_payment_by_refund_transaction_id(db, transaction_id)
          if payment is None:
               payment = ledger_service.find_payment_by_transaction_id(db, transaction_id)
          if payment is None:
               logger.warning("Gateway event %s for unknown transaction %s", event_type, transaction_id)
               return None

          if resolve_status(payment.payment_status, new_status) == PaymentStatus.FAILED:
               payment.failure_reason = data.get("reason") or "Payment failed"
          self._apply_status(db, payment, new_status, source=f"webhook:{event}")
          return payment

     def _apply_status(self, db: Session, payment: RentPayment, new_status: PaymentStatus, source: str) -> None:
          current = payment.payment_status
          new_status = resolve_status(current, new_status)
          if current == new_status:
               db.commit()
               return
          payment.payment_status = new_status
          try:
               db.commit()
          except IntegrityError:
               db.rollback()
               logger.error(
                    "Status change %s -> %s for payment %s would reopen an already paid period",
                    current.value, new_status.value, payment.id
               )
               raise DuplicatePeriodPayment(payment.lease_id, payment.payment_month, payment.payment_year)
          logger.info("Payment %s status %s -> %s (%s)", payment.id, current.value, new_status.value, source)
