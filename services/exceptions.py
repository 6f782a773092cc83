# services/exceptions.py
"""
Error taxonomy for the payment services.

Services raise these; main.py renders them to JSON with their status_code.
Validation, not-found and duplicate errors are raised before any gateway
call and leave the ledger untouched. GatewayError is the only one raised
after a RentPayment audit row has been written.
"""
from typing import Any, Optional


class PaymentServiceError(Exception):
     """Base class for every business-rule error raised by the services."""
     status_code = 400

     def __init__(self, message: str, detail: Any = None):
          super().__init__(message)
          self.message = message
          self.detail = detail


class ValidationError(PaymentServiceError):
     """Malformed or missing input."""
     status_code = 400


class InvalidPaymentStateError(ValidationError):
     """The target record is not in a state that allows the operation."""
     status_code = 409


class PaymentMethodInUseError(ValidationError):
     """The payment method is referenced by an active auto-pay schedule."""
     status_code = 409


class NotFoundError(PaymentServiceError):
     """Entity missing, or not owned by the caller."""
     status_code = 404


class DuplicatePeriodPayment(PaymentServiceError):
     """An open payment already exists for this lease and period."""
     status_code = 409

     def __init__(self, lease_id: int, payment_month: int, payment_year: int, existing_payment_id: Optional[int] = None):
          super().__init__(
               f"Payment for lease {lease_id} period {payment_month}/{payment_year} already exists",
               detail={
                    "lease_id": lease_id,
                    "payment_month": payment_month,
                    "payment_year": payment_year,
                    "existing_payment_id": existing_payment_id,
               },
          )
          self.lease_id = lease_id
          self.payment_month = payment_month
          self.payment_year = payment_year
          self.existing_payment_id = existing_payment_id


class GatewayError(PaymentServiceError):
     """
     The payment processor declined, timed out or answered unexpectedly.

     `detail` is the gateway's own error payload; `payment_id` points at the
     failed RentPayment row recorded for the attempt (None for refunds and
     status lookups, which write no row).
     """
     status_code = 402

     def __init__(self, message: str, detail: Any = None, payment_id: Optional[int] = None):
          super().__init__(message, detail)
          self.payment_id = payment_id


class RefundExceedsOriginalError(PaymentServiceError):
     status_code = 400


class RunInProgressError(PaymentServiceError):
     """A recurring payment run already holds the runner."""
     status_code = 409
