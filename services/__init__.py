# services/__init__.py
from .exceptions import (
     PaymentServiceError,
     ValidationError,
     InvalidPaymentStateError,
     PaymentMethodInUseError,
     NotFoundError,
     DuplicatePeriodPayment,
     GatewayError,
     RefundExceedsOriginalError,
     RunInProgressError,
)
from .gateway import GatewayResult, PaymentGatewayClient
from .settlement_service import SettlementEngine, SettlementRequest, assess_late_fee
from .schedule_service import RecurringScheduleManager, ReminderOptions, advance, next_payment_date
from .recurring_runner import RecurringPaymentRunner, RunSummary, ScheduleResult, ScheduleOutcome, RunnerState
from .payment_method_service import PaymentMethodService
from .lease_service import LeaseService

__all__ = [
     "PaymentServiceError",
     "ValidationError",
     "InvalidPaymentStateError",
     "PaymentMethodInUseError",
     "NotFoundError",
     "DuplicatePeriodPayment",
     "GatewayError",
     "RefundExceedsOriginalError",
     "RunInProgressError",
     "GatewayResult",
     "PaymentGatewayClient",
     "SettlementEngine",
     "SettlementRequest",
     "assess_late_fee",
     "RecurringScheduleManager",
     "ReminderOptions",
     "advance",
     "next_payment_date",
     "RecurringPaymentRunner",
     "RunSummary",
     "ScheduleResult",
     "ScheduleOutcome",
     "RunnerState",
     "PaymentMethodService",
     "LeaseService",
]
