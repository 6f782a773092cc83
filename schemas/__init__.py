# schemas/__init__.py
from .payment import (
     OneTimePaymentRequest,
     PaymentResponse,
     RefundRequest,
     RefundResponse,
     GatewayEvent,
)
from .payment_method import (
     BillingAddress,
     CardDetails,
     BankAccountDetails,
     PaymentMethodCreate,
     PaymentMethodResponse,
)
from .lease import LeaseCreate, LeaseResponse
from .autopay import (
     ScheduleCreate,
     ScheduleUpdate,
     ScheduleResponse,
     ScheduleResultResponse,
     RunSummaryResponse,
     RunnerStatusResponse,
)

__all__ = [
     "OneTimePaymentRequest",
     "PaymentResponse",
     "RefundRequest",
     "RefundResponse",
     "GatewayEvent",
     "BillingAddress",
     "CardDetails",
     "BankAccountDetails",
     "PaymentMethodCreate",
     "PaymentMethodResponse",
     "LeaseCreate",
     "LeaseResponse",
     "ScheduleCreate",
     "ScheduleUpdate",
     "ScheduleResponse",
     "ScheduleResultResponse",
     "RunSummaryResponse",
     "RunnerStatusResponse",
]
