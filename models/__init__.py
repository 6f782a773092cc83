# models/__init__.py
from .base import Base
from .user import User, UserRole
from .unit import Unit, UnitStatus
from .lease import Lease, LeaseStatus
from .payment_method import PaymentMethod, PaymentMethodStatus, PaymentType, BankAccountType
from .rent_payment import RentPayment, PaymentStatus, OPEN_PERIOD_STATUSES, REFUNDABLE_STATUSES
from .recurring_schedule import RecurringSchedule, ScheduleType

__all__ = [
     "Base",
     "User",
     "UserRole",
     "Unit",
     "UnitStatus",
     "Lease",
     "LeaseStatus",
     "PaymentMethod",
     "PaymentMethodStatus",
     "PaymentType",
     "BankAccountType",
     "RentPayment",
     "PaymentStatus",
     "OPEN_PERIOD_STATUSES",
     "REFUNDABLE_STATUSES",
     "RecurringSchedule",
     "ScheduleType",
]
