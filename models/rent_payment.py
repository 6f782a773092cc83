# models/rent_payment.py
"""
RentPayment model - one settlement attempt for one lease and one period.

Rows are never deleted: failed attempts stay as an audit trail next to the
successful ones. The filtered unique index below is the single arbiter of
the one-open-payment-per-period rule; the settlement engine relies on it to
make its check-and-insert atomic.
"""
import enum
from datetime import date

from sqlalchemy import (
     Column, Integer, String, Numeric, Boolean, Text, Date, DateTime,
     ForeignKey, Index, CheckConstraint, func, text,
)
from sqlalchemy.orm import relationship
from .base import Base, value_enum


class PaymentStatus(str, enum.Enum):
     """Enumeration for rent payment status."""
     PENDING = "pending"
     PROCESSING = "processing"
     AUTHORIZED = "authorized"
     CAPTURED = "captured"
     COMPLETED = "completed"
     FAILED = "failed"
     REFUNDED = "refunded"
     CANCELLED = "cancelled"


# A period may hold only one payment in any of these states at a time.
OPEN_PERIOD_STATUSES = (
     PaymentStatus.PENDING,
     PaymentStatus.PROCESSING,
     PaymentStatus.AUTHORIZED,
     PaymentStatus.CAPTURED,
     PaymentStatus.COMPLETED,
)

REFUNDABLE_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.CAPTURED)

_OPEN_PERIOD_WHERE = "payment_status IN ({})".format(
     ", ".join(f"'{s.value}'" for s in OPEN_PERIOD_STATUSES)
)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class RentPayment(Base):
     __tablename__ = "rent_payments"
     __table_args__ = (
          CheckConstraint("payment_month BETWEEN 1 AND 12", name="ck_rent_payments_month"),
          CheckConstraint("amount >= 0", name="ck_rent_payments_amount"),
          Index(
               "uq_rent_payments_open_period",
               "lease_id", "payment_month", "payment_year",
               unique=True,
               sqlite_where=text(_OPEN_PERIOD_WHERE),
               postgresql_where=text(_OPEN_PERIOD_WHERE),
               mssql_where=text(_OPEN_PERIOD_WHERE),
          ),
          Index(
               "uq_rent_payments_gateway_transaction_id",
               "gateway_transaction_id",
               unique=True,
               sqlite_where=text("gateway_transaction_id IS NOT NULL"),
               postgresql_where=text("gateway_transaction_id IS NOT NULL"),
               mssql_where=text("gateway_transaction_id IS NOT NULL"),
          ),
          Index("ix_rent_payments_period", "payment_year", "payment_month"),
          Index("ix_rent_payments_recurring", "is_recurring", "recurring_schedule_id"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     lease_id = Column(Integer, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True)
     tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
     payment_method_id = Column(
          Integer,
          ForeignKey("payment_methods.id", ondelete="SET NULL"),
          nullable=True
     )

     # Amounts; total_amount is always amount + late_fee_amount + processing_fee
     amount = Column(Numeric(10, 2), nullable=False)
     late_fee_amount = Column(Numeric(10, 2), default=0, nullable=False)
     processing_fee = Column(Numeric(10, 2), default=0, nullable=False)
     total_amount = Column(Numeric(10, 2), nullable=False)
     currency = Column(String(3), default="USD", nullable=False)

     payment_type = Column(String(10), nullable=True)
     payment_status = Column(
          value_enum(PaymentStatus, "payment_status"),
          default=PaymentStatus.PENDING,
          nullable=False,
          index=True
     )

     # Gateway references
     gateway_transaction_id = Column(String(255), nullable=True)
     gateway_reference_code = Column(String(255), nullable=True)
     authorization_code = Column(String(50), nullable=True)
     processor_response_code = Column(String(50), nullable=True)

     # Period
     payment_month = Column(Integer, nullable=False)
     payment_year = Column(Integer, nullable=False)
     rent_due_date = Column(Date, nullable=True)
     payment_date = Column(DateTime, nullable=True)

     masked_payment_info = Column(String(255), nullable=True)
     failure_reason = Column(Text, nullable=True)
     notes = Column(Text, nullable=True)

     # Refunds
     refund_amount = Column(Numeric(10, 2), nullable=True)
     refund_date = Column(DateTime, nullable=True)
     refund_reason = Column(Text, nullable=True)
     refund_transaction_id = Column(String(255), nullable=True, index=True)

     # Recurring payment tracking
     is_recurring = Column(Boolean, default=False, nullable=False)
     recurring_schedule_id = Column(
          Integer,
          ForeignKey("recurring_payment_schedules.id", ondelete="SET NULL"),
          nullable=True
     )

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     lease = relationship("Lease", back_populates="payments")
     payment_method = relationship("PaymentMethod")
     recurring_schedule = relationship("RecurringSchedule", back_populates="payments")

     def __repr__(self):
          return (
               f"<RentPayment(id={self.id}, lease_id={self.lease_id}, "
               f"period={self.payment_month}/{self.payment_year}, status='{self.payment_status.value}')>"
          )

     @property
     def period_label(self) -> str:
          return f"{MONTH_NAMES[self.payment_month - 1]} {self.payment_year}"

     @property
     def is_late(self) -> bool:
          if not self.payment_date or not self.rent_due_date:
               return False
          return self.payment_date.date() > self.rent_due_date

     @property
     def is_open(self) -> bool:
          """Whether this row blocks another payment for the same period."""
          return self.payment_status in OPEN_PERIOD_STATUSES
