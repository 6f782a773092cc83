# models/recurring_schedule.py
import enum
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import Column, Integer, Numeric, Boolean, Date, DateTime, ForeignKey, Index, CheckConstraint, func
from sqlalchemy.orm import relationship
from .base import Base, value_enum


class ScheduleType(str, enum.Enum):
     MONTHLY = "monthly"


class RecurringSchedule(Base):
     """
     RecurringSchedule model - a tenant's standing instruction to auto-pay
     one lease every month.

     A lease has at most one active schedule; cancelling only flips
     is_active so the payment history keeps its reference.
     """
     __tablename__ = "recurring_payment_schedules"
     __table_args__ = (
          CheckConstraint("payment_day BETWEEN 1 AND 31", name="ck_recurring_schedules_payment_day"),
          Index("ix_recurring_schedules_active_day", "is_active", "payment_day"),
          Index("ix_recurring_schedules_active_next", "is_active", "next_payment_date"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     lease_id = Column(Integer, ForeignKey("leases.id", ondelete="CASCADE"), nullable=False, index=True)
     tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
     payment_method_id = Column(
          Integer,
          ForeignKey("payment_methods.id", ondelete="RESTRICT"),
          nullable=False
     )

     # Schedule configuration
     is_active = Column(Boolean, default=True, nullable=False)
     schedule_type = Column(value_enum(ScheduleType, "schedule_type"), default=ScheduleType.MONTHLY, nullable=False)
     payment_day = Column(Integer, nullable=False)
     start_date = Column(Date, nullable=False)
     end_date = Column(Date, nullable=True)
     default_amount = Column(Numeric(10, 2), nullable=False)

     # Tracking
     next_payment_date = Column(Date, nullable=False)
     last_payment_date = Column(Date, nullable=True)
     total_payments_made = Column(Integer, default=0, nullable=False)
     failed_payment_attempts = Column(Integer, default=0, nullable=False)

     # Notification preferences (intent only; delivery happens elsewhere)
     send_reminder_email = Column(Boolean, default=True, nullable=False)
     reminder_days_before = Column(Integer, default=3, nullable=False)
     send_receipt_email = Column(Boolean, default=True, nullable=False)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     lease = relationship("Lease", back_populates="recurring_schedules")
     tenant = relationship("User")
     payment_method = relationship("PaymentMethod")
     payments = relationship("RentPayment", back_populates="recurring_schedule")

     def __repr__(self):
          return (
               f"<RecurringSchedule(id={self.id}, lease_id={self.lease_id}, "
               f"day={self.payment_day}, active={self.is_active})>"
          )

     @property
     def reminder_date(self) -> Optional[date]:
          if not self.send_reminder_email or self.next_payment_date is None:
               return None
          return self.next_payment_date - timedelta(days=self.reminder_days_before or 0)
