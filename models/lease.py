# models/lease.py
import enum
from datetime import date
from typing import Optional

from sqlalchemy import Column, Integer, Numeric, Date, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import relationship
from .base import Base, value_enum


class LeaseStatus(str, enum.Enum):
     """Enumeration for lease lifecycle status."""
     ACTIVE = "active"
     EXPIRED = "expired"
     TERMINATED = "terminated"
     PENDING = "pending"


class Lease(Base):
     """
     Lease model - tenancy agreement binding one tenant to one unit.

     At most one active lease per unit may overlap the present; that rule is
     enforced by services.lease_service.create_lease, not by the database.
     """
     __tablename__ = "leases"
     __table_args__ = (
          CheckConstraint("lease_end_date > lease_start_date", name="ck_leases_end_after_start"),
          CheckConstraint("rent_due_day BETWEEN 1 AND 31", name="ck_leases_rent_due_day"),
          CheckConstraint("monthly_rent > 0", name="ck_leases_monthly_rent_positive"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), nullable=False, index=True)
     tenant_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

     # Pricing
     monthly_rent = Column(Numeric(10, 2), nullable=False)
     security_deposit = Column(Numeric(10, 2), nullable=True)

     # Lease period
     lease_start_date = Column(Date, nullable=False)
     lease_end_date = Column(Date, nullable=False)
     rent_due_day = Column(Integer, default=1, nullable=False)

     status = Column(
          value_enum(LeaseStatus, "lease_status"),
          default=LeaseStatus.ACTIVE,
          nullable=False,
          index=True
     )

     # Late payment terms
     grace_period_days = Column(Integer, default=5, nullable=False)
     late_fee_amount = Column(Numeric(10, 2), default=0, nullable=False)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, onupdate=func.now(), nullable=True)

     # Relationships
     unit = relationship("Unit", back_populates="leases")
     tenant = relationship("User", back_populates="leases")
     payments = relationship("RentPayment", back_populates="lease")
     recurring_schedules = relationship("RecurringSchedule", back_populates="lease")

     def __repr__(self):
          return f"<Lease(id={self.id}, tenant_id={self.tenant_id}, unit_id={self.unit_id})>"

     def is_current(self, today: Optional[date] = None) -> bool:
          """Active and today falls within the lease period."""
          today = today or date.today()
          return (
               self.status == LeaseStatus.ACTIVE
               and self.lease_start_date <= today <= self.lease_end_date
          )

     @property
     def duration_months(self) -> int:
          return (
               (self.lease_end_date.year - self.lease_start_date.year) * 12
               + (self.lease_end_date.month - self.lease_start_date.month)
          )
