# services/lease_service.py
"""
Lease Service - the lease rules the payment core depends on.

Creating a lease validates its terms and keeps a unit to one active lease
overlapping today. Terminating a lease vacates the unit and stops its
auto-pay.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Lease, LeaseStatus, RecurringSchedule, Unit, UnitStatus
from . import ledger_service
from .exceptions import NotFoundError, ValidationError
from .validation import to_money, validate_day_of_month

logger = logging.getLogger(__name__)


class LeaseService:
     """Service class for lease-related business logic."""

     @staticmethod
     def validate_terms(
          monthly_rent: Decimal,
          lease_start_date: date,
          lease_end_date: date,
          rent_due_day: int
     ) -> None:
          to_money(monthly_rent, "monthly_rent", allow_zero=False)
          validate_day_of_month(rent_due_day, "rent_due_day")
          if lease_end_date <= lease_start_date:
               raise ValidationError(
                    "Lease end date must be after start date",
                    detail={"lease_start_date": str(lease_start_date), "lease_end_date": str(lease_end_date)},
               )

     @staticmethod
     def create_lease(
          db: Session,
          unit_id: int,
          tenant_id: int,
          monthly_rent: Decimal,
          lease_start_date: date,
          lease_end_date: date,
          rent_due_day: int = 1,
          grace_period_days: int = 5,
          late_fee_amount: Decimal = Decimal("0"),
          security_deposit: Optional[Decimal] = None,
          status: LeaseStatus = LeaseStatus.ACTIVE,
          today: Optional[date] = None,
     ) -> Lease:
          """
          Create a lease for a unit.

          Raises:
               ValidationError: invalid terms, or the unit already has an
                    active lease running through today
               NotFoundError: unit does not exist
          """
          today = today or date.today()
          LeaseService.validate_terms(monthly_rent, lease_start_date, lease_end_date, rent_due_day)

          unit = db.get(Unit, unit_id)
          if not unit:
               raise NotFoundError(f"Unit with ID {unit_id} not found", detail={"unit_id": unit_id})

          if status == LeaseStatus.ACTIVE:
               existing = db.scalars(
                    select(Lease).where(
                         Lease.unit_id == unit_id,
                         Lease.status == LeaseStatus.ACTIVE,
                         Lease.lease_end_date >= today,
                    )
               ).first()
               if existing:
                    raise ValidationError(
                         "Unit already has an active lease",
                         detail={"unit_id": unit_id, "lease_id": existing.id},
                    )

          lease = Lease(
               unit_id=unit_id,
               tenant_id=tenant_id,
               monthly_rent=to_money(monthly_rent, "monthly_rent", allow_zero=False),
               security_deposit=security_deposit,
               lease_start_date=lease_start_date,
               lease_end_date=lease_end_date,
               rent_due_day=rent_due_day,
               grace_period_days=grace_period_days,
               late_fee_amount=to_money(late_fee_amount, "late_fee_amount"),
               status=status,
          )
          db.add(lease)
          if status == LeaseStatus.ACTIVE:
               unit.status = UnitStatus.OCCUPIED
          db.commit()
          logger.info("Created lease %s for unit %s, tenant %s", lease.id, unit_id, tenant_id)
          return lease

     @staticmethod
     def terminate_lease(db: Session, lease_id: int) -> Lease:
          """Terminate a lease, vacate its unit and deactivate its auto-pay schedules."""
          lease = ledger_service.get_lease(db, lease_id)
          if not lease:
               raise NotFoundError(f"Lease with ID {lease_id} not found", detail={"lease_id": lease_id})

          lease.status = LeaseStatus.TERMINATED
          if lease.unit is not None:
               lease.unit.status = UnitStatus.VACANT
          schedules: list[RecurringSchedule] = ledger_service.find_active_schedules_for_lease(db, lease.id)
          for schedule in schedules:
               schedule.is_active = False
          db.commit()
          logger.info("Terminated lease %s (%d auto-pay schedules stopped)", lease.id, len(schedules))
          return lease

     @staticmethod
     def get_tenant_lease(db: Session, tenant_id: int) -> Optional[Lease]:
          """The tenant's most recent active lease."""
          return db.scalars(
               select(Lease)
               .where(Lease.tenant_id == tenant_id, Lease.status == LeaseStatus.ACTIVE)
               .order_by(Lease.lease_start_date.desc())
          ).first()
