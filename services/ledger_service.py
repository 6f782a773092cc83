# services/ledger_service.py
"""
Ledger Store queries.

The database owns every Lease, PaymentMethod, RentPayment and
RecurringSchedule row; this module holds the lookups the settlement engine,
schedule manager and runner share, so each compound query is written once:

- the idempotency guard: open payment for (lease, month, year)
- the daily selection: active schedules due on a given date and not yet
  paid this month

Functions return None/empty results; callers decide what "missing" means.
"""
import calendar
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from models import (
     Lease,
     LeaseStatus,
     PaymentMethod,
     PaymentMethodStatus,
     RecurringSchedule,
     RentPayment,
     OPEN_PERIOD_STATUSES,
)


def get_lease(
     db: Session,
     lease_id: int,
     tenant_id: Optional[int] = None,
     active_only: bool = False
) -> Optional[Lease]:
     query = select(Lease).where(Lease.id == lease_id)
     if tenant_id is not None:
          query = query.where(Lease.tenant_id == tenant_id)
     if active_only:
          query = query.where(Lease.status == LeaseStatus.ACTIVE)
     return db.scalars(query).first()


def get_payment_method(
     db: Session,
     payment_method_id: int,
     user_id: Optional[int] = None,
     active_only: bool = False
) -> Optional[PaymentMethod]:
     query = select(PaymentMethod).where(PaymentMethod.id == payment_method_id)
     if user_id is not None:
          query = query.where(PaymentMethod.user_id == user_id)
     if active_only:
          query = query.where(PaymentMethod.status == PaymentMethodStatus.ACTIVE)
     return db.scalars(query).first()


def list_payment_methods(db: Session, user_id: int) -> list[PaymentMethod]:
     """A user's non-deleted payment methods, default first."""
     query = (
          select(PaymentMethod)
          .where(
               PaymentMethod.user_id == user_id,
               PaymentMethod.status != PaymentMethodStatus.DELETED,
          )
          .order_by(PaymentMethod.is_default.desc(), PaymentMethod.id)
     )
     return list(db.scalars(query))


def find_open_period_payment(
     db: Session,
     lease_id: int,
     payment_month: int,
     payment_year: int
) -> Optional[RentPayment]:
     """The payment currently holding (lease, month, year), if any."""
     query = select(RentPayment).where(
          RentPayment.lease_id == lease_id,
          RentPayment.payment_month == payment_month,
          RentPayment.payment_year == payment_year,
          RentPayment.payment_status.in_(OPEN_PERIOD_STATUSES),
     )
     return db.scalars(query).first()


def get_payment(db: Session, payment_id: int, tenant_id: Optional[int] = None) -> Optional[RentPayment]:
     query = select(RentPayment).where(RentPayment.id == payment_id)
     if tenant_id is not None:
          query = query.join(Lease, RentPayment.lease_id == Lease.id).where(Lease.tenant_id == tenant_id)
     return db.scalars(query).first()


def find_payment_by_transaction_id(db: Session, transaction_id: str) -> Optional[RentPayment]:
     query = select(RentPayment).where(RentPayment.gateway_transaction_id == transaction_id)
     return db.scalars(query).first()


def find_payment_by_refund_transaction_id(db: Session, refund_transaction_id: str) -> Optional[RentPayment]:
     query = select(RentPayment).where(RentPayment.refund_transaction_id == refund_transaction_id)
     return db.scalars(query).first()


def list_lease_payments(db: Session, lease_id: int) -> list[RentPayment]:
     query = (
          select(RentPayment)
          .where(RentPayment.lease_id == lease_id)
          .order_by(RentPayment.payment_year, RentPayment.payment_month, RentPayment.id)
     )
     return list(db.scalars(query))


def get_schedule(db: Session, schedule_id: int, tenant_id: Optional[int] = None) -> Optional[RecurringSchedule]:
     query = select(RecurringSchedule).where(RecurringSchedule.id == schedule_id)
     if tenant_id is not None:
          query = query.where(RecurringSchedule.tenant_id == tenant_id)
     return db.scalars(query).first()


def find_active_schedules_for_lease(db: Session, lease_id: int) -> list[RecurringSchedule]:
     query = select(RecurringSchedule).where(
          RecurringSchedule.lease_id == lease_id,
          RecurringSchedule.is_active.is_(True),
     )
     return list(db.scalars(query))


def get_active_schedule_for_tenant(db: Session, tenant_id: int) -> Optional[RecurringSchedule]:
     query = (
          select(RecurringSchedule)
          .where(
               RecurringSchedule.tenant_id == tenant_id,
               RecurringSchedule.is_active.is_(True),
          )
          .order_by(RecurringSchedule.id.desc())
     )
     return db.scalars(query).first()


def payment_method_in_use(db: Session, payment_method_id: int) -> bool:
     query = select(RecurringSchedule.id).where(
          RecurringSchedule.payment_method_id == payment_method_id,
          RecurringSchedule.is_active.is_(True),
     )
     return db.scalars(query).first() is not None


def find_due_schedules(db: Session, run_date: date) -> list[RecurringSchedule]:
     """
     Active schedules of active leases that fall due on run_date and have
     not been paid since the first of run_date's month, in ascending id order.

     On the last day of a month, schedules whose payment_day does not exist
     in that month (e.g. 31 in April) are due as well.
     """
     month_start = run_date.replace(day=1)
     days_in_month = calendar.monthrange(run_date.year, run_date.month)[1]

     if run_date.day == days_in_month:
          day_clause = RecurringSchedule.payment_day >= run_date.day
     else:
          day_clause = RecurringSchedule.payment_day == run_date.day

     query = (
          select(RecurringSchedule)
          .join(Lease, RecurringSchedule.lease_id == Lease.id)
          .where(
               RecurringSchedule.is_active.is_(True),
               day_clause,
               or_(
                    RecurringSchedule.last_payment_date.is_(None),
                    RecurringSchedule.last_payment_date < month_start,
               ),
               Lease.status == LeaseStatus.ACTIVE,
          )
          .options(joinedload(RecurringSchedule.lease), joinedload(RecurringSchedule.payment_method))
          .order_by(RecurringSchedule.id)
     )
     return list(db.scalars(query).unique())


def find_schedules_with_reminder_on(db: Session, day: date) -> list[RecurringSchedule]:
     """Active schedules whose reminder date (next payment minus lead days) is `day`."""
     query = (
          select(RecurringSchedule)
          .where(
               RecurringSchedule.is_active.is_(True),
               RecurringSchedule.send_reminder_email.is_(True),
               RecurringSchedule.next_payment_date >= day,
               RecurringSchedule.next_payment_date <= day + timedelta(days=31),
          )
          .order_by(RecurringSchedule.id)
     )
     return [s for s in db.scalars(query) if s.reminder_date == day]
