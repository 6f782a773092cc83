# services/schedule_service.py
"""
Recurring Schedule Manager - lifecycle of auto-pay schedules.

A lease has at most one active schedule: creating one deactivates the
others. Schedules are never deleted, only deactivated.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from models import RecurringSchedule, ScheduleType
from . import ledger_service
from .exceptions import NotFoundError, ValidationError
from .validation import clamp_day, validate_day_of_month

logger = logging.getLogger(__name__)


def next_payment_date(payment_day: int, from_date: date) -> date:
     """
     One calendar month after from_date, on payment_day, clamped to the last
     day of that month.

     >>> next_payment_date(31, date(2025, 1, 31))
     datetime.date(2025, 2, 28)
     >>> next_payment_date(15, date(2025, 12, 15))
     datetime.date(2026, 1, 15)
     """
     target = from_date.replace(day=1) + relativedelta(months=1)
     return clamp_day(target.year, target.month, payment_day)


def advance(schedule: RecurringSchedule, from_date: date) -> date:
     """Move schedule.next_payment_date one month past from_date."""
     schedule.next_payment_date = next_payment_date(schedule.payment_day, from_date)
     return schedule.next_payment_date


@dataclass
class ReminderOptions:
     send_reminder_email: Optional[bool] = None
     reminder_days_before: Optional[int] = None
     send_receipt_email: Optional[bool] = None


def _validate_reminder_options(opts: ReminderOptions) -> None:
     if opts.reminder_days_before is not None and not 0 <= opts.reminder_days_before <= 28:
          raise ValidationError(
               "reminder_days_before must be between 0 and 28",
               detail={"reminder_days_before": opts.reminder_days_before},
          )


class RecurringScheduleManager:

     @staticmethod
     def create_schedule(
          db: Session,
          lease_id: int,
          tenant_id: int,
          payment_method_id: int,
          payment_day: int,
          reminder_opts: Optional[ReminderOptions] = None,
          today: Optional[date] = None,
     ) -> RecurringSchedule:
          """
          Set up auto-pay for a lease, replacing any active schedule for it.

          The first payment falls one calendar month from today, on
          payment_day (clamped to the month's length).

          Raises:
               ValidationError: payment_day out of range, bad reminder options
               NotFoundError: lease not active/owned, or payment method not active/owned
          """
          today = today or date.today()
          payment_day = validate_day_of_month(payment_day)
          opts = reminder_opts or ReminderOptions()
          _validate_reminder_options(opts)

          lease = ledger_service.get_lease(db, lease_id, tenant_id=tenant_id, active_only=True)
          if not lease:
               raise NotFoundError("Active lease not found", detail={"lease_id": lease_id})

          method = ledger_service.get_payment_method(db, payment_method_id, user_id=tenant_id, active_only=True)
          if not method:
               raise NotFoundError("Payment method not found", detail={"payment_method_id": payment_method_id})

          for previous in ledger_service.find_active_schedules_for_lease(db, lease.id):
               previous.is_active = False
               logger.info("Deactivated schedule %s for lease %s (replaced)", previous.id, lease.id)

          schedule = RecurringSchedule(
               lease_id=lease.id,
               tenant_id=tenant_id,
               payment_method_id=method.id,
               is_active=True,
               schedule_type=ScheduleType.MONTHLY,
               payment_day=payment_day,
               start_date=today,
               end_date=lease.lease_end_date,
               default_amount=lease.monthly_rent,
               next_payment_date=next_payment_date(payment_day, today),
               total_payments_made=0,
               failed_payment_attempts=0,
               send_reminder_email=opts.send_reminder_email if opts.send_reminder_email is not None else True,
               reminder_days_before=opts.reminder_days_before if opts.reminder_days_before is not None else 3,
               send_receipt_email=opts.send_receipt_email if opts.send_receipt_email is not None else True,
          )
          db.add(schedule)
          db.commit()
          logger.info(
               "Created auto-pay schedule %s for lease %s: day %s, first payment %s",
               schedule.id, lease.id, payment_day, schedule.next_payment_date
          )
          return schedule

     @staticmethod
     def update_schedule(
          db: Session,
          schedule_id: int,
          tenant_id: Optional[int] = None,
          payment_method_id: Optional[int] = None,
          payment_day: Optional[int] = None,
          reminder_opts: Optional[ReminderOptions] = None,
     ) -> RecurringSchedule:
          """
          Partial update. A new payment_day applies from the next advance;
          next_payment_date is left as it is.
          """
          schedule = ledger_service.get_schedule(db, schedule_id, tenant_id=tenant_id)
          if not schedule:
               raise NotFoundError("Auto-pay schedule not found", detail={"schedule_id": schedule_id})

          if payment_method_id is not None and payment_method_id != schedule.payment_method_id:
               method = ledger_service.get_payment_method(
                    db, payment_method_id, user_id=schedule.tenant_id, active_only=True
               )
               if not method:
                    raise NotFoundError("Payment method not found", detail={"payment_method_id": payment_method_id})
               schedule.payment_method_id = method.id

          if payment_day is not None:
               schedule.payment_day = validate_day_of_month(payment_day)

          if reminder_opts is not None:
               _validate_reminder_options(reminder_opts)
               if reminder_opts.send_reminder_email is not None:
                    schedule.send_reminder_email = reminder_opts.send_reminder_email
               if reminder_opts.reminder_days_before is not None:
                    schedule.reminder_days_before = reminder_opts.reminder_days_before
               if reminder_opts.send_receipt_email is not None:
                    schedule.send_receipt_email = reminder_opts.send_receipt_email

          db.commit()
          logger.info("Updated auto-pay schedule %s", schedule.id)
          return schedule

     @staticmethod
     def cancel_schedule(db: Session, schedule_id: int, tenant_id: Optional[int] = None) -> RecurringSchedule:
          """Deactivate a schedule. Cancelling an inactive schedule is a no-op."""
          schedule = ledger_service.get_schedule(db, schedule_id, tenant_id=tenant_id)
          if not schedule:
               raise NotFoundError("Auto-pay schedule not found", detail={"schedule_id": schedule_id})
          if schedule.is_active:
               schedule.is_active = False
               db.commit()
               logger.info("Cancelled auto-pay schedule %s for lease %s", schedule.id, schedule.lease_id)
          return schedule

     @staticmethod
     def get_active_schedule(db: Session, tenant_id: int) -> Optional[RecurringSchedule]:
          return ledger_service.get_active_schedule_for_tenant(db, tenant_id)

     @staticmethod
     def record_success(schedule: RecurringSchedule, run_date: date) -> None:
          advance(schedule, run_date)
          schedule.last_payment_date = run_date
          schedule.total_payments_made = (schedule.total_payments_made or 0) + 1
          schedule.failed_payment_attempts = 0

     @staticmethod
     def record_failure(schedule: RecurringSchedule, run_date: date) -> None:
          # still moves forward: no same-period retries
          advance(schedule, run_date)
          schedule.failed_payment_attempts = (schedule.failed_payment_attempts or 0) + 1
