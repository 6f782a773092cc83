# services/recurring_runner.py
"""
Recurring Payment Runner.

Once a day (APScheduler cron job) the runner selects the auto-pay schedules
due today and settles them one after another through the settlement engine.

- Only one run at a time: a trigger arriving while a run is in progress is
  logged and skipped.
- Each schedule is processed in its own database session; an exception for
  one schedule is recorded against it and the run moves on.
- A fixed delay separates consecutive gateway calls.
- Success and failure both move next_payment_date forward one month; only
  success sets last_payment_date.
"""
import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, ContextManager, Optional

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from config import (
     RECURRING_INTER_SCHEDULE_DELAY_SECONDS,
     RECURRING_RUN_HOUR,
     RECURRING_RUN_MINUTE,
     RECURRING_TIMEZONE,
)
from . import ledger_service
from .exceptions import DuplicatePeriodPayment, GatewayError, NotFoundError, PaymentServiceError, RunInProgressError
from .schedule_service import RecurringScheduleManager, advance
from .settlement_service import SettlementEngine, SettlementRequest

logger = logging.getLogger(__name__)

JOB_ID = "recurring_rent_payments"


class RunnerState(str, enum.Enum):
     IDLE = "idle"
     RUNNING = "running"


class ScheduleOutcome(str, enum.Enum):
     SUCCESS = "success"
     FAILED = "failed"
     SKIPPED = "skipped"


@dataclass
class ScheduleResult:
     schedule_id: int
     outcome: ScheduleOutcome
     lease_id: Optional[int] = None
     amount: Optional[str] = None
     payment_id: Optional[int] = None
     transaction_id: Optional[str] = None
     error: Optional[str] = None


@dataclass
class RunSummary:
     run_date: date
     started_at: datetime
     finished_at: Optional[datetime] = None
     results: list[ScheduleResult] = field(default_factory=list)
     reminders_due: list[int] = field(default_factory=list)

     def _count(self, outcome: ScheduleOutcome) -> int:
          return sum(1 for r in self.results if r.outcome == outcome)

     @property
     def total(self) -> int:
          return len(self.results)

     @property
     def succeeded(self) -> int:
          return self._count(ScheduleOutcome.SUCCESS)

     @property
     def failed(self) -> int:
          return self._count(ScheduleOutcome.FAILED)

     @property
     def skipped(self) -> int:
          return self._count(ScheduleOutcome.SKIPPED)


class RecurringPaymentRunner:
     """
     Owns the daily auto-pay run and its Idle/Running state.

     session_factory must return a context manager yielding a Session that
     commits on exit (database.get_session_context by default).
     """

     def __init__(
          self,
          engine: SettlementEngine,
          session_factory: Callable[[], ContextManager[Session]],
          delay_seconds: float = RECURRING_INTER_SCHEDULE_DELAY_SECONDS,
          sleep: Callable[[float], None] = time.sleep,
          today: Optional[Callable[[], date]] = None,
          run_hour: int = RECURRING_RUN_HOUR,
          run_minute: int = RECURRING_RUN_MINUTE,
          timezone: str = RECURRING_TIMEZONE,
     ):
          self.engine = engine
          self.session_factory = session_factory
          self.delay_seconds = delay_seconds
          self.sleep = sleep
          self.today = today or self._zone_today
          self.run_hour = run_hour
          self.run_minute = run_minute
          self.timezone = timezone
          self.tz = pytz.timezone(timezone)

          self._lock = threading.Lock()
          self._state = RunnerState.IDLE
          self._scheduler: Optional[BackgroundScheduler] = None
          self.last_summary: Optional[RunSummary] = None

     @property
     def state(self) -> RunnerState:
          return self._state

     def _zone_today(self) -> date:
          # run date in the trigger's zone, not the host's
          return datetime.now(self.tz).date()

     # ------------------------------------------------------------------
     # Daily trigger
     # ------------------------------------------------------------------

     def start(self) -> None:
          if self._scheduler is not None and self._scheduler.running:
               logger.warning("Recurring payment runner already started")
               return
          self._scheduler = BackgroundScheduler(timezone=self.timezone)
          self._scheduler.add_job(
               self.run_due_payments,
               CronTrigger(hour=self.run_hour, minute=self.run_minute, timezone=self.timezone),
               id=JOB_ID,
               name="Recurring rent payments",
               max_instances=1,
               coalesce=True,
               misfire_grace_time=3600,
               replace_existing=True,
          )
          self._scheduler.start()
          logger.info(
               "Recurring payment runner started (daily at %02d:%02d %s)",
               self.run_hour, self.run_minute, self.timezone
          )

     def stop(self) -> None:
          if self._scheduler is not None and self._scheduler.running:
               self._scheduler.shutdown(wait=False)
               logger.info("Recurring payment runner stopped")
          self._scheduler = None

     def get_status(self) -> dict:
          job = self._scheduler.get_job(JOB_ID) if self._scheduler is not None else None
          next_run = getattr(job, "next_run_time", None) if job else None
          return {
               "state": self._state.value,
               "is_scheduled": job is not None,
               "next_run_time": next_run.isoformat() if next_run else None,
               "schedule": f"daily at {self.run_hour:02d}:{self.run_minute:02d} {self.timezone}",
               "last_run_date": self.last_summary.run_date.isoformat() if self.last_summary else None,
          }

     # ------------------------------------------------------------------
     # Runs
     # ------------------------------------------------------------------

     def run_due_payments(self, run_date: Optional[date] = None) -> Optional[RunSummary]:
          """
          Process every schedule due on run_date (default: today).

          Returns None when another run is already in progress.
          """
          if not self._lock.acquire(blocking=False):
               logger.warning("Recurring payment run already in progress, skipping trigger")
               return None
          try:
               self._state = RunnerState.RUNNING
               summary = self._run(run_date or self.today())
               self.last_summary = summary
               return summary
          finally:
               self._state = RunnerState.IDLE
               self._lock.release()

     def process_now(self) -> Optional[RunSummary]:
          """Operator trigger: run today's selection immediately."""
          logger.info("Manual trigger: processing recurring payments")
          return self.run_due_payments()

     def process_schedule(self, schedule_id: int, run_date: Optional[date] = None) -> ScheduleResult:
          """
          Settle one schedule for the current period, regardless of its payment day.

          Shares the daily run's lock so a schedule's counters are never
          updated by both paths at once.

          Raises:
               RunInProgressError: a daily run or another single-schedule run is active
               NotFoundError: unknown schedule
          """
          if not self._lock.acquire(blocking=False):
               logger.warning("Recurring payment run in progress, refusing to process schedule %s", schedule_id)
               raise RunInProgressError(
                    "A recurring payment run is already in progress", detail={"schedule_id": schedule_id}
               )
          try:
               self._state = RunnerState.RUNNING
               logger.info("Processing auto-pay schedule %s on demand", schedule_id)
               return self._process_one(schedule_id, run_date or self.today())
          finally:
               self._state = RunnerState.IDLE
               self._lock.release()

     def _run(self, run_date: date) -> RunSummary:
          summary = RunSummary(run_date=run_date, started_at=datetime.utcnow())
          with self.session_factory() as db:
               schedule_ids = [s.id for s in ledger_service.find_due_schedules(db, run_date)]
               summary.reminders_due = [s.id for s in ledger_service.find_schedules_with_reminder_on(db, run_date)]

          logger.info("Found %d scheduled payments for %s", len(schedule_ids), run_date.isoformat())
          for schedule_id in summary.reminders_due:
               logger.info("Payment reminder due for schedule %s", schedule_id)

          for index, schedule_id in enumerate(schedule_ids):
               if index and self.delay_seconds > 0:
                    self.sleep(self.delay_seconds)
               try:
                    result = self._process_one(schedule_id, run_date)
               except Exception as e:
                    logger.exception("Unexpected error processing schedule %s", schedule_id)
                    result = ScheduleResult(schedule_id=schedule_id, outcome=ScheduleOutcome.FAILED, error=str(e))
               summary.results.append(result)

          summary.finished_at = datetime.utcnow()
          logger.info(
               "Recurring payment run for %s: %d scheduled, %d succeeded, %d failed, %d skipped",
               run_date.isoformat(), summary.total, summary.succeeded, summary.failed, summary.skipped
          )
          return summary

     def _process_one(self, schedule_id: int, run_date: date) -> ScheduleResult:
          with self.session_factory() as db:
               schedule = ledger_service.get_schedule(db, schedule_id)
               if not schedule:
                    raise NotFoundError("Auto-pay schedule not found", detail={"schedule_id": schedule_id})
               if not schedule.is_active:
                    return ScheduleResult(
                         schedule_id=schedule.id,
                         lease_id=schedule.lease_id,
                         outcome=ScheduleOutcome.SKIPPED,
                         error="Schedule is inactive",
                    )
               if schedule.end_date and run_date > schedule.end_date:
                    schedule.is_active = False
                    db.commit()
                    logger.info("Schedule %s ended on %s; deactivated", schedule.id, schedule.end_date)
                    return ScheduleResult(
                         schedule_id=schedule.id,
                         lease_id=schedule.lease_id,
                         outcome=ScheduleOutcome.SKIPPED,
                         error="Schedule has ended",
                    )

               amount = schedule.lease.monthly_rent
               result = ScheduleResult(
                    schedule_id=schedule.id,
                    lease_id=schedule.lease_id,
                    outcome=ScheduleOutcome.SUCCESS,
                    amount=str(amount),
               )
               request = SettlementRequest(
                    lease_id=schedule.lease_id,
                    tenant_id=schedule.tenant_id,
                    payment_method_id=schedule.payment_method_id,
                    amount=amount,
                    payment_month=run_date.month,
                    payment_year=run_date.year,
                    is_recurring=True,
                    recurring_schedule_id=schedule.id,
               )

               try:
                    payment = self.engine.settle_payment(db, request)
               except DuplicatePeriodPayment as e:
                    advance(schedule, run_date)
                    db.commit()
                    logger.info(
                         "Schedule %s skipped: period %s/%s already paid (payment %s)",
                         schedule.id, run_date.month, run_date.year, e.existing_payment_id
                    )
                    result.outcome = ScheduleOutcome.SKIPPED
                    result.payment_id = e.existing_payment_id
                    result.error = e.message
                    return result
               except GatewayError as e:
                    RecurringScheduleManager.record_failure(schedule, run_date)
                    db.commit()
                    logger.warning(
                         "Auto-pay failed for schedule %s (attempt %s): %s",
                         schedule.id, schedule.failed_payment_attempts, e.message
                    )
                    result.outcome = ScheduleOutcome.FAILED
                    result.payment_id = e.payment_id
                    result.error = e.message
                    return result
               except PaymentServiceError as e:
                    # lease or payment method no longer usable; no charge was attempted
                    RecurringScheduleManager.record_failure(schedule, run_date)
                    db.commit()
                    logger.warning("Auto-pay for schedule %s rejected: %s", schedule.id, e.message)
                    result.outcome = ScheduleOutcome.FAILED
                    result.error = e.message
                    return result

               RecurringScheduleManager.record_success(schedule, run_date)
               db.commit()
               logger.info(
                    "Auto-pay succeeded for schedule %s: payment %s, next payment %s",
                    schedule.id, payment.id, schedule.next_payment_date
               )
               result.payment_id = payment.id
               result.transaction_id = payment.gateway_transaction_id
               return result
