from datetime import date, datetime
from decimal import Decimal

import pytest
import pytz
from sqlalchemy import select

from models import LeaseStatus, PaymentStatus, RecurringSchedule, RentPayment
from services import (
    NotFoundError,
    RecurringPaymentRunner,
    RecurringScheduleManager,
    RunInProgressError,
    RunnerState,
    ScheduleOutcome,
    SettlementEngine,
)

CREATED_ON = date(2026, 7, 15)
RUN_DATE = date(2026, 8, 1)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def runner(settlement, session_scope, sleeps):
    return RecurringPaymentRunner(
        settlement,
        session_factory=session_scope,
        delay_seconds=2,
        sleep=sleeps.append,
        today=lambda: RUN_DATE,
    )


@pytest.fixture
def enroll(db, factory):
    def _enroll(payment_day=1, tenant=None, **lease_kwargs):
        tenant = tenant or factory.user()
        lease = factory.lease(tenant, **lease_kwargs)
        card = factory.card(tenant)
        schedule = RecurringScheduleManager.create_schedule(
            db, lease.id, tenant.id, card.id, payment_day, today=CREATED_ON
        )
        return schedule

    return _enroll


def reload(db, schedule):
    db.expire_all()
    return db.get(RecurringSchedule, schedule.id)


def payments_for(db, lease_id):
    db.expire_all()
    return list(db.scalars(select(RentPayment).where(RentPayment.lease_id == lease_id).order_by(RentPayment.id)))


class TestDailyRun:
    def test_due_schedule_is_paid_and_advanced(self, db, runner, gateway, enroll):
        schedule = enroll(payment_day=1)

        summary = runner.run_due_payments(RUN_DATE)

        assert (summary.total, summary.succeeded, summary.failed, summary.skipped) == (1, 1, 0, 0)
        schedule = reload(db, schedule)
        assert schedule.next_payment_date == date(2026, 9, 1)
        assert schedule.last_payment_date == RUN_DATE
        assert schedule.total_payments_made == 1
        assert schedule.failed_payment_attempts == 0

        [payment] = payments_for(db, schedule.lease_id)
        assert payment.payment_status == PaymentStatus.COMPLETED
        assert payment.is_recurring is True
        assert payment.recurring_schedule_id == schedule.id
        assert (payment.payment_month, payment.payment_year) == (8, 2026)
        assert payment.amount == Decimal("2500.00")
        assert summary.results[0].payment_id == payment.id
        assert gateway.charges[0]["order_reference"] == f"recurring_{schedule.id}_8_2026"

    def test_rerun_on_same_day_charges_nothing(self, db, runner, gateway, enroll):
        schedule = enroll(payment_day=1)
        runner.run_due_payments(RUN_DATE)

        summary = runner.run_due_payments(RUN_DATE)

        assert summary.total == 0
        assert len(gateway.charges) == 1
        assert len(payments_for(db, schedule.lease_id)) == 1

    def test_declined_charge_advances_and_counts_failure(self, db, runner, gateway, enroll):
        schedule = enroll(payment_day=1)
        gateway.decline_next()

        summary = runner.run_due_payments(RUN_DATE)

        assert summary.failed == 1
        result = summary.results[0]
        assert result.outcome == ScheduleOutcome.FAILED
        assert result.error == "Card declined"
        schedule = reload(db, schedule)
        assert schedule.next_payment_date == date(2026, 9, 1)
        assert schedule.failed_payment_attempts == 1
        assert schedule.last_payment_date is None
        assert schedule.total_payments_made == 0
        [payment] = payments_for(db, schedule.lease_id)
        assert payment.payment_status == PaymentStatus.FAILED
        assert result.payment_id == payment.id

    def test_success_after_failure_resets_counter(self, db, runner, gateway, enroll):
        schedule = enroll(payment_day=1)
        gateway.decline_next()
        runner.run_due_payments(RUN_DATE)

        summary = runner.run_due_payments(date(2026, 9, 1))

        assert summary.succeeded == 1
        schedule = reload(db, schedule)
        assert schedule.failed_payment_attempts == 0
        assert schedule.total_payments_made == 1
        assert schedule.next_payment_date == date(2026, 10, 1)

    def test_period_already_paid_is_skipped(self, db, runner, settlement, gateway, enroll):
        schedule = enroll(payment_day=1)
        lease_id, tenant_id, method_id = schedule.lease_id, schedule.tenant_id, schedule.payment_method_id
        manual = settlement.initiate_one_time_payment(db, tenant_id, lease_id, method_id, "2500", 8, 2026)

        summary = runner.run_due_payments(RUN_DATE)

        assert summary.skipped == 1
        assert summary.results[0].payment_id == manual.id
        schedule = reload(db, schedule)
        assert schedule.next_payment_date == date(2026, 9, 1)
        assert schedule.total_payments_made == 0
        assert schedule.failed_payment_attempts == 0
        assert len(gateway.charges) == 1

    def test_one_schedule_error_does_not_stop_the_run(self, db, gateway, session_scope, enroll, now):
        broken = enroll(payment_day=1)
        healthy = enroll(payment_day=1)

        class ExplodingEngine(SettlementEngine):
            def settle_payment(self, db, request):
                if request.lease_id == broken.lease_id:
                    raise RuntimeError("database went away")
                return super().settle_payment(db, request)

        runner = RecurringPaymentRunner(
            ExplodingEngine(gateway, clock=lambda: now),
            session_factory=session_scope,
            delay_seconds=0,
        )

        summary = runner.run_due_payments(RUN_DATE)

        outcomes = {r.schedule_id: r for r in summary.results}
        assert outcomes[broken.id].outcome == ScheduleOutcome.FAILED
        assert outcomes[broken.id].error == "database went away"
        assert outcomes[healthy.id].outcome == ScheduleOutcome.SUCCESS
        assert reload(db, healthy).total_payments_made == 1

    def test_schedules_processed_in_id_order_with_delay(self, runner, gateway, enroll, sleeps):
        schedules = [enroll(payment_day=1) for _ in range(3)]

        summary = runner.run_due_payments(RUN_DATE)

        assert [r.schedule_id for r in summary.results] == [s.id for s in schedules]
        assert sleeps == [2, 2]

    def test_schedules_for_other_days_are_not_selected(self, runner, enroll):
        enroll(payment_day=2)
        assert runner.run_due_payments(RUN_DATE).total == 0

    def test_terminated_lease_is_not_selected(self, db, runner, enroll):
        schedule = enroll(payment_day=1)
        schedule.lease.status = LeaseStatus.TERMINATED
        db.commit()

        assert runner.run_due_payments(RUN_DATE).total == 0

    def test_cancelled_schedule_is_not_selected(self, db, runner, enroll):
        schedule = enroll(payment_day=1)
        RecurringScheduleManager.cancel_schedule(db, schedule.id)

        assert runner.run_due_payments(RUN_DATE).total == 0

    def test_schedule_past_end_date_is_deactivated(self, db, runner, gateway, enroll):
        schedule = enroll(payment_day=1)
        schedule.end_date = date(2026, 7, 31)
        db.commit()

        summary = runner.run_due_payments(RUN_DATE)

        assert summary.skipped == 1
        assert reload(db, schedule).is_active is False
        assert gateway.charges == []


class TestMonthEndSelection:
    def test_day_beyond_month_length_runs_on_last_day(self, db, runner, enroll):
        schedule = enroll(payment_day=31)

        assert runner.run_due_payments(date(2026, 9, 29)).total == 0
        summary = runner.run_due_payments(date(2026, 9, 30))

        assert summary.succeeded == 1
        schedule = reload(db, schedule)
        assert schedule.next_payment_date == date(2026, 10, 31)
        assert schedule.last_payment_date == date(2026, 9, 30)

    def test_day_within_month_length_waits_for_its_day(self, runner, enroll):
        enroll(payment_day=30)
        assert runner.run_due_payments(date(2026, 8, 31)).total == 0
        assert runner.run_due_payments(date(2026, 8, 30)).total == 1


class TestRunnerControl:
    def test_trigger_during_run_is_skipped(self, runner, gateway, enroll):
        enroll(payment_day=1)
        nested = []

        def reenter(token, amount, order_reference):
            nested.append((runner.state, runner.run_due_payments(RUN_DATE)))

        gateway.on_charge = reenter
        summary = runner.run_due_payments(RUN_DATE)

        assert nested == [(RunnerState.RUNNING, None)]
        assert summary.succeeded == 1
        assert runner.state == RunnerState.IDLE

    def test_process_now_uses_today(self, runner, enroll):
        enroll(payment_day=1)

        summary = runner.process_now()

        assert summary.run_date == RUN_DATE
        assert runner.last_summary is summary

    def test_process_single_schedule(self, db, runner, enroll):
        schedule = enroll(payment_day=1)

        result = runner.process_schedule(schedule.id, date(2026, 8, 10))

        assert result.outcome == ScheduleOutcome.SUCCESS
        assert reload(db, schedule).last_payment_date == date(2026, 8, 10)

    def test_process_unknown_schedule(self, runner):
        with pytest.raises(NotFoundError):
            runner.process_schedule(12345)

    def test_reminders_due_are_reported(self, runner, enroll):
        schedule = enroll(payment_day=1)

        summary = runner.run_due_payments(date(2026, 7, 29))

        assert summary.reminders_due == [schedule.id]
        assert summary.total == 0

    def test_single_schedule_run_waits_for_daily_run(self, db, runner, gateway, enroll):
        due = enroll(payment_day=1)
        other = enroll(payment_day=20)
        refused = []

        def retry_during_run(token, amount, order_reference):
            with pytest.raises(RunInProgressError):
                runner.process_schedule(other.id)
            refused.append(order_reference)

        gateway.on_charge = retry_during_run
        runner.run_due_payments(RUN_DATE)

        assert refused == [f"recurring_{due.id}_8_2026"]
        assert reload(db, other).failed_payment_attempts == 0
        assert reload(db, other).total_payments_made == 0

    def test_daily_run_is_skipped_during_single_schedule_run(self, runner, gateway, enroll):
        schedule = enroll(payment_day=1)
        nested = []
        gateway.on_charge = lambda *args: nested.append(runner.run_due_payments(RUN_DATE))

        result = runner.process_schedule(schedule.id)

        assert nested == [None]
        assert result.outcome == ScheduleOutcome.SUCCESS
        assert runner.state == RunnerState.IDLE

    def test_start_registers_daily_job(self, runner):
        assert runner.get_status()["is_scheduled"] is False

        runner.start()
        try:
            status = runner.get_status()
            assert status["is_scheduled"] is True
            assert status["next_run_time"] is not None
            assert status["schedule"] == "daily at 02:00 UTC"
        finally:
            runner.stop()

        assert runner.get_status()["is_scheduled"] is False


class TestRunDateZone:
    def build(self, settlement, session_scope, zone):
        return RecurringPaymentRunner(settlement, session_factory=session_scope, delay_seconds=0, timezone=zone)

    def test_run_date_follows_scheduler_zone(self, settlement, session_scope):
        east = self.build(settlement, session_scope, "Pacific/Kiritimati")
        west = self.build(settlement, session_scope, "Pacific/Pago_Pago")

        assert east.today() == datetime.now(pytz.timezone("Pacific/Kiritimati")).date()
        assert west.today() == datetime.now(pytz.timezone("Pacific/Pago_Pago")).date()
        # UTC+14 and UTC-11 are never on the same calendar day
        assert east.today() > west.today()

    def test_process_now_uses_zone_date(self, settlement, session_scope):
        runner = self.build(settlement, session_scope, "Asia/Tokyo")

        summary = runner.process_now()

        assert summary.run_date == datetime.now(pytz.timezone("Asia/Tokyo")).date()

    def test_unknown_zone_is_rejected(self, settlement, session_scope):
        with pytest.raises(pytz.UnknownTimeZoneError):
            self.build(settlement, session_scope, "Mars/Olympus_Mons")
