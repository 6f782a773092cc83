from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from models import LeaseStatus, PaymentMethodStatus, RecurringSchedule
from services import NotFoundError, RecurringScheduleManager, ReminderOptions, ValidationError

TODAY = date(2026, 7, 15)


@pytest.fixture
def tenant(factory):
    return factory.user()


@pytest.fixture
def lease(factory, tenant):
    return factory.lease(tenant)


@pytest.fixture
def card(factory, tenant):
    return factory.card(tenant)


def create(db, lease, card, payment_day=1, **kwargs):
    return RecurringScheduleManager.create_schedule(
        db, lease.id, lease.tenant_id, card.id, payment_day, today=TODAY, **kwargs
    )


def active_schedules(db, lease_id):
    return list(
        db.scalars(
            select(RecurringSchedule).where(
                RecurringSchedule.lease_id == lease_id, RecurringSchedule.is_active.is_(True)
            )
        )
    )


class TestCreateSchedule:
    def test_first_payment_is_one_month_out(self, db, lease, card):
        schedule = create(db, lease, card, payment_day=1)

        assert schedule.is_active is True
        assert schedule.next_payment_date == date(2026, 8, 1)
        assert schedule.start_date == TODAY
        assert schedule.end_date == lease.lease_end_date
        assert schedule.default_amount == Decimal("2500.00")
        assert schedule.total_payments_made == 0
        assert schedule.failed_payment_attempts == 0
        assert schedule.send_reminder_email is True
        assert schedule.reminder_days_before == 3

    def test_payment_day_is_clamped(self, db, factory, tenant, card):
        lease = factory.lease(tenant)
        schedule = RecurringScheduleManager.create_schedule(
            db, lease.id, tenant.id, card.id, 31, today=date(2026, 1, 31)
        )
        assert schedule.next_payment_date == date(2026, 2, 28)

    def test_new_schedule_replaces_active_one(self, db, lease, card):
        first = create(db, lease, card, payment_day=1)
        second = create(db, lease, card, payment_day=5)

        db.refresh(first)
        assert first.is_active is False
        assert [s.id for s in active_schedules(db, lease.id)] == [second.id]

    def test_reminder_options(self, db, lease, card):
        schedule = create(
            db, lease, card,
            reminder_opts=ReminderOptions(send_reminder_email=False, reminder_days_before=5, send_receipt_email=False),
        )
        assert schedule.send_reminder_email is False
        assert schedule.reminder_days_before == 5
        assert schedule.send_receipt_email is False

    @pytest.mark.parametrize("payment_day", [0, 32])
    def test_invalid_payment_day(self, db, lease, card, payment_day):
        with pytest.raises(ValidationError):
            create(db, lease, card, payment_day=payment_day)
        assert active_schedules(db, lease.id) == []

    def test_invalid_reminder_lead_time(self, db, lease, card):
        with pytest.raises(ValidationError):
            create(db, lease, card, reminder_opts=ReminderOptions(reminder_days_before=29))

    def test_inactive_lease(self, db, factory, tenant, card):
        lease = factory.lease(tenant, status=LeaseStatus.EXPIRED)
        with pytest.raises(NotFoundError):
            create(db, lease, card)

    def test_deleted_payment_method(self, db, factory, tenant, lease):
        card = factory.card(tenant, status=PaymentMethodStatus.DELETED)
        with pytest.raises(NotFoundError):
            create(db, lease, card)

    def test_lease_of_another_tenant(self, db, factory, card):
        other_lease = factory.lease(factory.user())
        with pytest.raises(NotFoundError):
            RecurringScheduleManager.create_schedule(
                db, other_lease.id, card.user_id, card.id, 1, today=TODAY
            )


class TestUpdateSchedule:
    def test_change_day_keeps_next_payment_date(self, db, lease, card):
        schedule = create(db, lease, card, payment_day=1)

        updated = RecurringScheduleManager.update_schedule(db, schedule.id, tenant_id=lease.tenant_id, payment_day=15)

        assert updated.payment_day == 15
        assert updated.next_payment_date == date(2026, 8, 1)

    def test_change_payment_method(self, db, factory, tenant, lease, card):
        schedule = create(db, lease, card)
        other_card = factory.card(tenant, card_last_four="1111")

        updated = RecurringScheduleManager.update_schedule(db, schedule.id, payment_method_id=other_card.id)

        assert updated.payment_method_id == other_card.id

    def test_payment_method_must_belong_to_schedule_tenant(self, db, factory, lease, card):
        schedule = create(db, lease, card)
        stranger_card = factory.card(factory.user())

        with pytest.raises(NotFoundError):
            RecurringScheduleManager.update_schedule(db, schedule.id, payment_method_id=stranger_card.id)

    def test_partial_reminder_update(self, db, lease, card):
        schedule = create(db, lease, card)

        updated = RecurringScheduleManager.update_schedule(
            db, schedule.id, reminder_opts=ReminderOptions(reminder_days_before=7)
        )

        assert updated.reminder_days_before == 7
        assert updated.send_reminder_email is True

    def test_other_tenant_cannot_update(self, db, factory, lease, card):
        schedule = create(db, lease, card)
        with pytest.raises(NotFoundError):
            RecurringScheduleManager.update_schedule(db, schedule.id, tenant_id=factory.user().id, payment_day=3)


class TestCancelSchedule:
    def test_cancel_is_idempotent(self, db, lease, card):
        schedule = create(db, lease, card)

        RecurringScheduleManager.cancel_schedule(db, schedule.id, tenant_id=lease.tenant_id)
        again = RecurringScheduleManager.cancel_schedule(db, schedule.id, tenant_id=lease.tenant_id)

        assert again.is_active is False
        assert db.get(RecurringSchedule, schedule.id) is not None

    def test_cancel_unknown_schedule(self, db):
        with pytest.raises(NotFoundError):
            RecurringScheduleManager.cancel_schedule(db, 404)

    def test_get_active_schedule(self, db, lease, card):
        assert RecurringScheduleManager.get_active_schedule(db, lease.tenant_id) is None

        schedule = create(db, lease, card)
        assert RecurringScheduleManager.get_active_schedule(db, lease.tenant_id).id == schedule.id

        RecurringScheduleManager.cancel_schedule(db, schedule.id)
        assert RecurringScheduleManager.get_active_schedule(db, lease.tenant_id) is None


def test_reminder_date(db, lease, card):
    schedule = create(db, lease, card, reminder_opts=ReminderOptions(reminder_days_before=3))
    assert schedule.reminder_date == date(2026, 7, 29)

    schedule.send_reminder_email = False
    assert schedule.reminder_date is None
