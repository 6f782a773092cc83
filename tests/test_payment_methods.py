import pytest

from models import BankAccountType, PaymentMethodStatus, PaymentType
from services import (
    GatewayError,
    NotFoundError,
    PaymentMethodInUseError,
    PaymentMethodService,
    RecurringScheduleManager,
    ValidationError,
)

CARD = {"number": "4242424242424242", "expiry_month": "3", "expiry_year": "2030", "cvv": "123"}
ACH = {"account_number": "000123456789", "routing_number": "110000000", "account_type": "savings", "bank_name": "First Bank"}


@pytest.fixture
def service(gateway):
    return PaymentMethodService(gateway)


@pytest.fixture
def tenant(factory):
    return factory.user()


def test_add_card_stores_only_masked_fields(db, service, tenant):
    method = service.add_payment_method(
        db, tenant.id, "card", CARD, billing_address={"line1": "1 Main St", "city": "Austin", "zip_code": "78701"}
    )

    assert method.payment_type == PaymentType.CARD
    assert method.gateway_token == "tok_1"
    assert method.card_last_four == "4242"
    assert method.card_brand == "visa"
    assert method.card_expiry_month == "03"
    assert method.card_expiry_year == "2030"
    assert method.billing_city == "Austin"
    assert method.display_name == "visa ending in 4242"
    assert method.masked_info == "CARD ****4242"
    assert "4242424242424242" not in repr(vars(method))


def test_add_bank_account(db, service, tenant):
    method = service.add_payment_method(db, tenant.id, "ach", ACH, nickname="Savings")

    assert method.payment_type == PaymentType.ACH
    assert method.account_last_four == "6789"
    assert method.account_type == BankAccountType.SAVINGS
    assert method.display_name == "Savings"
    assert method.masked_info == "ACH ****6789"


def test_first_method_becomes_default(db, service, tenant):
    first = service.add_payment_method(db, tenant.id, "card", CARD)
    second = service.add_payment_method(db, tenant.id, "ach", ACH)

    assert first.is_default is True
    assert second.is_default is False


def test_only_one_default(db, service, tenant):
    first = service.add_payment_method(db, tenant.id, "card", CARD)
    second = service.add_payment_method(db, tenant.id, "ach", ACH, is_default=True)

    db.refresh(first)
    assert first.is_default is False
    assert second.is_default is True

    service.set_default_payment_method(db, tenant.id, first.id)
    db.refresh(second)
    assert [m.id for m in PaymentMethodService.list_payment_methods(db, tenant.id)] == [first.id, second.id]
    assert second.is_default is False


def test_set_default_requires_ownership(db, service, factory, tenant):
    method = service.add_payment_method(db, tenant.id, "card", CARD)
    with pytest.raises(NotFoundError):
        service.set_default_payment_method(db, factory.user().id, method.id)


def test_tokenization_failure_stores_nothing(db, service, tenant):
    with pytest.raises(GatewayError):
        service.add_payment_method(db, tenant.id, "card", {**CARD, "number": "4000000000000002"})
    assert PaymentMethodService.list_payment_methods(db, tenant.id) == []


def test_unknown_payment_type(db, service, tenant):
    with pytest.raises(ValidationError):
        service.add_payment_method(db, tenant.id, "crypto", {})


def test_delete_is_soft(db, service, tenant):
    method = service.add_payment_method(db, tenant.id, "card", CARD)

    deleted = PaymentMethodService.delete_payment_method(db, tenant.id, method.id)

    assert deleted.status == PaymentMethodStatus.DELETED
    assert deleted.is_default is False
    assert PaymentMethodService.list_payment_methods(db, tenant.id) == []
    with pytest.raises(NotFoundError):
        PaymentMethodService.delete_payment_method(db, tenant.id, method.id)


def test_method_used_by_active_schedule_cannot_be_deleted(db, service, factory, tenant):
    lease = factory.lease(tenant)
    method = service.add_payment_method(db, tenant.id, "card", CARD)
    schedule = RecurringScheduleManager.create_schedule(db, lease.id, tenant.id, method.id, 1)

    with pytest.raises(PaymentMethodInUseError):
        PaymentMethodService.delete_payment_method(db, tenant.id, method.id)

    RecurringScheduleManager.cancel_schedule(db, schedule.id)
    assert PaymentMethodService.delete_payment_method(db, tenant.id, method.id).status == PaymentMethodStatus.DELETED
