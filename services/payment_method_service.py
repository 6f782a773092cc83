# services/payment_method_service.py
"""
Payment Method Service - tokenized cards and bank accounts.

Raw instrument details go to the gateway for tokenization and are dropped;
only the token and masked fields are stored. Each user has at most one
default method. Removal is a soft delete, refused while an active auto-pay
schedule still charges the method.
"""
import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from models import BankAccountType, PaymentMethod, PaymentMethodStatus, PaymentType
from . import ledger_service
from .exceptions import GatewayError, NotFoundError, PaymentMethodInUseError, ValidationError

logger = logging.getLogger(__name__)


class PaymentMethodService:

     def __init__(self, gateway):
          self.gateway = gateway

     def add_payment_method(
          self,
          db: Session,
          user_id: int,
          payment_type: str,
          instrument: dict,
          billing_address: Optional[dict] = None,
          billing_name: Optional[dict] = None,
          nickname: Optional[str] = None,
          is_default: bool = False,
     ) -> PaymentMethod:
          """
          Tokenize an instrument and store the masked result.

          Args:
               instrument: card {number, expiry_month, expiry_year, cvv} or
                    ach {account_number, routing_number, account_type, bank_name}
               billing_address: {line1, line2, city, state, zip_code, country}
               billing_name: {first_name, last_name} sent to the gateway only
          """
          try:
               kind = PaymentType(payment_type)
          except ValueError:
               raise ValidationError("Payment type must be card or ach", detail={"payment_type": payment_type})
          billing_address = billing_address or {}

          result = self.gateway.tokenize_instrument(
               kind.value, instrument, {**(billing_name or {}), "address": billing_address}
          )
          if not result.success or not result.token:
               logger.warning("Tokenization failed for user %s: %s", user_id, result.error_message)
               raise GatewayError(result.error_message, detail=result.error)

          method = PaymentMethod(
               user_id=user_id,
               payment_type=kind,
               nickname=nickname,
               gateway_token=result.token,
               billing_address_line1=billing_address.get("line1"),
               billing_address_line2=billing_address.get("line2"),
               billing_city=billing_address.get("city"),
               billing_state=billing_address.get("state"),
               billing_zip_code=billing_address.get("zip_code"),
               billing_country=billing_address.get("country") or "US",
               is_default=False,
               status=PaymentMethodStatus.ACTIVE,
          )
          if kind == PaymentType.CARD:
               number = str(instrument.get("number") or "")
               method.card_last_four = result.last_four or number[-4:] or None
               method.card_brand = result.card_brand or instrument.get("brand")
               method.card_expiry_month = str(instrument.get("expiry_month") or "").zfill(2) or None
               method.card_expiry_year = str(instrument.get("expiry_year") or "") or None
          else:
               number = str(instrument.get("account_number") or "")
               method.account_last_four = result.last_four or number[-4:] or None
               method.bank_name = instrument.get("bank_name")
               if instrument.get("account_type"):
                    method.account_type = BankAccountType(instrument["account_type"])

          db.add(method)
          db.flush()
          others = [m for m in ledger_service.list_payment_methods(db, user_id) if m.id != method.id]
          # a user's first method becomes the default
          if is_default or not others:
               self._make_default(db, method)
          db.commit()
          logger.info("Added %s payment method %s for user %s", kind.value, method.id, user_id)
          return method

     @staticmethod
     def list_payment_methods(db: Session, user_id: int) -> list[PaymentMethod]:
          return ledger_service.list_payment_methods(db, user_id)

     def set_default_payment_method(self, db: Session, user_id: int, payment_method_id: int) -> PaymentMethod:
          method = ledger_service.get_payment_method(db, payment_method_id, user_id=user_id, active_only=True)
          if not method:
               raise NotFoundError("Payment method not found", detail={"payment_method_id": payment_method_id})
          self._make_default(db, method)
          db.commit()
          return method

     @staticmethod
     def _make_default(db: Session, method: PaymentMethod) -> None:
          db.execute(
               update(PaymentMethod)
               .where(PaymentMethod.user_id == method.user_id, PaymentMethod.id != method.id)
               .values(is_default=False)
               .execution_options(synchronize_session="fetch")
          )
          method.is_default = True

     @staticmethod
     def delete_payment_method(db: Session, user_id: int, payment_method_id: int) -> PaymentMethod:
          method = ledger_service.get_payment_method(db, payment_method_id, user_id=user_id)
          if not method or method.status == PaymentMethodStatus.DELETED:
               raise NotFoundError("Payment method not found", detail={"payment_method_id": payment_method_id})
          if ledger_service.payment_method_in_use(db, method.id):
               raise PaymentMethodInUseError(
                    "Cannot delete payment method used in active auto-pay schedule",
                    detail={"payment_method_id": method.id},
               )
          method.status = PaymentMethodStatus.DELETED
          method.is_default = False
          db.commit()
          logger.info("Soft-deleted payment method %s for user %s", method.id, user_id)
          return method
