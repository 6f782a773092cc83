# models/payment_method.py
"""
PaymentMethod model - a tokenized card or bank account owned by one user.

Only masked identifying fields and the gateway token are stored; the full
card number, CVV and bank account number never reach the database.
Removal is a soft delete (status=deleted).
"""
import enum
from datetime import date
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from .base import Base, value_enum


class PaymentType(str, enum.Enum):
     CARD = "card"
     ACH = "ach"


class BankAccountType(str, enum.Enum):
     CHECKING = "checking"
     SAVINGS = "savings"


class PaymentMethodStatus(str, enum.Enum):
     ACTIVE = "active"
     EXPIRED = "expired"
     DELETED = "deleted"


class PaymentMethod(Base):
     __tablename__ = "payment_methods"

     id = Column(Integer, primary_key=True, autoincrement=True)
     user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
     payment_type = Column(value_enum(PaymentType, "payment_type"), nullable=False)
     nickname = Column(String(100), nullable=True)

     # Card fields (masked)
     card_last_four = Column(String(4), nullable=True)
     card_brand = Column(String(20), nullable=True)
     card_expiry_month = Column(String(2), nullable=True)
     card_expiry_year = Column(String(4), nullable=True)

     # ACH fields (masked)
     account_last_four = Column(String(4), nullable=True)
     account_type = Column(value_enum(BankAccountType, "bank_account_type"), nullable=True)
     bank_name = Column(String(100), nullable=True)

     # Opaque gateway token used for every charge
     gateway_token = Column(String(255), nullable=False)

     # Billing address
     billing_address_line1 = Column(String(255), nullable=True)
     billing_address_line2 = Column(String(255), nullable=True)
     billing_city = Column(String(100), nullable=True)
     billing_state = Column(String(50), nullable=True)
     billing_zip_code = Column(String(10), nullable=True)
     billing_country = Column(String(50), default="US", nullable=False)

     is_default = Column(Boolean, default=False, nullable=False)
     status = Column(
          value_enum(PaymentMethodStatus, "payment_method_status"),
          default=PaymentMethodStatus.ACTIVE,
          nullable=False,
          index=True
     )

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     user = relationship("User", back_populates="payment_methods")

     def __repr__(self):
          return f"<PaymentMethod(id={self.id}, user_id={self.user_id}, type='{self.payment_type.value}')>"

     @property
     def display_name(self) -> str:
          if self.nickname:
               return self.nickname
          if self.payment_type == PaymentType.CARD:
               return f"{self.card_brand or 'Card'} ending in {self.card_last_four}"
          return f"{self.bank_name or 'Bank'} account ending in {self.account_last_four}"

     @property
     def masked_info(self) -> str:
          last_four = self.card_last_four if self.payment_type == PaymentType.CARD else self.account_last_four
          return f"{self.payment_type.value.upper()} ****{last_four or '????'}"

     def is_card_expired(self, today: Optional[date] = None) -> bool:
          """A card is usable through the last day of its expiry month."""
          if self.payment_type != PaymentType.CARD:
               return False
          if not self.card_expiry_month or not self.card_expiry_year:
               return False
          today = today or date.today()
          return (today.year, today.month) > (int(self.card_expiry_year), int(self.card_expiry_month))

     def billing_info(self) -> dict:
          return {
               "line1": self.billing_address_line1,
               "line2": self.billing_address_line2,
               "city": self.billing_city,
               "state": self.billing_state,
               "zip_code": self.billing_zip_code,
               "country": self.billing_country or "US",
          }
