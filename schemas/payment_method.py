# schemas/payment_method.py
"""
Pydantic schemas for stored payment methods.

Raw card/bank numbers are accepted only on creation and are forwarded to
the gateway for tokenization; responses carry masked fields only.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from models import PaymentMethodStatus, PaymentType


class BillingAddress(BaseModel):
     line1: Optional[str] = Field(None, max_length=255)
     line2: Optional[str] = Field(None, max_length=255)
     city: Optional[str] = Field(None, max_length=100)
     state: Optional[str] = Field(None, max_length=50)
     zip_code: Optional[str] = Field(None, max_length=10)
     country: str = Field("US", max_length=50)


class CardDetails(BaseModel):
     number: str = Field(..., min_length=12, max_length=19, pattern=r"^\d+$")
     expiry_month: str = Field(..., pattern=r"^(0?[1-9]|1[0-2])$")
     expiry_year: str = Field(..., pattern=r"^\d{4}$")
     cvv: str = Field(..., min_length=3, max_length=4, pattern=r"^\d+$")


class BankAccountDetails(BaseModel):
     account_number: str = Field(..., min_length=4, max_length=17, pattern=r"^\d+$")
     routing_number: str = Field(..., min_length=9, max_length=9, pattern=r"^\d+$")
     account_type: Literal["checking", "savings"] = "checking"
     bank_name: Optional[str] = Field(None, max_length=100)


class PaymentMethodCreate(BaseModel):
     """Request body for POST /api/payment-methods."""
     payment_type: Literal["card", "ach"]
     card: Optional[CardDetails] = None
     ach: Optional[BankAccountDetails] = None
     billing_address: BillingAddress = Field(default_factory=BillingAddress)
     nickname: Optional[str] = Field(None, max_length=100)
     is_default: bool = False

     @model_validator(mode="after")
     def check_instrument(self):
          if self.payment_type == "card" and self.card is None:
               raise ValueError("card details are required for payment_type=card")
          if self.payment_type == "ach" and self.ach is None:
               raise ValueError("ach details are required for payment_type=ach")
          return self


class PaymentMethodResponse(BaseModel):
     id: int
     user_id: int
     payment_type: PaymentType
     nickname: Optional[str] = None
     display_name: str
     card_last_four: Optional[str] = None
     card_brand: Optional[str] = None
     card_expiry_month: Optional[str] = None
     card_expiry_year: Optional[str] = None
     account_last_four: Optional[str] = None
     bank_name: Optional[str] = None
     is_default: bool
     status: PaymentMethodStatus
     created_at: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)
