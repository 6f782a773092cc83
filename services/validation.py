# services/validation.py
"""Shared input validation and money helpers used across the services."""
import calendar
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from .exceptions import ValidationError

CENT = Decimal("0.01")


def to_money(value: Any, field: str = "amount", allow_zero: bool = True) -> Decimal:
     """Coerce value to a non-negative Decimal rounded to cents."""
     if value is None or value == "":
          if allow_zero:
               return Decimal("0.00")
          raise ValidationError(f"{field} is required")
     try:
          amount = Decimal(str(value))
          if not amount.is_finite():
               raise ValidationError(f"{field} must be a number", detail={"field": field, "value": str(value)})
          amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
     except (InvalidOperation, ValueError):
          raise ValidationError(f"{field} must be a number", detail={"field": field, "value": str(value)})
     if amount < 0 or (amount == 0 and not allow_zero):
          raise ValidationError(f"{field} must be positive", detail={"field": field, "value": str(value)})
     return amount


def compute_total_amount(amount: Any, late_fee_amount: Any = 0, processing_fee: Any = 0) -> Decimal:
     """total_amount = amount + late_fee_amount + processing_fee, in cents."""
     return (
          to_money(amount, "amount", allow_zero=False)
          + to_money(late_fee_amount, "late_fee_amount")
          + to_money(processing_fee, "processing_fee")
     )


def validate_period(payment_month: Any, payment_year: Any) -> tuple[int, int]:
     try:
          month, year = int(payment_month), int(payment_year)
     except (TypeError, ValueError):
          raise ValidationError("payment_month and payment_year must be integers")
     if not 1 <= month <= 12:
          raise ValidationError("payment_month must be between 1 and 12", detail={"payment_month": month})
     if not 2000 <= year <= 9999:
          raise ValidationError("payment_year is out of range", detail={"payment_year": year})
     return month, year


def validate_day_of_month(day: Any, field: str = "payment_day") -> int:
     try:
          value = int(day)
     except (TypeError, ValueError):
          raise ValidationError(f"{field} must be an integer")
     if not 1 <= value <= 31:
          raise ValidationError(f"{field} must be between 1 and 31", detail={field: value})
     return value


def clamp_day(year: int, month: int, day: int) -> date:
     """date(year, month, day), with day capped to the month's length."""
     return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def due_date_for_period(payment_month: int, payment_year: int, rent_due_day: Optional[int]) -> date:
     return clamp_day(payment_year, payment_month, rent_due_day or 1)
