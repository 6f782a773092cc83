# schemas/lease.py
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from models import LeaseStatus


class LeaseCreate(BaseModel):
     """Request body for POST /api/leases."""
     unit_id: int = Field(..., gt=0)
     tenant_id: int = Field(..., gt=0)
     monthly_rent: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
     security_deposit: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
     lease_start_date: date
     lease_end_date: date
     rent_due_day: int = Field(1, ge=1, le=31)
     grace_period_days: int = Field(5, ge=0, le=31)
     late_fee_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)

     @model_validator(mode="after")
     def check_dates(self):
          if self.lease_end_date <= self.lease_start_date:
               raise ValueError("lease_end_date must be after lease_start_date")
          return self

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "unit_id": 4,
                    "tenant_id": 12,
                    "monthly_rent": 2500.00,
                    "lease_start_date": "2026-01-01",
                    "lease_end_date": "2026-12-31",
                    "rent_due_day": 1,
                    "late_fee_amount": 50.00,
               }
          }
     )


class LeaseResponse(BaseModel):
     id: int
     unit_id: int
     tenant_id: int
     monthly_rent: Decimal
     security_deposit: Optional[Decimal] = None
     lease_start_date: date
     lease_end_date: date
     rent_due_day: int
     grace_period_days: int
     late_fee_amount: Decimal
     status: LeaseStatus
     created_at: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)
