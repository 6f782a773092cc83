# schemas/autopay.py
"""
Pydantic schemas for auto-pay schedules and the recurring payment runner.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


class ScheduleCreate(BaseModel):
     """Request body for POST /api/autopay."""
     lease_id: int = Field(..., gt=0)
     payment_method_id: int = Field(..., gt=0)
     payment_day: int = Field(..., ge=1, le=31, description="Day of month to charge (clamped in short months)")
     send_reminder_email: Optional[bool] = None
     reminder_days_before: Optional[int] = Field(None, ge=0, le=28)
     send_receipt_email: Optional[bool] = None

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "lease_id": 1,
                    "payment_method_id": 3,
                    "payment_day": 1,
                    "send_reminder_email": True,
                    "reminder_days_before": 3,
               }
          }
     )


class ScheduleUpdate(BaseModel):
     """Partial update; omitted fields are left unchanged."""
     payment_method_id: Optional[int] = Field(None, gt=0)
     payment_day: Optional[int] = Field(None, ge=1, le=31)
     send_reminder_email: Optional[bool] = None
     reminder_days_before: Optional[int] = Field(None, ge=0, le=28)
     send_receipt_email: Optional[bool] = None


class ScheduleResponse(BaseModel):
     id: int
     lease_id: int
     tenant_id: int
     payment_method_id: int
     is_active: bool
     payment_day: int
     start_date: date
     end_date: Optional[date] = None
     default_amount: Decimal
     next_payment_date: date
     last_payment_date: Optional[date] = None
     total_payments_made: int
     failed_payment_attempts: int
     send_reminder_email: bool
     reminder_days_before: int
     send_receipt_email: bool

     model_config = ConfigDict(from_attributes=True)


class ScheduleResultResponse(BaseModel):
     schedule_id: int
     outcome: str
     lease_id: Optional[int] = None
     amount: Optional[str] = None
     payment_id: Optional[int] = None
     transaction_id: Optional[str] = None
     error: Optional[str] = None

     model_config = ConfigDict(from_attributes=True)


class RunSummaryResponse(BaseModel):
     run_date: date
     started_at: datetime
     finished_at: Optional[datetime] = None
     total: int
     succeeded: int
     failed: int
     skipped: int
     reminders_due: List[int] = []
     results: List[ScheduleResultResponse] = []

     model_config = ConfigDict(from_attributes=True)


class RunnerStatusResponse(BaseModel):
     state: str
     is_scheduled: bool
     next_run_time: Optional[str] = None
     schedule: str
     last_run_date: Optional[str] = None
