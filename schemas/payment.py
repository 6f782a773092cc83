# schemas/payment.py
"""
Pydantic schemas for rent payment API request/response validation.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, ConfigDict

from models import PaymentStatus


class OneTimePaymentRequest(BaseModel):
     """Request body for POST /api/payments."""
     lease_id: int = Field(..., gt=0, description="Lease to pay rent for")
     payment_method_id: int = Field(..., gt=0, description="Stored payment method to charge")
     amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, description="Rent amount")
     payment_month: int = Field(..., ge=1, le=12)
     payment_year: int = Field(..., ge=2000, le=9999)
     notes: Optional[str] = Field(None, max_length=1000)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "lease_id": 1,
                    "payment_method_id": 3,
                    "amount": 2500.00,
                    "payment_month": 7,
                    "payment_year": 2026,
               }
          }
     )


class PaymentResponse(BaseModel):
     """Schema for rent payment response."""
     id: int
     lease_id: int
     tenant_id: int
     payment_method_id: Optional[int] = None
     amount: Decimal
     late_fee_amount: Decimal
     processing_fee: Decimal
     total_amount: Decimal
     currency: str
     payment_status: PaymentStatus
     payment_month: int
     payment_year: int
     rent_due_date: Optional[date] = None
     payment_date: Optional[datetime] = None
     gateway_transaction_id: Optional[str] = None
     masked_payment_info: Optional[str] = None
     failure_reason: Optional[str] = None
     is_recurring: bool
     recurring_schedule_id: Optional[int] = None
     refund_amount: Optional[Decimal] = None
     refund_date: Optional[datetime] = None

     model_config = ConfigDict(from_attributes=True)


class RefundRequest(BaseModel):
     """Request body for POST /api/payments/{payment_id}/refund. Omit amount for a full refund."""
     amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
     reason: Optional[str] = Field(None, max_length=500)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "amount": 100.00,
                    "reason": "Overcharged late fee",
               }
          }
     )


class RefundResponse(BaseModel):
     payment_id: int
     refund_id: Optional[str] = None
     amount: Decimal
     status: PaymentStatus


class GatewayEvent(BaseModel):
     """Webhook body posted by the payment gateway."""
     eventType: str = Field(..., min_length=1)
     data: dict[str, Any] = Field(default_factory=dict)

     model_config = ConfigDict(
          json_schema_extra={
               "example": {
                    "eventType": "payment.captured",
                    "data": {"id": "7012345678901234567890"},
               }
          }
     )
