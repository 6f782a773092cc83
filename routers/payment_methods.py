# routers/payment_methods.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_session
from schemas.payment_method import PaymentMethodCreate, PaymentMethodResponse
from services import PaymentMethodService
from utils.auth import verify_token
from .dependencies import get_payment_method_service

router = APIRouter(prefix="/api/payment-methods", tags=["payment-methods"])


@router.get("", response_model=List[PaymentMethodResponse], summary="List my payment methods")
def list_payment_methods(
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     return PaymentMethodService.list_payment_methods(db, token["id"])


@router.post(
     "",
     response_model=PaymentMethodResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Add a card or bank account",
)
def add_payment_method(
     body: PaymentMethodCreate,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
     service: PaymentMethodService = Depends(get_payment_method_service),
):
     """
     Tokenize the instrument with the gateway and store the masked result.
     Raw numbers are never persisted.
     """
     instrument = body.card if body.payment_type == "card" else body.ach
     return service.add_payment_method(
          db,
          user_id=token["id"],
          payment_type=body.payment_type,
          instrument=instrument.model_dump(),
          billing_address=body.billing_address.model_dump(),
          nickname=body.nickname,
          is_default=body.is_default,
     )


@router.put("/{payment_method_id}/default", response_model=PaymentMethodResponse, summary="Make default")
def set_default_payment_method(
     payment_method_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
     service: PaymentMethodService = Depends(get_payment_method_service),
):
     return service.set_default_payment_method(db, token["id"], payment_method_id)


@router.delete("/{payment_method_id}", response_model=PaymentMethodResponse, summary="Remove a payment method")
def delete_payment_method(
     payment_method_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     return PaymentMethodService.delete_payment_method(db, token["id"], payment_method_id)
