# routers/leases.py
"""
Lease API routes.

Admins create and terminate leases; tenants read their current lease.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_session
from schemas.lease import LeaseCreate, LeaseResponse
from services import LeaseService
from utils.auth import verify_token
from .dependencies import admin_token

router = APIRouter(prefix="/api/leases", tags=["leases"])


@router.post(
     "",
     response_model=LeaseResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Create a lease"
)
def create_lease(
     lease_data: LeaseCreate,
     db: Session = Depends(get_session),
     token: dict = Depends(admin_token)
):
     return LeaseService.create_lease(db, **lease_data.model_dump())


@router.get("/me", response_model=Optional[LeaseResponse], summary="Get my active lease")
def get_my_lease(
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token)
):
     return LeaseService.get_tenant_lease(db, token["id"])


@router.post("/{lease_id}/terminate", response_model=LeaseResponse, summary="Terminate a lease")
def terminate_lease(
     lease_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(admin_token)
):
     """Ends the lease, vacates the unit and stops any auto-pay on it."""
     return LeaseService.terminate_lease(db, lease_id)
