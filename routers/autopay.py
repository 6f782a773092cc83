# routers/autopay.py
"""
Auto-pay API.

Tenant routes manage the tenant's recurring rent schedule; operator routes
trigger and inspect the recurring payment runner.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_session
from schemas.autopay import (
     RunnerStatusResponse,
     RunSummaryResponse,
     ScheduleCreate,
     ScheduleResponse,
     ScheduleResultResponse,
     ScheduleUpdate,
)
from services import RecurringPaymentRunner, RecurringScheduleManager, ReminderOptions
from services.recurring_runner import RunSummary, ScheduleResult
from utils.auth import verify_token
from .dependencies import admin_token, get_recurring_runner, tenant_scope

router = APIRouter(prefix="/api/autopay", tags=["autopay"])
admin_router = APIRouter(prefix="/api/admin/recurring-payments", tags=["autopay-admin"])


def _reminder_options(body) -> ReminderOptions:
     return ReminderOptions(
          send_reminder_email=body.send_reminder_email,
          reminder_days_before=body.reminder_days_before,
          send_receipt_email=body.send_receipt_email,
     )


def _result_response(result: ScheduleResult) -> ScheduleResultResponse:
     return ScheduleResultResponse(
          schedule_id=result.schedule_id,
          outcome=result.outcome.value,
          lease_id=result.lease_id,
          amount=result.amount,
          payment_id=result.payment_id,
          transaction_id=result.transaction_id,
          error=result.error,
     )


def _summary_response(summary: RunSummary) -> RunSummaryResponse:
     return RunSummaryResponse(
          run_date=summary.run_date,
          started_at=summary.started_at,
          finished_at=summary.finished_at,
          total=summary.total,
          succeeded=summary.succeeded,
          failed=summary.failed,
          skipped=summary.skipped,
          reminders_due=summary.reminders_due,
          results=[_result_response(r) for r in summary.results],
     )


# ---------------------------------------------------------------------------
# Tenant routes
# ---------------------------------------------------------------------------

@router.get("", response_model=Optional[ScheduleResponse], summary="Get my active auto-pay schedule")
def get_autopay(
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     return RecurringScheduleManager.get_active_schedule(db, token["id"])


@router.post(
     "",
     response_model=ScheduleResponse,
     status_code=status.HTTP_201_CREATED,
     summary="Set up auto-pay",
)
def create_autopay(
     body: ScheduleCreate,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     """
     Enroll a lease in auto-pay. Any active schedule for the lease is
     replaced; the first charge is one month from today on **payment_day**.
     """
     return RecurringScheduleManager.create_schedule(
          db,
          lease_id=body.lease_id,
          tenant_id=token["id"],
          payment_method_id=body.payment_method_id,
          payment_day=body.payment_day,
          reminder_opts=_reminder_options(body),
     )


@router.put("/{schedule_id}", response_model=ScheduleResponse, summary="Update auto-pay")
def update_autopay(
     schedule_id: int,
     body: ScheduleUpdate,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     return RecurringScheduleManager.update_schedule(
          db,
          schedule_id,
          tenant_id=tenant_scope(token),
          payment_method_id=body.payment_method_id,
          payment_day=body.payment_day,
          reminder_opts=_reminder_options(body),
     )


@router.delete("/{schedule_id}", response_model=ScheduleResponse, summary="Cancel auto-pay")
def cancel_autopay(
     schedule_id: int,
     db: Session = Depends(get_session),
     token: dict = Depends(verify_token),
):
     return RecurringScheduleManager.cancel_schedule(db, schedule_id, tenant_id=tenant_scope(token))


# ---------------------------------------------------------------------------
# Operator routes
# ---------------------------------------------------------------------------

@admin_router.post("/run", response_model=RunSummaryResponse, summary="Run today's auto-pay now")
def run_recurring_payments(
     token: dict = Depends(admin_token),
     runner: RecurringPaymentRunner = Depends(get_recurring_runner),
):
     summary = runner.process_now()
     if summary is None:
          raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A recurring payment run is already in progress")
     return _summary_response(summary)


@admin_router.post(
     "/run/{schedule_id}",
     response_model=ScheduleResultResponse,
     summary="Settle one schedule for the current period",
)
def run_single_schedule(
     schedule_id: int,
     token: dict = Depends(admin_token),
     runner: RecurringPaymentRunner = Depends(get_recurring_runner),
):
     return _result_response(runner.process_schedule(schedule_id))


@admin_router.get("/status", response_model=RunnerStatusResponse, summary="Runner status")
def runner_status(
     token: dict = Depends(admin_token),
     runner: RecurringPaymentRunner = Depends(get_recurring_runner),
):
     return runner.get_status()
