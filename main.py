# main.py
"""
Rent payments API.

Assembles the FastAPI app: logging, CORS, the service objects shared by the
routers (kept on app.state), the error handlers, and the daily auto-pay
scheduler started and stopped with the app.
"""
import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS, LOG_LEVEL, RECURRING_SCHEDULER_ENABLED
from database import check_connection, get_session_context
from routers import (
     autopay_admin_router,
     autopay_router,
     leases_router,
     payment_methods_router,
     payments_router,
)
from services import (
     PaymentGatewayClient,
     PaymentMethodService,
     PaymentServiceError,
     RecurringPaymentRunner,
     SettlementEngine,
)
from utils.logging_config import configure_logging

configure_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
     if not check_connection():
          logger.warning("Database is not reachable at startup")
     if RECURRING_SCHEDULER_ENABLED:
          app.state.recurring_runner.start()
     try:
          yield
     finally:
          app.state.recurring_runner.stop()


# App instance
app = FastAPI(title="Rent Payments API", lifespan=lifespan)

# CORS
app.add_middleware(
     CORSMiddleware,
     allow_origins=CORS_ORIGINS,
     allow_credentials=True,
     allow_methods=["*"],
     allow_headers=["*"],
)

# Services
gateway = PaymentGatewayClient()
app.state.gateway = gateway
app.state.settlement_engine = SettlementEngine(gateway)
app.state.payment_method_service = PaymentMethodService(gateway)
app.state.recurring_runner = RecurringPaymentRunner(
     app.state.settlement_engine,
     session_factory=get_session_context,
)


@app.exception_handler(PaymentServiceError)
async def payment_service_error_handler(request: Request, exc: PaymentServiceError):
     return JSONResponse(
          status_code=exc.status_code,
          content={"success": False, "error": exc.message, "details": exc.detail},
     )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
     logger.exception("Unhandled error on %s %s", request.method, request.url.path)
     return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


app.include_router(payments_router)
app.include_router(payment_methods_router)
app.include_router(autopay_router)
app.include_router(autopay_admin_router)
app.include_router(leases_router)


@app.get("/health")
def health():
     return {"status": "ok", "database": check_connection()}


if __name__ == "__main__":
     port = int(os.getenv("PORT", 10000))
     uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
