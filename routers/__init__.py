# routers/__init__.py
from .autopay import admin_router as autopay_admin_router
from .autopay import router as autopay_router
from .leases import router as leases_router
from .payment_methods import router as payment_methods_router
from .payments import router as payments_router

__all__ = [
     "autopay_router",
     "autopay_admin_router",
     "leases_router",
     "payment_methods_router",
     "payments_router",
]
