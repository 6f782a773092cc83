# utils/logging_config.py
"""Process-wide logging setup for the API and the recurring payment runner."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
     """Install a single stream handler on the root logger.

     Safe to call more than once; later calls only adjust the level.
     """
     root = logging.getLogger()
     root.setLevel(level.upper())
     if any(getattr(h, "_rent_payments_handler", False) for h in root.handlers):
          return
     handler = logging.StreamHandler()
     handler.setFormatter(logging.Formatter(LOG_FORMAT))
     handler._rent_payments_handler = True
     root.addHandler(handler)

     # APScheduler logs every job submission at INFO
     logging.getLogger("apscheduler").setLevel(logging.WARNING)
