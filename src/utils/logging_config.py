"""JSON logging shared by handlers, services and scheduled jobs."""

import logging
import os

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "storefront-engagement"


def _formatter() -> jsonlogger.JsonFormatter:
    return jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(message)s %(asctime)s",
        rename_fields={"levelname": "level"},
        static_fields={
            "service": SERVICE_NAME,
            "environment": os.environ.get("ENVIRONMENT", "dev"),
        },
    )


def get_logger(name: str) -> logging.Logger:
    """
    Configure a JSON logger once per name and reuse it.

    Context goes through ``extra`` (cart_id, customer_id, job, duration_ms)
    so batch summaries and per-item failures stay queryable as fields.
    Level comes from ``LOG_LEVEL``.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(_formatter())
    logger.addHandler(handler)
    logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger
