"""Startup-time helpers for safe config logging."""

import os

from storefront.common.config import settings
from storefront.common.logging import logger


SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN", "DATABASE_URL")


def _redact(name: str, value) -> str:
    if any(marker in name.upper() for marker in SECRET_MARKERS):
        return "<redacted>" if value else "<unset>"
    return str(value)


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log the effective value of selected settings and whether the env overrode them."""

    effective = settings.model_dump()
    config = {"service": service_name}
    for key in keys:
        field = key.lower()
        source = "env" if os.getenv(key) is not None else "default"
        config[key] = f"{_redact(key, effective.get(field))} ({source})"
    logger.info("startup_config=%s", config)
