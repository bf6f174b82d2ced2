"""Sentry error tracking for the scheduler CLI.

Usage:
    from scheduler.sentry import init_sentry, flush
    init_sentry(dsn=settings.sentry_dsn, environment=settings.sentry_environment)
    ...
    flush()
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, cast

import httpx
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

if TYPE_CHECKING:
    from sentry_sdk._types import Event, Hint

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = {
    "token",
    "api_key",
    "apikey",
    "key",
    "secret",
    "password",
    "authorization",
    "bearer",
    "deepseek_api_key",
    "gemini_api_key",
    "sentry_dsn",
}

# Module state
_initialized = False


def init_sentry(
    dsn: str | None = None,
    environment: str = "production",
    release: str | None = None,
    traces_sample_rate: float = 0.0,
    debug: bool = False,
) -> bool:
    """Initialize Sentry SDK for error tracking.

    Args:
        dsn: Sentry DSN. If None, reads from SENTRY_DSN env var.
             Empty/None DSN disables Sentry.
        environment: Environment name (production, staging, development).
        release: Release version. If None, taken from the installed package.
        traces_sample_rate: Sample rate for performance tracing (0.0-1.0).
        debug: Enable Sentry debug mode.

    Returns:
        True if Sentry was initialized, False if skipped.
    """
    global _initialized

    if _initialized:
        logger.debug("Sentry already initialized")
        return True

    if dsn is None:
        dsn = os.environ.get("SENTRY_DSN", "")

    if not dsn:
        logger.debug("No SENTRY_DSN configured, error tracking disabled")
        return False

    if release is None:
        from importlib.metadata import PackageNotFoundError, version

        try:
            release = f"quick-scheduler@{version('quick-scheduler')}"
        except PackageNotFoundError:
            release = "quick-scheduler@unknown"

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        debug=debug,
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        send_default_pii=False,
        before_send=_before_send,
    )

    _initialized = True
    logger.info(f"Sentry initialized: environment={environment}, release={release}")
    return True


def _before_send(event: Event, hint: Hint) -> Event | None:
    """Drop expected network noise and scrub secrets before sending."""
    if "exc_info" in hint:
        exc_type, _, _ = hint["exc_info"]
        # Remote extraction failures are handled by falling back
        if issubclass(exc_type, (httpx.TransportError, httpx.HTTPStatusError)):
            return None

    if "request" in event:
        _scrub_dict(cast(dict[str, Any], event["request"]))

    if "breadcrumbs" in event:
        breadcrumbs = cast(dict[str, Any], event["breadcrumbs"])
        for breadcrumb in breadcrumbs.get("values", []):
            if "data" in breadcrumb:
                _scrub_dict(breadcrumb["data"])

    return event


def _scrub_dict(data: dict[str, Any]) -> None:
    """Scrub sensitive keys from a dictionary in-place."""
    for key in list(data.keys()):
        if key.lower() in SENSITIVE_KEYS:
            data[key] = "[REDACTED]"
        elif isinstance(data[key], dict):
            _scrub_dict(data[key])


def capture_exception(exception: BaseException | None = None) -> str | None:
    if not _initialized:
        return None
    return sentry_sdk.capture_exception(exception)


def flush(timeout: float = 2.0) -> None:
    """Flush pending Sentry events before shutdown."""
    if not _initialized:
        return
    sentry_sdk.flush(timeout=timeout)


def is_enabled() -> bool:
    return _initialized
