"""
Error telemetry via Sentry.

Only enabled in production with a DSN configured and SENTRY_DISABLED unset.
Credentials are scrubbed from request headers before any event leaves the
process.
"""

from typing import Any, Optional

import sentry_sdk

from festreg.core.config import Settings
from festreg.core.logging import get_logger

logger = get_logger(__name__)

SCRUBBED_HEADERS = frozenset({"authorization", "cookie", "x-webhook-token"})


def scrub_headers(headers: dict[str, Any]) -> dict[str, Any]:
    return {
        key: ("" if key.lower() in SCRUBBED_HEADERS else value)
        for key, value in headers.items()
    }


def _before_send(event: dict[str, Any], hint: dict[str, Any]) -> Optional[dict[str, Any]]:
    request = event.get("request")
    if request and isinstance(request.get("headers"), dict):
        request["headers"] = scrub_headers(request["headers"])
    return event


def init_telemetry(settings: Settings) -> bool:
    if not settings.sentry_enabled:
        return False

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=settings.APP_VERSION,
        send_default_pii=True,
        traces_sample_rate=1.0,
        before_send=_before_send,
    )
    logger.info("sentry_initialized", environment=settings.ENVIRONMENT)
    return True


def capture_exception(
    exc: BaseException,
    *,
    route: str,
    method: str,
    headers: dict[str, Any],
    uid: Optional[str] = None,
    email: Optional[str] = None,
) -> None:
    """Forward an unexpected error with request context (no-op when Sentry is not initialised)."""
    with sentry_sdk.new_scope() as scope:
        scope.set_extra("route", route)
        scope.set_extra("method", method)
        scope.set_extra("headers", scrub_headers(headers))
        scope.set_user({"id": uid or "unauthenticated", "email": email or "unauthenticated"})
        sentry_sdk.capture_exception(exc)
