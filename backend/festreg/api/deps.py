"""
Request dependencies: application context, verified identity, webhook secret.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from festreg.context import AppContext
from festreg.core.errors import AuthError, InternalError
from festreg.core.logging import get_logger
from festreg.core.metrics import record_webhook
from festreg.core.security import webhook_token_matches
from festreg.services.identity import Identity

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    context: AppContext = Depends(get_context),
) -> Identity:
    """Verify the bearer token and bind the caller's uid to the log context."""
    token = credentials.credentials if credentials else None
    identity = await context.identity.verify(token)
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(uid=identity.uid)
    return identity


async def require_webhook_token(
    x_webhook_token: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
) -> None:
    configured = context.settings.WEBHOOK_TOKEN
    if not configured:
        logger.error("webhook_token_not_configured")
        raise InternalError("Webhook authentication is not configured")
    if not webhook_token_matches(x_webhook_token, configured):
        record_webhook("rejected")
        logger.warning("webhook_rejected", reason="token_mismatch")
        raise AuthError()
