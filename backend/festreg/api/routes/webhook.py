"""
Provider webhook. Authenticated by a shared secret header, never by a user
token. Every accepted delivery is acknowledged with 204 so the provider stops
retrying, including ones that match no local record.
"""

from fastapi import APIRouter, Depends, Response, status

from festreg.api.deps import get_context, require_webhook_token
from festreg.context import AppContext
from festreg.schemas.webhook import WebhookPayload

router = APIRouter(tags=["Webhook"])


@router.post(
    "/webhook",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(require_webhook_token)],
)
async def receive(
    payload: WebhookPayload,
    context: AppContext = Depends(get_context),
):
    await context.reconciliation.handle_webhook(payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
