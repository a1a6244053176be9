"""
Older paths still used by deployed frontends, mapped onto the current
handlers. Hidden from the OpenAPI schema.
"""

from fastapi import APIRouter, Depends, Response, status

from festreg.api.deps import require_webhook_token
from festreg.api.routes import accommodation, alumni, delegate, events, webhook
from festreg.schemas.registration import (
    DelegateUserStatusResponse,
    MessageResponse,
    RegistrationResponse,
    StatusResponse,
)

router = APIRouter(include_in_schema=False)

router.add_api_route("/alumini/register", alumni.register, methods=["POST"], response_model=RegistrationResponse)
router.add_api_route("/alumini/status", alumni.status, methods=["GET"], response_model=StatusResponse)
router.add_api_route(
    "/alumni/callback",
    webhook.receive,
    methods=["POST"],
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    dependencies=[Depends(require_webhook_token)],
)
router.add_api_route("/accommodation/book", accommodation.register, methods=["POST"], response_model=RegistrationResponse)
router.add_api_route("/event/book", events.register, methods=["POST"], response_model=RegistrationResponse)
router.add_api_route("/delegate/book-self", delegate.register_self, methods=["POST"], response_model=RegistrationResponse)
router.add_api_route("/delegate/status-self", delegate.user_status, methods=["GET"], response_model=DelegateUserStatusResponse)
router.add_api_route("/delegate/status", delegate.user_status, methods=["GET"], response_model=DelegateUserStatusResponse)
router.add_api_route("/delegate/book-group", delegate.register_group, methods=["POST"], response_model=RegistrationResponse)
router.add_api_route("/delegate/group-reset", delegate.reset_group, methods=["DELETE"], response_model=MessageResponse)
router.add_api_route("/delegate/status-group", delegate.user_status, methods=["GET"], response_model=DelegateUserStatusResponse)
