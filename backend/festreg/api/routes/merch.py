"""
Merchandise order endpoints. Every order is its own booking.
"""

from fastapi import APIRouter, Depends

from festreg.api.deps import get_context, get_identity
from festreg.api.responses import registration_response
from festreg.context import AppContext
from festreg.models.registration import Domain, PaymentStatus
from festreg.schemas.registration import (
    MerchOrderRequest,
    MerchOrdersResponse,
    MerchOrderStatusResponse,
    MerchOrderSummary,
    RegistrationResponse,
)
from festreg.services import domains
from festreg.services.identity import Identity

router = APIRouter(prefix="/merch", tags=["Merchandise"])


@router.post("/order", response_model=RegistrationResponse)
async def place_order(
    payload: MerchOrderRequest,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    request = domains.merch_request(identity, payload, context.settings)
    outcome = await context.registrations.register(domains.MERCHANDISE, request)
    return registration_response(outcome)


@router.get("/orders", response_model=MerchOrdersResponse)
async def list_orders(
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    records = await context.store.read(lambda repo: repo.list_for_owner(Domain.MERCHANDISE, identity.uid))
    return MerchOrdersResponse(orders=[
        MerchOrderSummary(
            id=r.item_id,
            item=(r.details or {}).get("item", {}),
            payment_status=r.status,
            payment_url=r.payment_url or None,
        )
        for r in records
    ])


@router.get("/order/{order_id}", response_model=MerchOrderStatusResponse)
async def order_status(
    order_id: str,
    identity: Identity = Depends(get_identity),
    context: AppContext = Depends(get_context),
):
    """Refresh an order's status; the entry checksum is included once paid."""
    result = await context.reconciliation.refresh_status(Domain.MERCHANDISE, identity.uid, order_id)
    checksum = None
    if result.record.status == PaymentStatus.CONFIRMED:
        if result.booking is not None:
            checksum = result.booking.checksum
        else:
            checksum = await context.reconciliation.confirmation_checksum(
                Domain.MERCHANDISE, identity.uid, order_id
            )
    return MerchOrderStatusResponse(
        order_id=order_id,
        status=result.record.status,
        payment_url=result.record.payment_url or None,
        checksum=checksum,
    )
