"""
Unauthenticated lookups used by the registration forms.
"""

from fastapi import APIRouter, Depends

from festreg.api.deps import get_context
from festreg.context import AppContext
from festreg.services.contact import is_bit_email

router = APIRouter(tags=["Lookup"])


@router.get("/isBitEmail/{email}")
async def check_bit_email(email: str, context: AppContext = Depends(get_context)):
    return {"success": True, "isBitEmail": is_bit_email(email, context.settings.BIT_EMAIL_PATTERN)}
