"""
HTTP client for the TiQR booking provider.

Stateless adapter over a pooled ``httpx.AsyncClient``: every call is bounded
by the configured timeout, and any transport failure, non-2xx reply or
undecodable body surfaces as ``UpstreamError`` (502). Calls are never retried
here; the caller retries the whole registration attempt.
"""

import time
from typing import Optional, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from festreg.core.errors import UpstreamError
from festreg.core.logging import get_logger
from festreg.core.metrics import provider_latency, record_provider_request
from festreg.schemas.provider import (
    BookingPayload,
    BookingResponse,
    BulkBookingPayload,
    BulkBookingResponse,
    FetchBookingResponse,
)

logger = get_logger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)


class TiqrClient:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_booking(self, payload: BookingPayload) -> BookingResponse:
        return await self._request(
            "create_booking",
            "POST",
            "/booking/",
            BookingResponse,
            json=payload.model_dump(exclude_none=True),
        )

    async def create_bulk_booking(self, payload: BulkBookingPayload) -> BulkBookingResponse:
        return await self._request(
            "create_bulk_booking",
            "POST",
            "/booking/bulk/",
            BulkBookingResponse,
            json=payload.model_dump(exclude_none=True),
        )

    async def fetch_booking(self, booking_uid: str) -> FetchBookingResponse:
        return await self._request(
            "fetch_booking",
            "GET",
            f"/booking/{booking_uid}/",
            FetchBookingResponse,
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        model: type[ResponseModel],
        json: Optional[dict] = None,
    ) -> ResponseModel:
        start = time.perf_counter()
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            record_provider_request(operation, "transport_error")
            logger.error("provider_request_failed", operation=operation, path=path, error=str(e))
            raise UpstreamError("Booking provider is unreachable") from e
        finally:
            provider_latency.labels(operation=operation).observe(time.perf_counter() - start)

        if response.is_error:
            record_provider_request(operation, "http_error")
            logger.error(
                "provider_request_rejected",
                operation=operation,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise UpstreamError(
                "Booking provider rejected the request",
                details={"status_code": response.status_code},
            )

        try:
            parsed = model.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            record_provider_request(operation, "invalid")
            logger.error("provider_response_invalid", operation=operation, path=path, error=str(e))
            raise UpstreamError("Booking provider returned an unusable response") from e

        record_provider_request(operation, "ok")
        return parsed
