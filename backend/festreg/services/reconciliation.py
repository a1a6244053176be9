"""
Payment status reconciliation.

Two paths converge on the same guarded write:
- pull: a client polls its status and we re-fetch the booking from the provider
- push: the provider calls our webhook and we re-fetch the booking it names

The provider's fetched view is authoritative over anything a webhook body
claims. Writes go through ``Registration.apply_status``, so a repeated status
is a no-op and CONFIRMED never regresses. Confirming a delegate room owner
also confirms the member rows booked under the same group payment.
"""

from dataclasses import dataclass
from typing import Optional

from festreg.core.errors import ForbiddenError, NotFoundError, ValidationError
from festreg.core.logging import bind_booking_context, get_logger
from festreg.core.metrics import record_status_transition, record_webhook
from festreg.core.tickets import domain_for_ticket
from festreg.infrastructure.tiqr_client import TiqrClient
from festreg.models.registration import Domain, PaymentStatus, Registration
from festreg.schemas.provider import FetchBookingResponse
from festreg.schemas.webhook import WebhookPayload
from festreg.services.store import RegistrationRepository, RegistrationStore

logger = get_logger(__name__)


@dataclass
class RefreshResult:
    record: Registration
    # None when no provider call was made
    booking: Optional[FetchBookingResponse] = None


class ReconciliationEngine:
    def __init__(self, store: RegistrationStore, provider: TiqrClient):
        self.store = store
        self.provider = provider

    async def refresh_status(self, domain: Domain, owner_uid: str, item_id: str = "") -> RefreshResult:
        """Pull path for a single record; 404 when there is nothing to reconcile."""
        record = await self.store.read(lambda repo: repo.get(domain, owner_uid, item_id))
        if record is None:
            raise NotFoundError("No registration found")
        if not record.is_confirmed and not record.booking_ref:
            raise NotFoundError("No booking found for this registration")
        return await self.refresh_record(record)

    async def refresh_record(self, record: Registration) -> RefreshResult:
        """
        Re-fetch the booking behind ``record`` and persist a changed status.
        Confirmed records and records without a booking are returned as is.
        """
        if record.is_confirmed or not record.booking_ref:
            return RefreshResult(record=record)

        booking = await self.provider.fetch_booking(record.booking_ref)
        status = PaymentStatus.from_provider(booking.effective_status)
        if status is None or status == record.payment_status:
            return RefreshResult(record=record, booking=booking)

        updated = await self._apply(record, status, source="pull")
        return RefreshResult(record=updated, booking=booking)

    async def confirmation_checksum(self, domain: Domain, owner_uid: str, item_id: str = "") -> Optional[str]:
        """Entry checksum for a confirmed booking; ForbiddenError until paid."""
        record = await self.store.read(lambda repo: repo.get(domain, owner_uid, item_id))
        if record is None:
            raise NotFoundError("No registration found")
        if not record.booking_ref:
            raise NotFoundError("No booking found for this registration")

        booking = await self.provider.fetch_booking(record.booking_ref)
        status = PaymentStatus.from_provider(booking.effective_status)
        if status != PaymentStatus.CONFIRMED:
            raise ForbiddenError(
                "Payment not confirmed",
                details={"status": booking.effective_status},
            )

        if not record.is_confirmed:
            await self._apply(record, status, source="pull")
        return booking.checksum

    async def handle_webhook(self, payload: WebhookPayload) -> str:
        """
        Apply a provider notification. Returns the outcome label; every
        outcome other than a missing booking uid is acknowledged with 204.
        """
        booking_uid = payload.resolved_booking_uid
        if not booking_uid:
            record_webhook("rejected")
            raise ValidationError("Missing booking uid")
        bind_booking_context(booking_uid=booking_uid)

        booking = await self.provider.fetch_booking(booking_uid)
        status = PaymentStatus.from_provider(booking.effective_status)
        if status is None:
            status = PaymentStatus.from_provider(payload.resolved_booking_status)

        domain = domain_for_ticket(booking.ticket_id)
        if domain is not None:
            bind_booking_context(domain=domain.value)
        if domain is None:
            logger.info("webhook_ignored", reason="unknown_ticket", booking_uid=booking_uid, ticket_id=booking.ticket_id)
            record_webhook("unknown_ticket")
            return "unknown_ticket"

        if status is None:
            logger.info("webhook_ignored", reason="no_status", booking_uid=booking_uid, domain=domain.value)
            record_webhook("unchanged")
            return "unchanged"

        result = await self.store.run_in_transaction(
            lambda repo: self._apply_webhook(repo, domain, booking_uid, booking, status),
            name="webhook_apply",
        )
        record_webhook(result)
        return result

    async def _apply_webhook(
        self,
        repo: RegistrationRepository,
        domain: Domain,
        booking_uid: str,
        booking: FetchBookingResponse,
        status: PaymentStatus,
    ) -> str:
        if domain == Domain.MERCHANDISE:
            record = await repo.get_by_item(domain, booking_uid)
        elif domain == Domain.EVENT:
            meta = booking.meta_data or {}
            owner_uid = meta.get("firebaseUid")
            event_id = meta.get("eventId")
            if not owner_uid or event_id is None:
                logger.warning("webhook_ignored", reason="missing_metadata", booking_uid=booking_uid, domain=domain.value)
                return "missing_metadata"
            record = await repo.get(domain, owner_uid, str(event_id))
            if record is not None and record.booking_ref != booking_uid:
                # A superseded booking for the same event
                record = None
        else:
            record = await repo.get_by_booking_ref(booking_uid, domain)

        if record is None:
            logger.info("webhook_ignored", reason="not_found", booking_uid=booking_uid, domain=domain.value)
            return "not_found"

        if record.is_confirmed and status != PaymentStatus.CONFIRMED:
            logger.warning(
                "webhook_regression_refused",
                booking_uid=booking_uid,
                domain=domain.value,
                claimed_status=status.value,
            )
            return "unchanged"

        previous = record.payment_status
        if not record.apply_status(status):
            return "unchanged"
        if status == PaymentStatus.CONFIRMED:
            await _confirm_room_members(repo, record)

        record_status_transition(domain.value, "push", status.value)
        logger.info(
            "webhook_status_applied",
            booking_uid=booking_uid,
            domain=domain.value,
            uid=record.owner_uid,
            previous_status=previous,
            status=status.value,
        )
        return "updated"

    async def _apply(self, record: Registration, status: PaymentStatus, source: str) -> Registration:
        booking_ref = record.booking_ref

        async def work(repo: RegistrationRepository) -> Registration:
            current = await repo.get_by_id(record.id)
            if current is None or current.booking_ref != booking_ref:
                # The record moved on to another booking while we were fetching
                return current or record
            previous = current.payment_status
            if current.apply_status(status):
                if status == PaymentStatus.CONFIRMED:
                    await _confirm_room_members(repo, current)
                record_status_transition(current.domain, source, status.value)
                logger.info(
                    "registration_status_refreshed",
                    domain=current.domain,
                    uid=current.owner_uid,
                    booking_uid=booking_ref,
                    previous_status=previous,
                    status=status.value,
                )
            return current

        return await self.store.run_in_transaction(work, name=f"{source}_status_update")


async def _confirm_room_members(repo: RegistrationRepository, record: Registration) -> None:
    """A paid group booking confirms every member row booked under it."""
    if record.domain != Domain.DELEGATE.value or not record.is_owner:
        return
    confirmed = []
    for member in await repo.list_room_members(record.room_id):
        if member.booking_ref and member.apply_status(PaymentStatus.CONFIRMED):
            confirmed.append(member.owner_uid)
    if confirmed:
        record_status_transition(record.domain, "group", PaymentStatus.CONFIRMED.value)
        logger.info("delegate_group_members_confirmed", room_id=record.room_id, members=confirmed)
