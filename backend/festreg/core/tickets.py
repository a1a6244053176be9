"""
Provider ticket ids and the ticket → registration domain lookup used by the
webhook to pick the right records.
"""

from enum import IntEnum
from typing import Optional

from festreg.models.registration import Domain


class Ticket(IntEnum):
    ALUMNI = 2391
    DELEGATE = 2392
    DELEGATE_COMPLIMENTARY = 2393
    ACCOMMODATION = 2394
    MERCH_TEE = 2395
    MERCH_JACKET = 2396
    MERCH_COMBO = 2397
    EVENT = 2398


TICKET_DOMAINS: dict[int, Domain] = {
    Ticket.ALUMNI: Domain.ALUMNI,
    Ticket.DELEGATE: Domain.DELEGATE,
    Ticket.DELEGATE_COMPLIMENTARY: Domain.DELEGATE,
    Ticket.ACCOMMODATION: Domain.ACCOMMODATION,
    Ticket.MERCH_TEE: Domain.MERCHANDISE,
    Ticket.MERCH_JACKET: Domain.MERCHANDISE,
    Ticket.MERCH_COMBO: Domain.MERCHANDISE,
    Ticket.EVENT: Domain.EVENT,
}

MERCH_TICKETS: dict[str, Ticket] = {
    "tee": Ticket.MERCH_TEE,
    "jacket": Ticket.MERCH_JACKET,
    "combo": Ticket.MERCH_COMBO,
}


def domain_for_ticket(ticket_id: Optional[int]) -> Optional[Domain]:
    if ticket_id is None:
        return None
    return TICKET_DOMAINS.get(ticket_id)
