from datetime import datetime

from src.core.firm_offers.errors import TokenNotFoundError
from src.core.firm_offers.hold import compute_hold_status
from src.core.firm_offers.models import (
    ClientFirmOfferView,
    FirmOfferRecord,
    SpeakerEventDetails,
    SpeakerFirmOfferView,
)
from src.core.firm_offers.repository import FirmOfferRepository
from src.core.firm_offers.status import client_can_edit, derive_display_status
from src.core.firm_offers.tokens import is_well_formed_token, tokens_match


class TokenAccessController:
    """Resolves opaque tokens to a single firm offer on one actor surface.

    Client and speaker tokens live in separate lookups, so a token minted for
    one surface never resolves on the other. Malformed and unknown tokens fail
    identically.
    """

    def __init__(self, *, repository: FirmOfferRepository) -> None:
        self._repository = repository

    def resolve_client(self, token: str) -> FirmOfferRecord:
        if not is_well_formed_token(token):
            raise TokenNotFoundError()
        offer = self._repository.get_offer_by_client_token(token=token)
        if offer is None or not tokens_match(token, offer.client_access_token):
            raise TokenNotFoundError()
        return offer

    def resolve_speaker(self, token: str) -> FirmOfferRecord:
        if not is_well_formed_token(token):
            raise TokenNotFoundError()
        offer = self._repository.get_offer_by_speaker_token(token=token)
        if offer is None or not tokens_match(token, offer.speaker_review_token):
            raise TokenNotFoundError()
        return offer


def to_client_view(offer: FirmOfferRecord, *, now: datetime) -> ClientFirmOfferView:
    return ClientFirmOfferView(
        offer_id=offer.offer_id,
        status=offer.status,
        editable=client_can_edit(offer),
        hold=compute_hold_status(
            hold_expires_at=offer.hold_expires_at,
            created_at=offer.created_at,
            now=now,
        ),
        document=offer.document,
        submitted_at=offer.submitted_at.isoformat() if offer.submitted_at else None,
        created_at=offer.created_at.isoformat(),
        updated_at=offer.updated_at.isoformat(),
    )


def to_speaker_view(offer: FirmOfferRecord, *, now: datetime) -> SpeakerFirmOfferView:
    overview = offer.document.event_overview
    return SpeakerFirmOfferView(
        offer_id=offer.offer_id,
        display_status=derive_display_status(offer, now),
        hold=compute_hold_status(
            hold_expires_at=offer.hold_expires_at,
            created_at=offer.created_at,
            now=now,
        ),
        event=SpeakerEventDetails(
            event_name=overview.event_name,
            event_date=overview.event_date,
            end_client_name=overview.end_client_name,
            event_website=overview.event_website,
            venue_name=overview.venue_name,
            venue_address=overview.venue_address,
        ),
        speaker_program=offer.document.speaker_program,
        event_schedule=offer.document.event_schedule,
        technical_requirements=offer.document.technical_requirements,
        travel_accommodation=offer.document.travel_accommodation,
        speaker_fee=offer.document.financial_details.speaker_fee,
        speaker_confirmed=offer.speaker_confirmed,
        speaker_notes=offer.speaker_notes,
        speaker_response_at=(
            offer.speaker_response_at.isoformat() if offer.speaker_response_at else None
        ),
    )
