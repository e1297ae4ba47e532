from typing import Optional, Protocol

from src.core.firm_offers.models import (
    DOCUMENT_SECTIONS,
    DealSourceRecord,
    FirmOfferRecord,
    FirmOfferUpdate,
    ProposalSourceRecord,
)


class FirmOfferRepository(Protocol):
    def create_offer(self, offer: FirmOfferRecord) -> None: ...

    def get_offer(self, *, offer_id: str) -> Optional[FirmOfferRecord]: ...

    def get_offer_by_client_token(self, *, token: str) -> Optional[FirmOfferRecord]: ...

    def get_offer_by_speaker_token(self, *, token: str) -> Optional[FirmOfferRecord]: ...

    def list_offers(
        self,
        *,
        status: Optional[str],
        proposal_id: Optional[str],
    ) -> list[FirmOfferRecord]: ...

    def apply_update(
        self, *, offer_id: str, update: FirmOfferUpdate
    ) -> Optional[FirmOfferRecord]:
        """Apply ``update`` atomically.

        Returns the stored record after the write, or ``None`` when the offer
        does not exist or one of the update's preconditions does not hold.
        """
        ...


class FirmOfferSourceLookup(Protocol):
    def get_deal(self, *, deal_id: str) -> Optional[DealSourceRecord]: ...

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalSourceRecord]: ...


MUTABLE_RECORD_FIELDS = frozenset(
    {
        "status",
        "speaker_review_token",
        "updated_at",
        "hold_expires_at",
        "submitted_at",
        "sent_to_speaker_at",
        "speaker_email",
        "speaker_viewed_at",
        "speaker_response_at",
        "speaker_confirmed",
        "speaker_notes",
    }
)


def validate_update_fields(update: FirmOfferUpdate) -> None:
    allowed = MUTABLE_RECORD_FIELDS | set(DOCUMENT_SECTIONS)
    requested = set(update.changes) | set(update.set_once) | set(update.require_null)
    unknown = sorted(requested - allowed)
    if unknown:
        raise ValueError(f"FIRM_OFFER_UPDATE_FIELD_NOT_ALLOWED: {', '.join(unknown)}")
