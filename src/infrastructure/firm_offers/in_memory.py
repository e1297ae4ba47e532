from copy import deepcopy
from threading import Lock
from typing import Any, Optional

from src.core.firm_offers.models import DOCUMENT_SECTIONS, FirmOfferRecord, FirmOfferUpdate
from src.core.firm_offers.repository import FirmOfferRepository, validate_update_fields


class InMemoryFirmOfferRepository(FirmOfferRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._offers: dict[str, FirmOfferRecord] = {}
        self._by_client_token: dict[str, str] = {}
        self._by_speaker_token: dict[str, str] = {}

    def create_offer(self, offer: FirmOfferRecord) -> None:
        with self._lock:
            if offer.offer_id in self._offers:
                raise ValueError("FIRM_OFFER_ALREADY_EXISTS")
            self._offers[offer.offer_id] = deepcopy(offer)
            self._index_tokens(offer)

    def get_offer(self, *, offer_id: str) -> Optional[FirmOfferRecord]:
        with self._lock:
            offer = self._offers.get(offer_id)
            return deepcopy(offer) if offer is not None else None

    def get_offer_by_client_token(self, *, token: str) -> Optional[FirmOfferRecord]:
        with self._lock:
            offer_id = self._by_client_token.get(token)
            if offer_id is None:
                return None
            return deepcopy(self._offers[offer_id])

    def get_offer_by_speaker_token(self, *, token: str) -> Optional[FirmOfferRecord]:
        with self._lock:
            offer_id = self._by_speaker_token.get(token)
            if offer_id is None:
                return None
            return deepcopy(self._offers[offer_id])

    def list_offers(
        self,
        *,
        status: Optional[str],
        proposal_id: Optional[str],
    ) -> list[FirmOfferRecord]:
        with self._lock:
            rows = list(self._offers.values())

        rows = sorted(rows, key=lambda x: (x.created_at, x.offer_id), reverse=True)
        if status is not None:
            rows = [row for row in rows if row.status == status]
        if proposal_id is not None:
            rows = [row for row in rows if row.proposal_id == proposal_id]
        return [deepcopy(row) for row in rows]

    def apply_update(
        self, *, offer_id: str, update: FirmOfferUpdate
    ) -> Optional[FirmOfferRecord]:
        validate_update_fields(update)
        with self._lock:
            offer = self._offers.get(offer_id)
            if offer is None:
                return None
            if update.require_status_in is not None and offer.status not in update.require_status_in:
                return None
            if any(getattr(offer, field) is not None for field in update.require_null):
                return None

            updated = _apply_update(offer, update)
            self._offers[offer_id] = updated
            self._index_tokens(updated)
            return deepcopy(updated)

    def _index_tokens(self, offer: FirmOfferRecord) -> None:
        self._by_client_token[offer.client_access_token] = offer.offer_id
        if offer.speaker_review_token is not None:
            self._by_speaker_token[offer.speaker_review_token] = offer.offer_id


def _apply_update(offer: FirmOfferRecord, update: FirmOfferUpdate) -> FirmOfferRecord:
    record_changes: dict[str, Any] = {}
    section_changes: dict[str, Any] = {}
    for field, value in update.changes.items():
        target = section_changes if field in DOCUMENT_SECTIONS else record_changes
        target[field] = deepcopy(value)
    for field, value in update.set_once.items():
        if getattr(offer, field) is None:
            record_changes[field] = deepcopy(value)

    document = offer.document
    if section_changes:
        document = document.model_copy(update=section_changes)
    return offer.model_copy(update={**record_changes, "document": document}, deep=True)
