import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from src.core.firm_offers.access import (
    TokenAccessController,
    to_client_view,
    to_speaker_view,
)
from src.core.firm_offers.derivation import (
    build_firm_offer_document,
    fields_from_deal,
    fields_from_proposal,
    merge_source_fields,
)
from src.core.firm_offers.errors import (
    AlreadyDecidedError,
    FirmOfferLifecycleError,
    FirmOfferNotFoundError,
    InvalidTransitionError,
    MissingRequiredFieldError,
    TokenNotFoundError,
)
from src.core.firm_offers.hold import compute_hold_status, default_hold_expiry
from src.core.firm_offers.models import (
    ClientFirmOfferView,
    FirmOfferCreateRequest,
    FirmOfferDeriveRequest,
    FirmOfferDetail,
    FirmOfferDisplayStatus,
    FirmOfferDocumentPatch,
    FirmOfferDraft,
    FirmOfferListResponse,
    FirmOfferRecord,
    FirmOfferSourceFields,
    FirmOfferStatus,
    FirmOfferSummary,
    FirmOfferUpdate,
    HoldResetRequest,
    NotificationEvent,
    NotificationIntent,
    SendToSpeakerRequest,
    SendToSpeakerResponse,
    SpeakerDecisionRequest,
    SpeakerDecisionResponse,
    SpeakerFirmOfferView,
)
from src.core.firm_offers.notifications import NotificationDispatcher
from src.core.firm_offers.repository import FirmOfferRepository, FirmOfferSourceLookup
from src.core.firm_offers.status import (
    CLIENT_EDITABLE_STATUSES,
    DECIDABLE_STATUSES,
    DELIVERABLE_STATUSES,
    SENDABLE_STATUSES,
    SUBMITTABLE_STATUSES,
    derive_display_status,
    display_label,
)
from src.core.firm_offers.tokens import (
    client_offer_url,
    generate_access_token,
    speaker_review_url,
)

__all__ = [
    "AlreadyDecidedError",
    "FirmOfferLifecycleError",
    "FirmOfferNotFoundError",
    "FirmOfferWorkflowService",
    "InvalidTransitionError",
    "MissingRequiredFieldError",
    "TokenNotFoundError",
]

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 100


class FirmOfferWorkflowService:
    def __init__(
        self,
        *,
        repository: FirmOfferRepository,
        source_lookup: FirmOfferSourceLookup,
        dispatcher: NotificationDispatcher,
        public_base_url: str,
        admin_email: Optional[str] = None,
    ) -> None:
        self._repository = repository
        self._source_lookup = source_lookup
        self._dispatcher = dispatcher
        self._public_base_url = public_base_url
        self._admin_email = admin_email
        self._access = TokenAccessController(repository=repository)

    def derive_draft(self, *, payload: FirmOfferDeriveRequest) -> FirmOfferDraft:
        fields = self._resolve_source_fields(payload)
        return FirmOfferDraft(
            source=payload.source,
            deal_id=payload.deal_id,
            proposal_id=payload.proposal_id,
            document=build_firm_offer_document(fields),
        )

    def create_offer(self, *, payload: FirmOfferCreateRequest) -> FirmOfferDetail:
        now = _utc_now()
        document = build_firm_offer_document(self._resolve_source_fields(payload))
        offer = FirmOfferRecord(
            offer_id=f"fo_{uuid.uuid4().hex[:12]}",
            proposal_id=payload.proposal_id,
            deal_id=payload.deal_id,
            status=payload.initial_status,
            client_access_token=generate_access_token(),
            speaker_review_token=generate_access_token(),
            created_by=payload.created_by,
            created_at=now,
            updated_at=now,
            hold_expires_at=(
                _as_utc(payload.hold_expires_at)
                if payload.hold_expires_at is not None
                else default_hold_expiry(now)
            ),
            document=document,
        )
        self._repository.create_offer(offer)
        logger.info(
            "firm_offer.created",
            extra={
                "extra_fields": {
                    "offer_id": offer.offer_id,
                    "status": offer.status,
                    "source": payload.source,
                }
            },
        )
        if offer.status == "out_for_delivery":
            self._notify_client_delivery(offer)
        return self._to_detail(offer, now=now)

    def get_offer(self, *, offer_id: str) -> FirmOfferDetail:
        return self._to_detail(self._require_offer(offer_id), now=_utc_now())

    def list_offers(
        self,
        *,
        status: Optional[FirmOfferStatus] = None,
        display_status: Optional[FirmOfferDisplayStatus] = None,
        proposal_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> FirmOfferListResponse:
        now = _utc_now()
        rows = self._repository.list_offers(status=status, proposal_id=proposal_id)
        rows.sort(key=lambda row: row.created_at, reverse=True)
        needle = (search or "").strip().lower()
        items: list[FirmOfferSummary] = []
        for row in rows:
            summary = self._to_summary(row, now=now)
            if display_status is not None and summary.display_status != display_status:
                continue
            if needle and not _matches_search(summary, needle):
                continue
            items.append(summary)
            if len(items) >= limit:
                break
        return FirmOfferListResponse(items=items)

    def update_offer(self, *, offer_id: str, patch: FirmOfferDocumentPatch) -> FirmOfferDetail:
        now = _utc_now()
        self._require_offer(offer_id)
        updated = self._repository.apply_update(
            offer_id=offer_id,
            update=FirmOfferUpdate(
                changes={**patch.section_changes(), "updated_at": now},
                require_null=["speaker_confirmed"],
            ),
        )
        if updated is None:
            raise InvalidTransitionError("FIRM_OFFER_LOCKED: speaker has responded")
        logger.info(
            "firm_offer.updated",
            extra={
                "extra_fields": {
                    "offer_id": offer_id,
                    "sections": sorted(patch.section_changes()),
                }
            },
        )
        return self._to_detail(updated, now=now)

    def deliver_offer(self, *, offer_id: str) -> FirmOfferDetail:
        now = _utc_now()
        offer = self._require_offer(offer_id)
        if offer.status not in DELIVERABLE_STATUSES:
            raise InvalidTransitionError(
                f"FIRM_OFFER_INVALID_TRANSITION: cannot deliver from {offer.status}"
            )
        updated = self._repository.apply_update(
            offer_id=offer_id,
            update=FirmOfferUpdate(
                changes={"status": "out_for_delivery", "updated_at": now},
                require_status_in=sorted(DELIVERABLE_STATUSES),
            ),
        )
        if updated is None:
            raise InvalidTransitionError("FIRM_OFFER_INVALID_TRANSITION: already delivered")
        logger.info(
            "firm_offer.delivered",
            extra={"extra_fields": {"offer_id": offer_id}},
        )
        self._notify_client_delivery(updated)
        return self._to_detail(updated, now=now)

    def get_client_view(self, *, token: str) -> ClientFirmOfferView:
        return to_client_view(self._access.resolve_client(token), now=_utc_now())

    def update_client_offer(
        self, *, token: str, patch: FirmOfferDocumentPatch
    ) -> ClientFirmOfferView:
        now = _utc_now()
        offer = self._access.resolve_client(token)
        self._ensure_client_editable(offer)
        updated = self._repository.apply_update(
            offer_id=offer.offer_id,
            update=FirmOfferUpdate(
                changes={**patch.section_changes(), "updated_at": now},
                require_null=["speaker_confirmed"],
                require_status_in=sorted(CLIENT_EDITABLE_STATUSES),
            ),
        )
        if updated is None:
            raise InvalidTransitionError("FIRM_OFFER_LOCKED: offer is no longer editable")
        logger.info(
            "firm_offer.client_updated",
            extra={"extra_fields": {"offer_id": offer.offer_id}},
        )
        return to_client_view(updated, now=now)

    def submit_offer(
        self, *, token: str, updates: Optional[FirmOfferDocumentPatch] = None
    ) -> ClientFirmOfferView:
        now = _utc_now()
        offer = self._access.resolve_client(token)
        if offer.status not in SUBMITTABLE_STATUSES:
            raise InvalidTransitionError(
                f"FIRM_OFFER_INVALID_TRANSITION: cannot submit from {offer.status}"
            )
        sections = updates.section_changes() if updates is not None else {}
        updated = self._repository.apply_update(
            offer_id=offer.offer_id,
            update=FirmOfferUpdate(
                changes={**sections, "status": "submitted", "updated_at": now},
                set_once={"submitted_at": now},
                require_null=["speaker_confirmed"],
                require_status_in=sorted(SUBMITTABLE_STATUSES),
            ),
        )
        if updated is None:
            current = self._require_offer(offer.offer_id)
            raise InvalidTransitionError(
                f"FIRM_OFFER_INVALID_TRANSITION: cannot submit from {current.status}"
            )
        logger.info(
            "firm_offer.submitted",
            extra={"extra_fields": {"offer_id": offer.offer_id}},
        )
        self._dispatch(
            self._intent_for(updated, event="submitted", recipient_email=self._admin_email)
        )
        return to_client_view(updated, now=now)

    def send_to_speaker(
        self, *, offer_id: str, payload: SendToSpeakerRequest
    ) -> SendToSpeakerResponse:
        now = _utc_now()
        offer = self._require_offer(offer_id)
        self._ensure_sendable(offer)

        changes: dict[str, object] = {"status": "sent_to_speaker", "updated_at": now}
        if payload.speaker_email:
            changes["speaker_email"] = payload.speaker_email
        updated = self._repository.apply_update(
            offer_id=offer_id,
            update=FirmOfferUpdate(
                changes=changes,
                set_once={
                    "sent_to_speaker_at": now,
                    "speaker_review_token": generate_access_token(),
                },
                require_null=["speaker_confirmed"],
                require_status_in=sorted(SENDABLE_STATUSES),
            ),
        )
        if updated is None:
            self._ensure_sendable(self._require_offer(offer_id))
            raise InvalidTransitionError("FIRM_OFFER_INVALID_TRANSITION: send was not applied")
        if updated.speaker_review_token is None or updated.sent_to_speaker_at is None:
            raise FirmOfferLifecycleError("FIRM_OFFER_SPEAKER_TOKEN_MISSING")

        review_url = speaker_review_url(self._public_base_url, updated.speaker_review_token)
        logger.info(
            "firm_offer.sent_to_speaker",
            extra={
                "extra_fields": {
                    "offer_id": offer_id,
                    "resend": offer.status == "sent_to_speaker",
                }
            },
        )
        intent = self._intent_for(
            updated,
            event="sent_to_speaker",
            recipient_email=updated.speaker_email,
            url=review_url,
        )
        if payload.speaker_name:
            intent.speaker_name = payload.speaker_name
        self._dispatch(intent)
        return SendToSpeakerResponse(
            offer_id=offer_id,
            status=updated.status,
            speaker_review_url=review_url,
            sent_to_speaker_at=updated.sent_to_speaker_at.isoformat(),
        )

    def record_speaker_view(self, *, token: str) -> SpeakerFirmOfferView:
        now = _utc_now()
        offer = self._access.resolve_speaker(token)
        if offer.speaker_viewed_at is None:
            viewed = self._repository.apply_update(
                offer_id=offer.offer_id,
                update=FirmOfferUpdate(set_once={"speaker_viewed_at": now}),
            )
            if viewed is not None:
                offer = viewed
                logger.info(
                    "firm_offer.speaker_viewed",
                    extra={"extra_fields": {"offer_id": offer.offer_id}},
                )
        return to_speaker_view(offer, now=now)

    def record_speaker_decision(
        self, *, token: str, payload: SpeakerDecisionRequest
    ) -> SpeakerDecisionResponse:
        now = _utc_now()
        offer = self._access.resolve_speaker(token)
        self._ensure_decidable(offer)
        updated = self._repository.apply_update(
            offer_id=offer.offer_id,
            update=FirmOfferUpdate(
                changes={
                    "speaker_confirmed": payload.confirmed,
                    "speaker_notes": payload.notes,
                    "speaker_response_at": now,
                    "updated_at": now,
                },
                require_null=["speaker_confirmed"],
                require_status_in=sorted(DECIDABLE_STATUSES),
            ),
        )
        if updated is None:
            self._ensure_decidable(self._require_offer(offer.offer_id))
            raise InvalidTransitionError("FIRM_OFFER_INVALID_TRANSITION: decision was not applied")
        if updated.speaker_response_at is None or updated.speaker_confirmed is None:
            raise FirmOfferLifecycleError("FIRM_OFFER_DECISION_NOT_PERSISTED")

        logger.info(
            "firm_offer.speaker_responded",
            extra={
                "extra_fields": {
                    "offer_id": offer.offer_id,
                    "speaker_confirmed": updated.speaker_confirmed,
                }
            },
        )
        self._dispatch(
            self._intent_for(
                updated,
                event="speaker_responded",
                recipient_email=self._admin_email,
            )
        )
        display_status = derive_display_status(updated, now)
        return SpeakerDecisionResponse(
            offer_id=updated.offer_id,
            speaker_confirmed=updated.speaker_confirmed,
            display_status=display_status,
            display_label=display_label(display_status),
            speaker_response_at=updated.speaker_response_at.isoformat(),
        )

    def reset_hold(self, *, offer_id: str, payload: HoldResetRequest) -> FirmOfferDetail:
        now = _utc_now()
        self._require_offer(offer_id)
        expires_at = (
            _as_utc(payload.hold_expires_at)
            if payload.hold_expires_at is not None
            else default_hold_expiry(now)
        )
        updated = self._repository.apply_update(
            offer_id=offer_id,
            update=FirmOfferUpdate(
                changes={"hold_expires_at": expires_at, "updated_at": now},
                require_null=["speaker_confirmed"],
            ),
        )
        if updated is None:
            raise InvalidTransitionError("FIRM_OFFER_INVALID_TRANSITION: speaker has responded")
        logger.info(
            "firm_offer.hold_reset",
            extra={
                "extra_fields": {
                    "offer_id": offer_id,
                    "hold_expires_at": expires_at.isoformat(),
                }
            },
        )
        return self._to_detail(updated, now=now)

    def _resolve_source_fields(self, payload: FirmOfferDeriveRequest) -> FirmOfferSourceFields:
        if payload.deal_id:
            deal = self._source_lookup.get_deal(deal_id=payload.deal_id)
            if deal is None:
                raise FirmOfferNotFoundError("DEAL_NOT_FOUND")
            return merge_source_fields(fields_from_deal(deal), payload.fields)
        if payload.proposal_id:
            proposal = self._source_lookup.get_proposal(proposal_id=payload.proposal_id)
            if proposal is None:
                raise FirmOfferNotFoundError("PROPOSAL_NOT_FOUND")
            return merge_source_fields(fields_from_proposal(proposal), payload.fields)
        return payload.fields

    def _require_offer(self, offer_id: str) -> FirmOfferRecord:
        offer = self._repository.get_offer(offer_id=offer_id)
        if offer is None:
            raise FirmOfferNotFoundError("FIRM_OFFER_NOT_FOUND")
        return offer

    def _ensure_client_editable(self, offer: FirmOfferRecord) -> None:
        if offer.speaker_confirmed is not None or offer.status not in CLIENT_EDITABLE_STATUSES:
            raise InvalidTransitionError("FIRM_OFFER_LOCKED: offer is no longer editable")

    def _ensure_sendable(self, offer: FirmOfferRecord) -> None:
        if offer.speaker_confirmed is not None:
            raise InvalidTransitionError(
                "FIRM_OFFER_INVALID_TRANSITION: speaker has already responded"
            )
        if offer.status not in SENDABLE_STATUSES:
            raise InvalidTransitionError(
                f"FIRM_OFFER_INVALID_TRANSITION: cannot send to speaker from {offer.status}"
            )

    def _ensure_decidable(self, offer: FirmOfferRecord) -> None:
        if offer.speaker_confirmed is not None:
            raise AlreadyDecidedError()
        if offer.status not in DECIDABLE_STATUSES:
            raise InvalidTransitionError(
                f"FIRM_OFFER_INVALID_TRANSITION: cannot decide from {offer.status}"
            )

    def _notify_client_delivery(self, offer: FirmOfferRecord) -> None:
        self._dispatch(
            self._intent_for(
                offer,
                event="created",
                recipient_email=offer.document.event_overview.billing_contact.email or None,
                url=client_offer_url(self._public_base_url, offer.client_access_token),
            )
        )

    def _intent_for(
        self,
        offer: FirmOfferRecord,
        *,
        event: NotificationEvent,
        recipient_email: Optional[str],
        url: Optional[str] = None,
    ) -> NotificationIntent:
        return NotificationIntent(
            event=event,
            offer_id=offer.offer_id,
            recipient_email=recipient_email,
            url=url,
            event_name=offer.document.event_overview.event_name,
            speaker_name=offer.document.speaker_program.requested_speaker_name,
            speaker_fee=offer.document.financial_details.speaker_fee,
            speaker_confirmed=offer.speaker_confirmed,
        )

    def _dispatch(self, intent: NotificationIntent) -> None:
        try:
            self._dispatcher.notify(intent)
        except Exception:
            logger.exception(
                "firm_offer.notification_failed",
                extra={"extra_fields": {"offer_id": intent.offer_id, "event": intent.event}},
            )

    def _to_summary(self, offer: FirmOfferRecord, *, now: datetime) -> FirmOfferSummary:
        display_status = derive_display_status(offer, now)
        overview = offer.document.event_overview
        return FirmOfferSummary(
            offer_id=offer.offer_id,
            proposal_id=offer.proposal_id,
            deal_id=offer.deal_id,
            status=offer.status,
            display_status=display_status,
            display_label=display_label(display_status),
            hold=compute_hold_status(
                hold_expires_at=offer.hold_expires_at,
                created_at=offer.created_at,
                now=now,
            ),
            client_name=overview.billing_contact.name,
            event_name=overview.event_name,
            event_date=overview.event_date,
            speaker_name=offer.document.speaker_program.requested_speaker_name,
            speaker_fee=offer.document.financial_details.speaker_fee,
            speaker_confirmed=offer.speaker_confirmed,
            created_at=offer.created_at.isoformat(),
            submitted_at=_optional_iso(offer.submitted_at),
            sent_to_speaker_at=_optional_iso(offer.sent_to_speaker_at),
            speaker_viewed_at=_optional_iso(offer.speaker_viewed_at),
            speaker_response_at=_optional_iso(offer.speaker_response_at),
        )

    def _to_detail(self, offer: FirmOfferRecord, *, now: datetime) -> FirmOfferDetail:
        return FirmOfferDetail(
            summary=self._to_summary(offer, now=now),
            document=offer.document,
            client_access_token=offer.client_access_token,
            speaker_review_token=offer.speaker_review_token,
            client_url=client_offer_url(self._public_base_url, offer.client_access_token),
            speaker_review_url=(
                speaker_review_url(self._public_base_url, offer.speaker_review_token)
                if offer.speaker_review_token
                else None
            ),
            speaker_email=offer.speaker_email,
            speaker_notes=offer.speaker_notes,
            created_by=offer.created_by,
            updated_at=offer.updated_at.isoformat(),
        )


def _matches_search(summary: FirmOfferSummary, needle: str) -> bool:
    haystack = (
        summary.offer_id,
        summary.client_name,
        summary.event_name,
        summary.speaker_name,
    )
    return any(needle in value.lower() for value in haystack)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _optional_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
