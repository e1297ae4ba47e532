import logging
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.core.firm_offers.models import (
    FirmOfferCreateRequest,
    FirmOfferDeriveRequest,
    FirmOfferDocumentPatch,
    HoldResetRequest,
    SendToSpeakerRequest,
    SpeakerDecisionRequest,
    TechnicalRequirements,
)
from src.core.firm_offers.notifications import RecordingNotificationDispatcher
from src.core.firm_offers.service import (
    AlreadyDecidedError,
    FirmOfferNotFoundError,
    FirmOfferWorkflowService,
    InvalidTransitionError,
    MissingRequiredFieldError,
    TokenNotFoundError,
)
from src.infrastructure.firm_offers import InMemoryFirmOfferRepository


class _FailingDispatcher:
    def notify(self, intent) -> None:
        raise ConnectionError("mail relay unavailable")


@pytest.fixture
def repository() -> InMemoryFirmOfferRepository:
    return InMemoryFirmOfferRepository()


@pytest.fixture
def dispatcher() -> RecordingNotificationDispatcher:
    return RecordingNotificationDispatcher()


@pytest.fixture
def service(repository, source_lookup, dispatcher) -> FirmOfferWorkflowService:
    return FirmOfferWorkflowService(
        repository=repository,
        source_lookup=source_lookup,
        dispatcher=dispatcher,
        public_base_url="https://speakabout.ai",
        admin_email="bookings@speakabout.ai",
    )


def _create(service: FirmOfferWorkflowService, **overrides):
    payload = {"deal_id": "deal_1042", "created_by": "admin_noah"}
    payload.update(overrides)
    return service.create_offer(payload=FirmOfferCreateRequest(**payload))


def _sent_offer(service: FirmOfferWorkflowService):
    detail = _create(service)
    sent = service.send_to_speaker(
        offer_id=detail.summary.offer_id,
        payload=SendToSpeakerRequest(speaker_email="sam@patel.example"),
    )
    return detail, sent


def test_create_from_deal_sets_fourteen_day_hold_and_both_tokens(service, repository):
    detail = _create(service)

    stored = repository.get_offer(offer_id=detail.summary.offer_id)
    assert stored.status == "out_for_delivery"
    assert stored.hold_expires_at - stored.created_at == timedelta(days=14)
    assert stored.deal_id == "deal_1042"
    assert stored.created_by == "admin_noah"
    assert stored.client_access_token != stored.speaker_review_token
    assert detail.summary.offer_id.startswith("fo_")
    assert detail.summary.display_status == "out_for_delivery"
    assert detail.summary.hold.days_remaining == 14
    assert detail.summary.speaker_fee == Decimal("16000.00")
    assert detail.client_url == f"https://speakabout.ai/firm-offer/{stored.client_access_token}"
    assert detail.speaker_review_url == (
        f"https://speakabout.ai/speaker-review/{stored.speaker_review_token}"
    )


def test_create_notifies_client_with_link(service, repository, dispatcher):
    detail = _create(service)

    stored = repository.get_offer(offer_id=detail.summary.offer_id)
    assert len(dispatcher.intents) == 1
    intent = dispatcher.intents[0]
    assert intent.event == "created"
    assert intent.recipient_email == "dana@acme.example"
    assert intent.url == f"https://speakabout.ai/firm-offer/{stored.client_access_token}"
    assert intent.event_name == "Annual Leadership Summit"
    assert intent.speaker_fee == Decimal("16000.00")


def test_create_with_explicit_hold_expiry(service, repository):
    expires_at = datetime(2030, 1, 15, 17, 0, tzinfo=timezone.utc)

    detail = _create(service, hold_expires_at=expires_at)

    assert repository.get_offer(offer_id=detail.summary.offer_id).hold_expires_at == expires_at


def test_create_from_missing_deal_raises_not_found(service):
    with pytest.raises(FirmOfferNotFoundError, match="DEAL_NOT_FOUND"):
        _create(service, deal_id="deal_missing")


def test_create_from_missing_proposal_raises_not_found(service):
    with pytest.raises(FirmOfferNotFoundError, match="PROPOSAL_NOT_FOUND"):
        _create(service, deal_id=None, proposal_id="prop_missing")


def test_manual_create_requires_fields(service):
    with pytest.raises(MissingRequiredFieldError, match="client_name"):
        _create(service, deal_id=None, fields={"speaker_name": "Sam"})


def test_derive_draft_does_not_persist(service, repository):
    draft = service.derive_draft(
        payload=FirmOfferDeriveRequest(
            proposal_id="prop_311",
            fields={"speaker_fee": "31000"},
        )
    )

    assert draft.source == "proposal"
    assert draft.document.financial_details.speaker_fee == Decimal("31000.00")
    assert repository.list_offers(status=None, proposal_id=None) == []


def test_draft_offers_are_delivered_explicitly(service, dispatcher):
    detail = _create(service, initial_status="draft")
    assert dispatcher.intents == []
    assert detail.summary.display_status == "draft"

    delivered = service.deliver_offer(offer_id=detail.summary.offer_id)

    assert delivered.summary.status == "out_for_delivery"
    assert [intent.event for intent in dispatcher.intents] == ["created"]
    with pytest.raises(InvalidTransitionError):
        service.deliver_offer(offer_id=detail.summary.offer_id)


def test_submit_records_first_submission_only(service, repository, dispatcher):
    detail = _create(service)
    token = detail.client_access_token

    first = service.submit_offer(
        token=token,
        updates=FirmOfferDocumentPatch(
            technical_requirements=TechnicalRequirements(projector_screen="16:9 LED wall")
        ),
    )
    second = service.submit_offer(token=token)

    assert first.status == "submitted"
    assert first.document.technical_requirements.projector_screen == "16:9 LED wall"
    assert second.submitted_at == first.submitted_at
    stored = repository.get_offer(offer_id=detail.summary.offer_id)
    assert stored.document.technical_requirements.projector_screen == "16:9 LED wall"
    assert dispatcher.intents[-1].event == "submitted"
    assert dispatcher.intents[-1].recipient_email == "bookings@speakabout.ai"


def test_submit_from_draft_is_rejected(service):
    detail = _create(service, initial_status="draft")

    with pytest.raises(InvalidTransitionError):
        service.submit_offer(token=detail.client_access_token)


def test_submit_with_unknown_token_raises_token_not_found(service):
    with pytest.raises(TokenNotFoundError):
        service.submit_offer(token="Z" * 40)


def test_send_to_speaker_from_draft_is_rejected(service):
    detail = _create(service, initial_status="draft")

    with pytest.raises(InvalidTransitionError):
        service.send_to_speaker(offer_id=detail.summary.offer_id, payload=SendToSpeakerRequest())


def test_send_to_speaker_returns_review_link_and_notifies(service, dispatcher):
    detail, sent = _sent_offer(service)

    assert sent.status == "sent_to_speaker"
    assert sent.speaker_review_url == detail.speaker_review_url
    intent = dispatcher.intents[-1]
    assert intent.event == "sent_to_speaker"
    assert intent.recipient_email == "sam@patel.example"
    assert intent.url == sent.speaker_review_url
    assert intent.speaker_name == "Sam Patel"


def test_resend_reuses_token_and_first_timestamp(service, repository):
    detail, first = _sent_offer(service)

    second = service.send_to_speaker(
        offer_id=detail.summary.offer_id,
        payload=SendToSpeakerRequest(speaker_name="Dr. Sam Patel"),
    )

    assert second.speaker_review_url == first.speaker_review_url
    assert second.sent_to_speaker_at == first.sent_to_speaker_at
    stored = repository.get_offer(offer_id=detail.summary.offer_id)
    assert stored.speaker_email == "sam@patel.example"


def test_send_mints_speaker_token_when_missing(service, repository):
    detail = _create(service)
    offer_id = detail.summary.offer_id
    with repository._lock:
        repository._offers[offer_id].speaker_review_token = None
        repository._by_speaker_token.clear()

    sent = service.send_to_speaker(offer_id=offer_id, payload=SendToSpeakerRequest())

    stored = repository.get_offer(offer_id=offer_id)
    assert stored.speaker_review_token is not None
    assert sent.speaker_review_url.endswith(stored.speaker_review_token)


def test_speaker_view_records_first_view_only(service, repository):
    detail, _ = _sent_offer(service)
    token = detail.speaker_review_token

    service.record_speaker_view(token=token)
    first_view = repository.get_offer(offer_id=detail.summary.offer_id).speaker_viewed_at
    view = service.record_speaker_view(token=token)

    assert first_view is not None
    assert repository.get_offer(offer_id=detail.summary.offer_id).speaker_viewed_at == first_view
    assert view.display_status == "awaiting_speaker"
    assert view.speaker_fee == Decimal("16000.00")


def test_decision_is_recorded_once(service, repository, dispatcher):
    detail, _ = _sent_offer(service)
    token = detail.speaker_review_token

    decision = service.record_speaker_decision(
        token=token,
        payload=SpeakerDecisionRequest(confirmed=True, notes="Looking forward to it."),
    )

    assert decision.speaker_confirmed is True
    assert decision.display_status == "speaker_confirmed"
    assert decision.display_label == "Speaker Confirmed"
    assert dispatcher.intents[-1].event == "speaker_responded"
    assert dispatcher.intents[-1].speaker_confirmed is True

    with pytest.raises(AlreadyDecidedError, match="SPEAKER_ALREADY_DECIDED"):
        service.record_speaker_decision(
            token=token, payload=SpeakerDecisionRequest(confirmed=False)
        )

    stored = repository.get_offer(offer_id=detail.summary.offer_id)
    assert stored.speaker_confirmed is True
    assert stored.speaker_notes == "Looking forward to it."
    assert stored.speaker_response_at.isoformat() == decision.speaker_response_at


def test_decision_before_send_is_rejected(service):
    detail = _create(service)

    with pytest.raises(InvalidTransitionError):
        service.record_speaker_decision(
            token=detail.speaker_review_token,
            payload=SpeakerDecisionRequest(confirmed=True),
        )


def test_send_after_decision_is_rejected(service):
    detail, _ = _sent_offer(service)
    service.record_speaker_decision(
        token=detail.speaker_review_token,
        payload=SpeakerDecisionRequest(confirmed=False),
    )

    with pytest.raises(InvalidTransitionError):
        service.send_to_speaker(offer_id=detail.summary.offer_id, payload=SendToSpeakerRequest())


def test_concurrent_decisions_accept_exactly_one(service, repository):
    detail, _ = _sent_offer(service)
    token = detail.speaker_review_token
    barrier = threading.Barrier(2)
    outcomes: dict[bool, object] = {}

    def _decide(confirmed: bool) -> None:
        barrier.wait()
        try:
            outcomes[confirmed] = service.record_speaker_decision(
                token=token, payload=SpeakerDecisionRequest(confirmed=confirmed)
            )
        except AlreadyDecidedError as exc:
            outcomes[confirmed] = exc

    threads = [threading.Thread(target=_decide, args=(value,)) for value in (True, False)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    accepted = [value for value, outcome in outcomes.items() if not isinstance(outcome, Exception)]
    rejected = [value for value, outcome in outcomes.items() if isinstance(outcome, Exception)]
    assert len(accepted) == 1
    assert len(rejected) == 1
    stored = repository.get_offer(offer_id=detail.summary.offer_id)
    assert stored.speaker_confirmed is accepted[0]


def test_expired_hold_surfaces_while_awaiting_speaker(service):
    detail = _create(service, hold_expires_at=datetime.now(timezone.utc) - timedelta(days=3))
    service.send_to_speaker(offer_id=detail.summary.offer_id, payload=SendToSpeakerRequest())

    summary = service.get_offer(offer_id=detail.summary.offer_id).summary

    assert summary.status == "sent_to_speaker"
    assert summary.display_status == "hold_expired"
    assert summary.hold.expired is True
    assert summary.hold.days_remaining == 0


def test_reset_hold_extends_window_until_decision(service, repository):
    detail = _create(service, hold_expires_at=datetime.now(timezone.utc) - timedelta(days=3))
    offer_id = detail.summary.offer_id

    reset = service.reset_hold(offer_id=offer_id, payload=HoldResetRequest())

    assert reset.summary.hold.expired is False
    assert reset.summary.hold.days_remaining == 14
    stored = repository.get_offer(offer_id=offer_id)
    assert stored.hold_expires_at > datetime.now(timezone.utc) + timedelta(days=13)

    service.send_to_speaker(offer_id=offer_id, payload=SendToSpeakerRequest())
    service.record_speaker_decision(
        token=detail.speaker_review_token,
        payload=SpeakerDecisionRequest(confirmed=True),
    )
    with pytest.raises(InvalidTransitionError):
        service.reset_hold(offer_id=offer_id, payload=HoldResetRequest())


def test_transitions_never_touch_hold_expiry(service, repository):
    detail = _create(service)
    offer_id = detail.summary.offer_id
    original = repository.get_offer(offer_id=offer_id).hold_expires_at

    service.submit_offer(token=detail.client_access_token)
    service.send_to_speaker(offer_id=offer_id, payload=SendToSpeakerRequest())
    service.record_speaker_view(token=detail.speaker_review_token)
    service.record_speaker_decision(
        token=detail.speaker_review_token,
        payload=SpeakerDecisionRequest(confirmed=True),
    )

    assert repository.get_offer(offer_id=offer_id).hold_expires_at == original


def test_admin_update_is_locked_after_speaker_response(service):
    detail, _ = _sent_offer(service)
    patch = FirmOfferDocumentPatch(
        technical_requirements=TechnicalRequirements(microphone_type="Handheld")
    )

    updated = service.update_offer(offer_id=detail.summary.offer_id, patch=patch)
    assert updated.document.technical_requirements.microphone_type == "Handheld"

    service.record_speaker_decision(
        token=detail.speaker_review_token,
        payload=SpeakerDecisionRequest(confirmed=True),
    )
    with pytest.raises(InvalidTransitionError):
        service.update_offer(offer_id=detail.summary.offer_id, patch=patch)


def test_client_edits_close_once_sent_to_speaker(service):
    detail = _create(service)
    patch = FirmOfferDocumentPatch(
        technical_requirements=TechnicalRequirements(lighting_requirements="Warm wash")
    )

    saved = service.update_client_offer(token=detail.client_access_token, patch=patch)
    assert saved.editable is True
    assert saved.status == "out_for_delivery"

    service.send_to_speaker(offer_id=detail.summary.offer_id, payload=SendToSpeakerRequest())
    with pytest.raises(InvalidTransitionError):
        service.update_client_offer(token=detail.client_access_token, patch=patch)
    assert service.get_client_view(token=detail.client_access_token).editable is False


def test_admin_lookup_of_unknown_offer(service):
    with pytest.raises(FirmOfferNotFoundError, match="FIRM_OFFER_NOT_FOUND"):
        service.get_offer(offer_id="fo_missing")


def test_list_filters_by_display_status_and_search(service):
    first = _create(service)
    second = _create(service, deal_id=None, proposal_id="prop_311")
    service.submit_offer(token=second.client_access_token)

    everything = service.list_offers()
    ready = service.list_offers(display_status="ready_for_review")
    by_speaker = service.list_offers(search="ava chen")
    by_proposal = service.list_offers(proposal_id="prop_311")
    limited = service.list_offers(limit=1)

    assert [item.offer_id for item in everything.items] == [
        second.summary.offer_id,
        first.summary.offer_id,
    ]
    assert [item.offer_id for item in ready.items] == [second.summary.offer_id]
    assert [item.offer_id for item in by_speaker.items] == [second.summary.offer_id]
    assert [item.offer_id for item in by_proposal.items] == [second.summary.offer_id]
    assert len(limited.items) == 1


def test_dispatcher_failure_does_not_roll_back_transition(repository, source_lookup, caplog):
    service = FirmOfferWorkflowService(
        repository=repository,
        source_lookup=source_lookup,
        dispatcher=_FailingDispatcher(),
        public_base_url="https://speakabout.ai",
    )

    with caplog.at_level(logging.ERROR, logger="src.core.firm_offers.service"):
        detail = _create(service)

    assert repository.get_offer(offer_id=detail.summary.offer_id) is not None
    assert any(record.getMessage() == "firm_offer.notification_failed" for record in caplog.records)


def test_transition_logs_carry_offer_id_but_no_tokens(service, caplog):
    with caplog.at_level(logging.INFO, logger="src.core.firm_offers.service"):
        detail, _ = _sent_offer(service)
        service.record_speaker_decision(
            token=detail.speaker_review_token,
            payload=SpeakerDecisionRequest(confirmed=True),
        )

    messages = [record.getMessage() for record in caplog.records]
    assert "firm_offer.created" in messages
    assert "firm_offer.sent_to_speaker" in messages
    assert "firm_offer.speaker_responded" in messages
    for record in caplog.records:
        rendered = f"{record.getMessage()} {getattr(record, 'extra_fields', {})}"
        assert detail.client_access_token not in rendered
        assert detail.speaker_review_token not in rendered
