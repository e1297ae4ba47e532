from datetime import datetime, timedelta, timezone

import pytest

from src.core.firm_offers.models import (
    FirmOfferDocument,
    FirmOfferRecord,
    FirmOfferUpdate,
    TechnicalRequirements,
)
from src.infrastructure.firm_offers import InMemoryFirmOfferRepository

CREATED_AT = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _offer(offer_id: str, **overrides) -> FirmOfferRecord:
    payload = {
        "offer_id": offer_id,
        "status": "out_for_delivery",
        "client_access_token": f"client-{offer_id}",
        "speaker_review_token": f"speaker-{offer_id}",
        "created_at": CREATED_AT,
        "updated_at": CREATED_AT,
        "hold_expires_at": CREATED_AT + timedelta(days=14),
        "document": FirmOfferDocument(),
    }
    payload.update(overrides)
    return FirmOfferRecord(**payload)


def test_create_and_lookup_by_id_and_tokens():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1"))

    assert repository.get_offer(offer_id="fo_1").offer_id == "fo_1"
    assert repository.get_offer_by_client_token(token="client-fo_1").offer_id == "fo_1"
    assert repository.get_offer_by_speaker_token(token="speaker-fo_1").offer_id == "fo_1"
    assert repository.get_offer(offer_id="fo_missing") is None
    assert repository.get_offer_by_client_token(token="speaker-fo_1") is None
    assert repository.get_offer_by_speaker_token(token="client-fo_1") is None


def test_duplicate_offer_id_is_rejected():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1"))

    with pytest.raises(ValueError, match="FIRM_OFFER_ALREADY_EXISTS"):
        repository.create_offer(_offer("fo_1"))


def test_returned_records_are_isolated_copies():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1"))

    fetched = repository.get_offer(offer_id="fo_1")
    fetched.status = "sent_to_speaker"
    fetched.document.event_overview.event_name = "Mutated"

    stored = repository.get_offer(offer_id="fo_1")
    assert stored.status == "out_for_delivery"
    assert stored.document.event_overview.event_name == ""


def test_list_filters_and_orders_newest_first():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1", proposal_id="prop_1"))
    repository.create_offer(
        _offer("fo_2", created_at=CREATED_AT + timedelta(hours=1), status="submitted")
    )
    repository.create_offer(
        _offer("fo_3", created_at=CREATED_AT + timedelta(hours=2), proposal_id="prop_1")
    )

    assert [row.offer_id for row in repository.list_offers(status=None, proposal_id=None)] == [
        "fo_3",
        "fo_2",
        "fo_1",
    ]
    assert [
        row.offer_id for row in repository.list_offers(status="submitted", proposal_id=None)
    ] == ["fo_2"]
    assert [
        row.offer_id for row in repository.list_offers(status=None, proposal_id="prop_1")
    ] == ["fo_3", "fo_1"]


def test_apply_update_writes_changes_and_sections():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1"))
    later = CREATED_AT + timedelta(days=1)

    updated = repository.apply_update(
        offer_id="fo_1",
        update=FirmOfferUpdate(
            changes={
                "status": "submitted",
                "updated_at": later,
                "technical_requirements": TechnicalRequirements(projector_screen="LED"),
            },
        ),
    )

    assert updated.status == "submitted"
    assert updated.updated_at == later
    assert updated.document.technical_requirements.projector_screen == "LED"
    assert repository.get_offer(offer_id="fo_1").document.technical_requirements.projector_screen == (
        "LED"
    )


def test_set_once_keeps_first_value():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1"))
    first = CREATED_AT + timedelta(days=1)
    second = CREATED_AT + timedelta(days=2)

    repository.apply_update(offer_id="fo_1", update=FirmOfferUpdate(set_once={"submitted_at": first}))
    repository.apply_update(offer_id="fo_1", update=FirmOfferUpdate(set_once={"submitted_at": second}))

    assert repository.get_offer(offer_id="fo_1").submitted_at == first


def test_preconditions_block_update():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1", status="sent_to_speaker", speaker_confirmed=True))

    wrong_status = repository.apply_update(
        offer_id="fo_1",
        update=FirmOfferUpdate(
            changes={"status": "submitted"}, require_status_in=["out_for_delivery"]
        ),
    )
    decided = repository.apply_update(
        offer_id="fo_1",
        update=FirmOfferUpdate(
            changes={"speaker_confirmed": False}, require_null=["speaker_confirmed"]
        ),
    )
    missing = repository.apply_update(
        offer_id="fo_missing", update=FirmOfferUpdate(changes={"status": "submitted"})
    )

    assert wrong_status is None
    assert decided is None
    assert missing is None
    stored = repository.get_offer(offer_id="fo_1")
    assert stored.status == "sent_to_speaker"
    assert stored.speaker_confirmed is True


def test_minted_speaker_token_is_indexed():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1", speaker_review_token=None))

    repository.apply_update(
        offer_id="fo_1",
        update=FirmOfferUpdate(set_once={"speaker_review_token": "minted-token"}),
    )

    assert repository.get_offer_by_speaker_token(token="minted-token").offer_id == "fo_1"


def test_update_rejects_unknown_fields():
    repository = InMemoryFirmOfferRepository()
    repository.create_offer(_offer("fo_1"))

    with pytest.raises(ValueError, match="FIRM_OFFER_UPDATE_FIELD_NOT_ALLOWED"):
        repository.apply_update(
            offer_id="fo_1",
            update=FirmOfferUpdate(changes={"client_access_token": "stolen"}),
        )
