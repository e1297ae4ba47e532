from datetime import datetime

from src.core.firm_offers.hold import compute_hold_status
from src.core.firm_offers.models import (
    FirmOfferDisplayStatus,
    FirmOfferRecord,
    FirmOfferStatus,
)

DISPLAY_STATUS_LABELS: dict[FirmOfferDisplayStatus, str] = {
    "speaker_confirmed": "Speaker Confirmed",
    "speaker_declined": "Speaker Declined",
    "hold_expired": "Hold Expired",
    "awaiting_speaker": "Awaiting Speaker",
    "ready_for_review": "Ready for Review",
    "out_for_delivery": "Out for Delivery",
    "draft": "Draft",
}

CLIENT_EDITABLE_STATUSES: frozenset[FirmOfferStatus] = frozenset(
    {"draft", "out_for_delivery", "submitted"}
)
SUBMITTABLE_STATUSES: frozenset[FirmOfferStatus] = frozenset({"out_for_delivery", "submitted"})
SENDABLE_STATUSES: frozenset[FirmOfferStatus] = frozenset(
    {"out_for_delivery", "submitted", "sent_to_speaker"}
)
DELIVERABLE_STATUSES: frozenset[FirmOfferStatus] = frozenset({"draft"})
DECIDABLE_STATUSES: frozenset[FirmOfferStatus] = frozenset({"sent_to_speaker"})


def derive_display_status(record: FirmOfferRecord, now: datetime) -> FirmOfferDisplayStatus:
    """Collapse persisted status, hold state, and speaker decision into one status.

    Rules are evaluated in order and the first match wins; an expired hold
    outranks every persisted status but not a recorded speaker decision.
    """
    if record.speaker_confirmed is True:
        return "speaker_confirmed"
    if record.speaker_confirmed is False:
        return "speaker_declined"
    hold = compute_hold_status(
        hold_expires_at=record.hold_expires_at,
        created_at=record.created_at,
        now=now,
    )
    if hold.expired:
        return "hold_expired"
    if record.status == "sent_to_speaker":
        return "awaiting_speaker"
    if record.status == "submitted":
        return "ready_for_review"
    if record.status == "out_for_delivery":
        return "out_for_delivery"
    return "draft"


def display_label(display_status: FirmOfferDisplayStatus) -> str:
    return DISPLAY_STATUS_LABELS[display_status]


def speaker_has_responded(record: FirmOfferRecord) -> bool:
    return record.speaker_confirmed is not None


def client_can_edit(record: FirmOfferRecord) -> bool:
    return record.status in CLIENT_EDITABLE_STATUSES and not speaker_has_responded(record)
