from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from src.core.firm_offers.errors import MissingRequiredFieldError
from src.core.firm_offers.models import (
    AdditionalInfo,
    BillingContact,
    Confirmation,
    ContactDetails,
    DealSourceRecord,
    EventClassification,
    EventOverview,
    EventSchedule,
    FinancialDetails,
    FirmOfferDocument,
    FirmOfferSourceFields,
    ProgramType,
    ProposalSourceRecord,
    SpeakerProgram,
    TechnicalRequirements,
    TravelAccommodation,
)

SPEAKER_FEE_SHARE = Decimal("0.8")
_CENTS = Decimal("0.01")

_PROGRAM_TYPE_KEYWORDS: tuple[tuple[str, ProgramType], ...] = (
    ("workshop", "workshop"),
    ("panel", "panel_discussion"),
    ("fireside", "fireside_chat"),
)
_VIRTUAL_KEYWORDS = ("virtual", "webinar", "online")


def estimate_speaker_fee(deal_value: Decimal) -> Decimal:
    return (Decimal(deal_value) * SPEAKER_FEE_SHARE).quantize(_CENTS, rounding=ROUND_HALF_UP)


def infer_program_type(event_type: Optional[str]) -> ProgramType:
    normalized = (event_type or "").lower()
    for keyword, program_type in _PROGRAM_TYPE_KEYWORDS:
        if keyword in normalized:
            return program_type
    return "keynote"


def infer_event_classification(
    event_type: Optional[str], *, travel_required: bool, flight_required: bool
) -> EventClassification:
    normalized = (event_type or "").lower()
    if any(keyword in normalized for keyword in _VIRTUAL_KEYWORDS):
        return "virtual"
    if not travel_required and not flight_required:
        return "local"
    return "travel"


def fields_from_deal(deal: DealSourceRecord) -> FirmOfferSourceFields:
    return FirmOfferSourceFields(
        client_name=deal.client_name,
        client_email=deal.client_email,
        client_phone=deal.client_phone,
        client_company=deal.company,
        event_name=deal.event_title,
        event_date=deal.event_date,
        event_location=deal.event_location,
        event_type=deal.event_type,
        attendee_count=deal.attendee_count,
        speaker_name=deal.speaker_requested,
        speaker_fee=estimate_speaker_fee(deal.deal_value),
        program_type=infer_program_type(deal.event_type),
        event_classification=infer_event_classification(
            deal.event_type,
            travel_required=deal.travel_required,
            flight_required=deal.flight_required,
        ),
        travel_required=deal.travel_required,
        flight_required=deal.flight_required,
        hotel_required=deal.hotel_required,
        travel_buyout=deal.travel_stipend,
        travel_notes=deal.travel_notes,
        notes=deal.notes or None,
    )


def fields_from_proposal(proposal: ProposalSourceRecord) -> FirmOfferSourceFields:
    speaker = proposal.speakers[0] if proposal.speakers else None
    speaker_fee = speaker.fee if speaker is not None and speaker.fee else None
    return FirmOfferSourceFields(
        client_name=proposal.client_name,
        client_email=proposal.client_email,
        event_name=proposal.event_title or proposal.title,
        event_date=proposal.event_date,
        event_location=proposal.event_location,
        attendee_count=proposal.attendee_count,
        speaker_name=speaker.name if speaker is not None else "",
        speaker_fee=speaker_fee if speaker_fee is not None else proposal.total_investment,
        program_type="keynote",
    )


def merge_source_fields(
    base: FirmOfferSourceFields, overrides: FirmOfferSourceFields
) -> FirmOfferSourceFields:
    """Overlay explicitly supplied manual fields onto derived ones."""
    supplied = overrides.model_dump(exclude_none=True)
    return base.model_copy(update=supplied)


def build_firm_offer_document(fields: FirmOfferSourceFields) -> FirmOfferDocument:
    _require_fields(fields)
    client_name = fields.client_name or ""
    client_email = fields.client_email or ""
    client_phone = fields.client_phone or ""
    travel_buyout = fields.travel_buyout or Decimal("0")
    program_type = fields.program_type or infer_program_type(fields.event_type)

    return FirmOfferDocument(
        event_overview=EventOverview(
            billing_contact=BillingContact(
                name=client_name,
                email=client_email,
                phone=client_phone,
            ),
            logistics_contact=ContactDetails(
                name=client_name,
                email=client_email,
                phone=client_phone,
            ),
            event_classification=fields.event_classification,
            end_client_name=fields.client_company or client_name,
            event_date=fields.event_date or "",
            event_name=fields.event_name or "",
            venue_address=fields.event_location or "",
        ),
        speaker_program=SpeakerProgram(
            requested_speaker_name=fields.speaker_name or "",
            program_type=program_type,
            audience_size=fields.attendee_count or 0,
        ),
        event_schedule=EventSchedule(),
        technical_requirements=TechnicalRequirements(),
        travel_accommodation=TravelAccommodation(
            travel_required=bool(fields.travel_required),
            flight_required=bool(fields.flight_required),
            hotel_required=bool(fields.hotel_required),
        ),
        additional_info=AdditionalInfo(),
        financial_details=FinancialDetails(
            speaker_fee=Decimal(fields.speaker_fee).quantize(_CENTS, rounding=ROUND_HALF_UP),
            travel_expenses_type="flat_buyout" if travel_buyout > 0 else "client_books",
            travel_buyout_amount=travel_buyout,
            travel_notes=fields.travel_notes or "",
        ),
        confirmation=Confirmation(additional_notes=fields.notes or ""),
    )


def _require_fields(fields: FirmOfferSourceFields) -> None:
    if not (fields.client_name or "").strip():
        raise MissingRequiredFieldError("client_name")
    if not (fields.speaker_name or "").strip():
        raise MissingRequiredFieldError("speaker_name")
    if not (fields.event_name or "").strip():
        raise MissingRequiredFieldError("event_name")
    if fields.speaker_fee is None or fields.speaker_fee <= 0:
        raise MissingRequiredFieldError("speaker_fee")
