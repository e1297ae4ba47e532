from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

FirmOfferStatus = Literal["draft", "out_for_delivery", "submitted", "sent_to_speaker"]

FirmOfferDisplayStatus = Literal[
    "speaker_confirmed",
    "speaker_declined",
    "hold_expired",
    "awaiting_speaker",
    "ready_for_review",
    "out_for_delivery",
    "draft",
]

FirmOfferSource = Literal["deal", "proposal", "manual"]
ProgramType = Literal["keynote", "fireside_chat", "panel_discussion", "workshop", "other"]
EventClassification = Literal["virtual", "local", "travel"]
SpeakerAttire = Literal["business_formal", "business_casual", "smart_casual", "other"]
RecordingPurpose = Literal["internal", "promotional", "both", "none"]
TransportationArrangement = Literal["client_provides", "speaker_arranges", "tbd"]
HotelTier = Literal["standard", "upscale", "luxury", "tbd"]
TravelExpensesType = Literal["flat_buyout", "client_books", "reimbursement"]
NotificationEvent = Literal["created", "submitted", "sent_to_speaker", "speaker_responded"]


class BillingContact(BaseModel):
    name: str = ""
    title: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


class ContactDetails(BaseModel):
    name: str = ""
    email: str = ""
    phone: str = ""


class EventOverview(BaseModel):
    billing_contact: BillingContact = Field(default_factory=BillingContact)
    logistics_contact: ContactDetails = Field(default_factory=ContactDetails)
    event_classification: Optional[EventClassification] = None
    end_client_name: str = ""
    event_date: str = ""
    event_name: str = ""
    event_website: str = ""
    venue_name: str = ""
    venue_address: str = ""
    venue_contact: ContactDetails = Field(default_factory=ContactDetails)


class SpeakerProgram(BaseModel):
    requested_speaker_name: str = ""
    program_topic: str = ""
    program_type: ProgramType = "keynote"
    program_type_other: str = ""
    audience_size: int = 0
    audience_demographics: str = ""
    speaker_attire: SpeakerAttire = "business_casual"
    speaker_attire_other: str = ""


class EventSchedule(BaseModel):
    event_start_time: str = ""
    event_end_time: str = ""
    speaker_arrival_time: str = ""
    program_start_time: str = ""
    program_length_minutes: int = 60
    qa_length_minutes: int = 15
    total_program_length_minutes: int = 75
    speaker_departure_time: str = ""
    detailed_timeline: str = ""
    timezone: str = "America/New_York"


class TechnicalRequirements(BaseModel):
    microphone_type: str = "Lavalier/lapel preferred"
    projector_screen: str = ""
    lighting_requirements: str = ""
    other_av: str = ""
    recording_allowed: bool = False
    recording_purpose: RecordingPurpose = "none"
    live_stream: bool = False
    photography_allowed: bool = True
    tech_rehearsal_date: str = ""
    tech_rehearsal_time: str = ""


class TravelAccommodation(BaseModel):
    travel_required: bool = False
    flight_required: bool = False
    fly_in_date: str = ""
    fly_out_date: str = ""
    nearest_airport: str = ""
    airport_transportation: TransportationArrangement = "tbd"
    hotel_transportation: TransportationArrangement = "tbd"
    hotel_required: bool = True
    hotel_dates: str = ""
    hotel_tier: HotelTier = "upscale"
    meals_provided: List[str] = Field(default_factory=list)
    dietary_requirements: str = ""
    guest_list_invitation: bool = False
    vip_meet_greet: bool = False


class AdditionalInfo(BaseModel):
    green_room_available: bool = False
    meet_greet_before: bool = False
    meet_greet_after: bool = False
    vip_reception: bool = False
    marketing_use_approved: bool = True
    press_media_present: bool = False
    interview_requests: str = ""
    special_requests: str = ""


class FinancialDetails(BaseModel):
    speaker_fee: Decimal = Decimal("0")
    travel_expenses_type: TravelExpensesType = "flat_buyout"
    travel_buyout_amount: Decimal = Decimal("0")
    travel_notes: str = ""
    payment_terms: str = "Net 30 days after event"


class Confirmation(BaseModel):
    prep_call_requested: bool = True
    prep_call_date_preferences: str = ""
    additional_notes: str = ""


class FirmOfferDocument(BaseModel):
    event_overview: EventOverview = Field(
        default_factory=EventOverview,
        description="Event, venue, billing, and logistics contact details.",
    )
    speaker_program: SpeakerProgram = Field(
        default_factory=SpeakerProgram,
        description="Requested speaker and program shape.",
    )
    event_schedule: EventSchedule = Field(
        default_factory=EventSchedule,
        description="Event-day timings for the speaker.",
    )
    technical_requirements: TechnicalRequirements = Field(
        default_factory=TechnicalRequirements,
        description="AV, recording, and rehearsal requirements.",
    )
    travel_accommodation: TravelAccommodation = Field(
        default_factory=TravelAccommodation,
        description="Travel and hotel arrangements.",
    )
    additional_info: AdditionalInfo = Field(
        default_factory=AdditionalInfo,
        description="Hospitality, marketing, and media details.",
    )
    financial_details: FinancialDetails = Field(
        default_factory=FinancialDetails,
        description="Speaker fee, travel expenses, and payment terms.",
    )
    confirmation: Confirmation = Field(
        default_factory=Confirmation,
        description="Prep call preferences and closing notes.",
    )


DOCUMENT_SECTIONS = tuple(FirmOfferDocument.model_fields)


class FirmOfferDocumentPatch(BaseModel):
    event_overview: Optional[EventOverview] = Field(
        default=None, description="Replacement event overview section."
    )
    speaker_program: Optional[SpeakerProgram] = Field(
        default=None, description="Replacement speaker program section."
    )
    event_schedule: Optional[EventSchedule] = Field(
        default=None, description="Replacement event schedule section."
    )
    technical_requirements: Optional[TechnicalRequirements] = Field(
        default=None, description="Replacement technical requirements section."
    )
    travel_accommodation: Optional[TravelAccommodation] = Field(
        default=None, description="Replacement travel and accommodation section."
    )
    additional_info: Optional[AdditionalInfo] = Field(
        default=None, description="Replacement additional info section."
    )
    financial_details: Optional[FinancialDetails] = Field(
        default=None, description="Replacement financial details section."
    )
    confirmation: Optional[Confirmation] = Field(
        default=None, description="Replacement confirmation section."
    )

    def section_changes(self) -> Dict[str, BaseModel]:
        return {
            name: getattr(self, name)
            for name in DOCUMENT_SECTIONS
            if getattr(self, name) is not None
        }


class DealSourceRecord(BaseModel):
    deal_id: str
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    company: str = ""
    event_title: str = ""
    event_date: str = ""
    event_location: str = ""
    event_type: str = ""
    speaker_requested: str = ""
    attendee_count: int = 0
    deal_value: Decimal = Decimal("0")
    status: str = ""
    travel_required: bool = False
    flight_required: bool = False
    hotel_required: bool = False
    travel_stipend: Optional[Decimal] = None
    travel_notes: str = ""
    notes: str = ""


class ProposalSpeaker(BaseModel):
    name: str = ""
    fee: Optional[Decimal] = None


class ProposalSourceRecord(BaseModel):
    proposal_id: str
    title: str = ""
    client_name: str = ""
    client_email: str = ""
    speakers: List[ProposalSpeaker] = Field(default_factory=list)
    total_investment: Optional[Decimal] = None
    event_title: str = ""
    event_date: str = ""
    event_location: str = ""
    attendee_count: int = 0


class FirmOfferSourceFields(BaseModel):
    client_name: Optional[str] = Field(
        default=None, description="Billing and logistics contact name.", examples=["Dana Reyes"]
    )
    client_email: Optional[str] = Field(
        default=None, description="Client contact email.", examples=["dana@acme.example"]
    )
    client_phone: Optional[str] = Field(
        default=None, description="Client contact phone.", examples=["+1 415 555 0100"]
    )
    client_company: Optional[str] = Field(
        default=None, description="End client organization.", examples=["Acme Corp"]
    )
    event_name: Optional[str] = Field(
        default=None, description="Event title.", examples=["Annual Leadership Summit 2026"]
    )
    event_date: Optional[str] = Field(
        default=None, description="Event date (ISO date).", examples=["2026-11-14"]
    )
    event_location: Optional[str] = Field(
        default=None, description="Event location or venue address.", examples=["San Francisco, CA"]
    )
    event_type: Optional[str] = Field(
        default=None,
        description="Free-text event type used to infer the program type.",
        examples=["Executive keynote"],
    )
    attendee_count: Optional[int] = Field(
        default=None, ge=0, description="Expected audience size.", examples=[500]
    )
    speaker_name: Optional[str] = Field(
        default=None, description="Requested speaker name.", examples=["Sam Patel"]
    )
    speaker_fee: Optional[Decimal] = Field(
        default=None, ge=0, description="Speaker fee in USD.", examples=["16000.00"]
    )
    program_type: Optional[ProgramType] = Field(
        default=None,
        description="Explicit program type; inferred from event_type when omitted.",
        examples=["keynote"],
    )
    event_classification: Optional[EventClassification] = Field(
        default=None,
        description="Virtual, local, or travel event; inferred for deal sources.",
        examples=["travel"],
    )
    travel_required: Optional[bool] = Field(default=None, description="Travel required.")
    flight_required: Optional[bool] = Field(default=None, description="Flight required.")
    hotel_required: Optional[bool] = Field(default=None, description="Hotel required.")
    travel_buyout: Optional[Decimal] = Field(
        default=None, ge=0, description="Flat travel buyout amount.", examples=["2500"]
    )
    travel_notes: Optional[str] = Field(default=None, description="Travel notes.")
    notes: Optional[str] = Field(default=None, description="Additional notes for the offer.")


class FirmOfferDeriveRequest(BaseModel):
    deal_id: Optional[str] = Field(
        default=None, description="Deal to prefill from.", examples=["deal_1042"]
    )
    proposal_id: Optional[str] = Field(
        default=None, description="Proposal to prefill from.", examples=["prop_311"]
    )
    fields: FirmOfferSourceFields = Field(
        default_factory=FirmOfferSourceFields,
        description="Manual fields; supplied values override derived ones.",
    )

    @model_validator(mode="after")
    def _single_source(self) -> "FirmOfferDeriveRequest":
        if self.deal_id and self.proposal_id:
            raise ValueError("FIRM_OFFER_SOURCE_AMBIGUOUS: choose deal_id or proposal_id")
        return self

    @property
    def source(self) -> FirmOfferSource:
        if self.deal_id:
            return "deal"
        if self.proposal_id:
            return "proposal"
        return "manual"


class FirmOfferCreateRequest(FirmOfferDeriveRequest):
    created_by: str = Field(
        default="admin", description="Admin actor creating the offer.", examples=["admin_noah"]
    )
    initial_status: Literal["draft", "out_for_delivery"] = Field(
        default="out_for_delivery",
        description="Create as draft to hold back client delivery.",
        examples=["out_for_delivery"],
    )
    hold_expires_at: Optional[datetime] = Field(
        default=None,
        description="Explicit hold expiry; defaults to creation time plus 14 days.",
        examples=["2026-11-01T17:00:00+00:00"],
    )


class FirmOfferDraft(BaseModel):
    source: FirmOfferSource = Field(description="Source the draft was derived from.")
    deal_id: Optional[str] = Field(default=None, description="Originating deal.")
    proposal_id: Optional[str] = Field(default=None, description="Originating proposal.")
    document: FirmOfferDocument = Field(description="Derived firm offer sections.")


class FirmOfferRecord(BaseModel):
    offer_id: str = Field(description="Internal firm offer identifier.", examples=["fo_001"])
    proposal_id: Optional[str] = Field(default=None, description="Internal proposal reference.")
    deal_id: Optional[str] = Field(default=None, description="Internal deal reference.")
    status: FirmOfferStatus = Field(description="Persisted lifecycle status.")
    client_access_token: str = Field(description="Client-surface token.")
    speaker_review_token: Optional[str] = Field(
        default=None, description="Speaker-surface token."
    )
    created_by: str = Field(default="admin", description="Internal creator actor id.")
    created_at: datetime = Field(description="Internal creation timestamp.")
    updated_at: datetime = Field(description="Internal last-write timestamp.")
    hold_expires_at: datetime = Field(description="Speaker hold expiry.")
    submitted_at: Optional[datetime] = None
    sent_to_speaker_at: Optional[datetime] = None
    speaker_email: Optional[str] = None
    speaker_viewed_at: Optional[datetime] = None
    speaker_response_at: Optional[datetime] = None
    speaker_confirmed: Optional[bool] = None
    speaker_notes: Optional[str] = None
    document: FirmOfferDocument = Field(default_factory=FirmOfferDocument)


class FirmOfferUpdate(BaseModel):
    changes: Dict[str, Any] = Field(
        default_factory=dict, description="Fields written unconditionally."
    )
    set_once: Dict[str, Any] = Field(
        default_factory=dict, description="Fields written only while currently null."
    )
    require_null: List[str] = Field(
        default_factory=list, description="Fields that must be null for the update to apply."
    )
    require_status_in: Optional[List[FirmOfferStatus]] = Field(
        default=None, description="Statuses from which the update may apply."
    )


class HoldStatus(BaseModel):
    expired: bool = Field(description="Whether the speaker hold has lapsed.", examples=[False])
    days_remaining: int = Field(
        description="Whole days left on the hold, zero once expired.", examples=[9]
    )
    expires_at: str = Field(
        description="UTC ISO8601 hold expiry.", examples=["2026-11-01T17:00:00+00:00"]
    )


class FirmOfferSummary(BaseModel):
    offer_id: str = Field(description="Firm offer identifier.", examples=["fo_001"])
    proposal_id: Optional[str] = Field(default=None, description="Originating proposal.")
    deal_id: Optional[str] = Field(default=None, description="Originating deal.")
    status: FirmOfferStatus = Field(description="Persisted status.", examples=["submitted"])
    display_status: FirmOfferDisplayStatus = Field(
        description="Status shown to staff after hold and speaker decision are applied.",
        examples=["ready_for_review"],
    )
    display_label: str = Field(description="Human label for display_status.")
    hold: HoldStatus = Field(description="Derived hold state at read time.")
    client_name: str = Field(description="Billing contact name.", examples=["Dana Reyes"])
    event_name: str = Field(description="Event name.", examples=["Leadership Summit"])
    event_date: str = Field(description="Event date.", examples=["2026-11-14"])
    speaker_name: str = Field(description="Requested speaker.", examples=["Sam Patel"])
    speaker_fee: Decimal = Field(description="Speaker fee.", examples=["16000.00"])
    speaker_confirmed: Optional[bool] = Field(default=None, description="Speaker decision.")
    created_at: str = Field(description="UTC ISO8601 creation timestamp.")
    submitted_at: Optional[str] = Field(default=None, description="First client submission.")
    sent_to_speaker_at: Optional[str] = Field(default=None, description="First send to speaker.")
    speaker_viewed_at: Optional[str] = Field(default=None, description="First speaker view.")
    speaker_response_at: Optional[str] = Field(default=None, description="Speaker decision time.")


class FirmOfferDetail(BaseModel):
    summary: FirmOfferSummary = Field(description="Derived summary for the offer.")
    document: FirmOfferDocument = Field(description="Full firm offer sections.")
    client_access_token: str = Field(description="Client-surface token.")
    speaker_review_token: Optional[str] = Field(default=None, description="Speaker token.")
    client_url: str = Field(
        description="Client review link.",
        examples=["https://speakabout.ai/firm-offer/AbC123"],
    )
    speaker_review_url: Optional[str] = Field(
        default=None,
        description="Speaker review link.",
        examples=["https://speakabout.ai/speaker-review/XyZ789"],
    )
    speaker_email: Optional[str] = Field(default=None, description="Last speaker recipient.")
    speaker_notes: Optional[str] = Field(default=None, description="Speaker decision notes.")
    created_by: str = Field(description="Admin actor that created the offer.")
    updated_at: str = Field(description="UTC ISO8601 last-write timestamp.")


class FirmOfferListResponse(BaseModel):
    items: List[FirmOfferSummary] = Field(
        default_factory=list, description="Firm offers, newest first, with hold status."
    )


class ClientFirmOfferView(BaseModel):
    offer_id: str = Field(description="Firm offer identifier.", examples=["fo_001"])
    status: FirmOfferStatus = Field(description="Persisted status.")
    editable: bool = Field(description="Whether the client may still edit the offer.")
    hold: HoldStatus = Field(description="Derived hold state.")
    document: FirmOfferDocument = Field(description="Full firm offer sections.")
    submitted_at: Optional[str] = Field(default=None, description="First client submission.")
    created_at: str = Field(description="UTC ISO8601 creation timestamp.")
    updated_at: str = Field(description="UTC ISO8601 last-write timestamp.")


class SpeakerEventDetails(BaseModel):
    event_name: str = ""
    event_date: str = ""
    end_client_name: str = ""
    event_website: str = ""
    venue_name: str = ""
    venue_address: str = ""


class SpeakerFirmOfferView(BaseModel):
    offer_id: str = Field(description="Firm offer identifier.", examples=["fo_001"])
    display_status: FirmOfferDisplayStatus = Field(description="Derived status.")
    hold: HoldStatus = Field(description="Derived hold state.")
    event: SpeakerEventDetails = Field(description="Event context without billing contacts.")
    speaker_program: SpeakerProgram = Field(description="Program details.")
    event_schedule: EventSchedule = Field(description="Event-day timings.")
    technical_requirements: TechnicalRequirements = Field(description="AV requirements.")
    travel_accommodation: TravelAccommodation = Field(description="Travel arrangements.")
    speaker_fee: Decimal = Field(description="Speaker fee.", examples=["16000.00"])
    speaker_confirmed: Optional[bool] = Field(default=None, description="Recorded decision.")
    speaker_notes: Optional[str] = Field(default=None, description="Recorded decision notes.")
    speaker_response_at: Optional[str] = Field(default=None, description="Decision time.")


class ClientSubmitRequest(BaseModel):
    updates: FirmOfferDocumentPatch = Field(
        default_factory=FirmOfferDocumentPatch,
        description="Sections completed by the client alongside submission.",
    )


class SendToSpeakerRequest(BaseModel):
    speaker_email: Optional[str] = Field(
        default=None, description="Speaker address for the review link.", examples=["sam@x.io"]
    )
    speaker_name: Optional[str] = Field(
        default=None, description="Greeting name; defaults to the requested speaker."
    )


class SendToSpeakerResponse(BaseModel):
    offer_id: str = Field(description="Firm offer identifier.", examples=["fo_001"])
    status: FirmOfferStatus = Field(description="Persisted status after sending.")
    speaker_review_url: str = Field(
        description="Speaker review link.",
        examples=["https://speakabout.ai/speaker-review/XyZ789"],
    )
    sent_to_speaker_at: str = Field(description="UTC ISO8601 first send timestamp.")


class SpeakerDecisionRequest(BaseModel):
    confirmed: bool = Field(description="True to confirm, false to decline.", examples=[True])
    notes: Optional[str] = Field(
        default=None,
        description="Optional notes from the speaker.",
        examples=["Happy to do a prep call the week prior."],
    )


class SpeakerDecisionResponse(BaseModel):
    offer_id: str = Field(description="Firm offer identifier.", examples=["fo_001"])
    speaker_confirmed: bool = Field(description="Recorded decision.")
    display_status: FirmOfferDisplayStatus = Field(description="Derived status after decision.")
    display_label: str = Field(description="Human label for display_status.")
    speaker_response_at: str = Field(description="UTC ISO8601 decision time.")


class HoldResetRequest(BaseModel):
    hold_expires_at: Optional[datetime] = Field(
        default=None,
        description="New expiry; defaults to now plus 14 days.",
        examples=["2026-12-01T17:00:00+00:00"],
    )


class NotificationIntent(BaseModel):
    event: NotificationEvent = Field(description="Lifecycle event to notify about.")
    offer_id: str = Field(description="Firm offer identifier.")
    recipient_email: Optional[str] = Field(default=None, description="Recipient address.")
    url: Optional[str] = Field(default=None, description="Link included in the message.")
    event_name: str = Field(default="", description="Event name for the subject line.")
    speaker_name: str = Field(default="", description="Speaker display name.")
    speaker_fee: Optional[Decimal] = Field(default=None, description="Speaker fee to display.")
    speaker_confirmed: Optional[bool] = Field(default=None, description="Decision, if any.")


class FirmOfferSupportabilityConfigResponse(BaseModel):
    store_backend: str = Field(description="Configured store backend.", examples=["POSTGRES"])
    backend_ready: bool = Field(description="Whether the store backend initialised.")
    backend_init_error: Optional[str] = Field(
        default=None, description="Backend initialisation error code, if any."
    )
    lifecycle_enabled: bool = Field(description="Lifecycle routes enabled.")
    support_apis_enabled: bool = Field(description="Support routes enabled.")
    public_base_url: str = Field(description="Origin used for client and speaker links.")
    admin_notification_email: Optional[str] = Field(
        default=None, description="Recipient for admin notification intents."
    )
