from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from src.api.routers import firm_offers_config
from src.api.routers.firm_offer_http_errors import raise_firm_offer_http_exception
from src.core.firm_offers import (
    FirmOfferCreateRequest,
    FirmOfferDeriveRequest,
    FirmOfferDetail,
    FirmOfferDocumentPatch,
    FirmOfferLifecycleError,
    FirmOfferRepository,
    FirmOfferSourceLookup,
    FirmOfferWorkflowService,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from src.core.firm_offers.models import (
    FirmOfferDisplayStatus,
    FirmOfferDraft,
    FirmOfferListResponse,
    FirmOfferStatus,
    HoldResetRequest,
    SendToSpeakerRequest,
    SendToSpeakerResponse,
)

router = APIRouter(tags=["Firm Offers"])

_REPOSITORY: Optional[FirmOfferRepository] = None
_SOURCE_LOOKUP: Optional[FirmOfferSourceLookup] = None
_DISPATCHER: NotificationDispatcher = LoggingNotificationDispatcher()
_SERVICE: Optional[FirmOfferWorkflowService] = None

env_flag = firm_offers_config.env_flag


def get_firm_offer_repository() -> FirmOfferRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        try:
            _REPOSITORY = firm_offers_config.build_repository()
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
            ) from exc
    return _REPOSITORY


def get_firm_offer_source_lookup() -> FirmOfferSourceLookup:
    global _SOURCE_LOOKUP
    if _SOURCE_LOOKUP is None:
        try:
            _SOURCE_LOOKUP = firm_offers_config.build_source_lookup()
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
            ) from exc
    return _SOURCE_LOOKUP


def get_firm_offer_service() -> FirmOfferWorkflowService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = FirmOfferWorkflowService(
            repository=get_firm_offer_repository(),
            source_lookup=get_firm_offer_source_lookup(),
            dispatcher=_DISPATCHER,
            public_base_url=firm_offers_config.firm_offer_public_base_url(),
            admin_email=firm_offers_config.firm_offer_admin_email(),
        )
    return _SERVICE


def set_notification_dispatcher(dispatcher: NotificationDispatcher) -> None:
    global _DISPATCHER
    global _SERVICE
    _DISPATCHER = dispatcher
    _SERVICE = None


def reset_firm_offer_service_for_tests() -> None:
    global _REPOSITORY
    global _SOURCE_LOOKUP
    global _DISPATCHER
    global _SERVICE
    _REPOSITORY = None
    _SOURCE_LOOKUP = None
    _DISPATCHER = LoggingNotificationDispatcher()
    _SERVICE = None


def _assert_lifecycle_enabled() -> None:
    if not env_flag("FIRM_OFFER_LIFECYCLE_ENABLED", True):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="FIRM_OFFER_LIFECYCLE_DISABLED",
        )


def _assert_support_apis_enabled() -> None:
    if not env_flag("FIRM_OFFER_SUPPORT_APIS_ENABLED", True):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="FIRM_OFFER_SUPPORT_APIS_DISABLED",
        )


OfferIdPath = Annotated[
    str,
    Path(description="Firm offer identifier.", examples=["fo_3f9a1c2b4d5e"]),
]


@router.post(
    "/api/firm-offers/derive",
    response_model=FirmOfferDraft,
    status_code=status.HTTP_200_OK,
    summary="Preview Firm Offer Derivation",
    description=(
        "Derives firm offer sections from a deal, a proposal, or manual fields without "
        "persisting anything. Supplied manual fields override derived values."
    ),
)
def derive_firm_offer(
    payload: FirmOfferDeriveRequest,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferDraft:
    _assert_lifecycle_enabled()
    try:
        return service.derive_draft(payload=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@router.post(
    "/api/firm-offers",
    response_model=FirmOfferDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create Firm Offer",
    description=(
        "Derives and persists a firm offer with a 14-day speaker hold, client and speaker "
        "access tokens, and their review links."
    ),
)
def create_firm_offer(
    payload: FirmOfferCreateRequest,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferDetail:
    _assert_lifecycle_enabled()
    try:
        return service.create_offer(payload=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@router.get(
    "/api/firm-offers",
    response_model=FirmOfferListResponse,
    status_code=status.HTTP_200_OK,
    summary="List Firm Offers",
    description="Lists firm offers newest first with hold state and derived display status.",
)
def list_firm_offers(
    status_filter: Annotated[
        Optional[FirmOfferStatus],
        Query(alias="status", description="Persisted status filter.", examples=["submitted"]),
    ] = None,
    display_status: Annotated[
        Optional[FirmOfferDisplayStatus],
        Query(description="Derived display status filter.", examples=["hold_expired"]),
    ] = None,
    proposal_id: Annotated[
        Optional[str],
        Query(description="Originating proposal filter.", examples=["prop_311"]),
    ] = None,
    search: Annotated[
        Optional[str],
        Query(
            description="Case-insensitive match on offer id, client, event, or speaker.",
            examples=["summit"],
        ),
    ] = None,
    limit: Annotated[
        int,
        Query(ge=1, le=500, description="Maximum number of offers returned.", examples=[50]),
    ] = 100,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferListResponse:
    _assert_lifecycle_enabled()
    return service.list_offers(
        status=status_filter,
        display_status=display_status,
        proposal_id=proposal_id,
        search=search,
        limit=limit,
    )


@router.get(
    "/api/firm-offers/{offer_id}",
    response_model=FirmOfferDetail,
    status_code=status.HTTP_200_OK,
    summary="Get Firm Offer",
    description="Returns the full firm offer with tokens, review links, and derived status.",
)
def get_firm_offer(
    offer_id: OfferIdPath,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferDetail:
    _assert_lifecycle_enabled()
    try:
        return service.get_offer(offer_id=offer_id)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@router.patch(
    "/api/firm-offers/{offer_id}",
    response_model=FirmOfferDetail,
    status_code=status.HTTP_200_OK,
    summary="Update Firm Offer Sections",
    description="Replaces the supplied sections. Rejected once the speaker has responded.",
)
def update_firm_offer(
    offer_id: OfferIdPath,
    payload: FirmOfferDocumentPatch,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferDetail:
    _assert_lifecycle_enabled()
    try:
        return service.update_offer(offer_id=offer_id, patch=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@router.post(
    "/api/firm-offers/{offer_id}/deliver",
    response_model=FirmOfferDetail,
    status_code=status.HTTP_200_OK,
    summary="Deliver Draft Firm Offer",
    description="Moves a draft offer to out_for_delivery and notifies the client.",
)
def deliver_firm_offer(
    offer_id: OfferIdPath,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferDetail:
    _assert_lifecycle_enabled()
    try:
        return service.deliver_offer(offer_id=offer_id)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@router.post(
    "/api/firm-offers/{offer_id}/send-to-speaker",
    response_model=SendToSpeakerResponse,
    status_code=status.HTTP_200_OK,
    summary="Send Firm Offer to Speaker",
    description=(
        "Sends the speaker review link. Re-sending an undecided offer reuses the existing "
        "token and keeps the first send timestamp."
    ),
)
def send_firm_offer_to_speaker(
    offer_id: OfferIdPath,
    payload: SendToSpeakerRequest,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> SendToSpeakerResponse:
    _assert_lifecycle_enabled()
    try:
        return service.send_to_speaker(offer_id=offer_id, payload=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@router.post(
    "/api/firm-offers/{offer_id}/reset-hold",
    response_model=FirmOfferDetail,
    status_code=status.HTTP_200_OK,
    summary="Reset Speaker Hold",
    description="Resets the hold expiry to now plus 14 days, or to the supplied instant.",
)
def reset_firm_offer_hold(
    offer_id: OfferIdPath,
    payload: HoldResetRequest,
    service: Annotated[FirmOfferWorkflowService, Depends(get_firm_offer_service)] = None,
) -> FirmOfferDetail:
    _assert_lifecycle_enabled()
    try:
        return service.reset_hold(offer_id=offer_id, payload=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)
