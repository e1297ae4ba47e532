from typing import Annotated

from fastapi import Depends, Path, status

from src.api.routers import firm_offers as shared
from src.api.routers.firm_offer_http_errors import raise_firm_offer_http_exception
from src.core.firm_offers import (
    ClientFirmOfferView,
    FirmOfferDocumentPatch,
    FirmOfferLifecycleError,
    FirmOfferWorkflowService,
    SpeakerFirmOfferView,
)
from src.core.firm_offers.models import (
    ClientSubmitRequest,
    SpeakerDecisionRequest,
    SpeakerDecisionResponse,
)

ClientTokenPath = Annotated[
    str,
    Path(description="Client access token from the firm offer link."),
]
SpeakerTokenPath = Annotated[
    str,
    Path(description="Speaker review token from the review link."),
]


@shared.router.get(
    "/api/firm-offers/public/{token}",
    response_model=ClientFirmOfferView,
    status_code=status.HTTP_200_OK,
    summary="Get Client Firm Offer",
    description="Returns the firm offer for the client holding the access token.",
)
def get_client_firm_offer(
    token: ClientTokenPath,
    service: Annotated[FirmOfferWorkflowService, Depends(shared.get_firm_offer_service)] = None,
) -> ClientFirmOfferView:
    shared._assert_lifecycle_enabled()
    try:
        return service.get_client_view(token=token)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@shared.router.put(
    "/api/firm-offers/public/{token}",
    response_model=ClientFirmOfferView,
    status_code=status.HTTP_200_OK,
    summary="Save Client Firm Offer",
    description="Saves client edits while the offer is draft, out for delivery, or submitted.",
)
def update_client_firm_offer(
    token: ClientTokenPath,
    payload: FirmOfferDocumentPatch,
    service: Annotated[FirmOfferWorkflowService, Depends(shared.get_firm_offer_service)] = None,
) -> ClientFirmOfferView:
    shared._assert_lifecycle_enabled()
    try:
        return service.update_client_offer(token=token, patch=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@shared.router.post(
    "/api/firm-offers/public/{token}/submit",
    response_model=ClientFirmOfferView,
    status_code=status.HTTP_200_OK,
    summary="Submit Client Firm Offer",
    description=(
        "Submits the completed firm offer for review. Resubmission keeps the first "
        "submission timestamp."
    ),
)
def submit_client_firm_offer(
    token: ClientTokenPath,
    payload: ClientSubmitRequest,
    service: Annotated[FirmOfferWorkflowService, Depends(shared.get_firm_offer_service)] = None,
) -> ClientFirmOfferView:
    shared._assert_lifecycle_enabled()
    try:
        return service.submit_offer(token=token, updates=payload.updates)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@shared.router.get(
    "/api/speaker-review/{token}",
    response_model=SpeakerFirmOfferView,
    status_code=status.HTTP_200_OK,
    summary="Get Speaker Review",
    description=(
        "Returns the speaker-facing subset of the firm offer and records the first view."
    ),
)
def get_speaker_review(
    token: SpeakerTokenPath,
    service: Annotated[FirmOfferWorkflowService, Depends(shared.get_firm_offer_service)] = None,
) -> SpeakerFirmOfferView:
    shared._assert_lifecycle_enabled()
    try:
        return service.record_speaker_view(token=token)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)


@shared.router.post(
    "/api/speaker-review/{token}/decision",
    response_model=SpeakerDecisionResponse,
    status_code=status.HTTP_200_OK,
    summary="Record Speaker Decision",
    description="Records the speaker's one-time confirm or decline decision.",
)
def record_speaker_decision(
    token: SpeakerTokenPath,
    payload: SpeakerDecisionRequest,
    service: Annotated[FirmOfferWorkflowService, Depends(shared.get_firm_offer_service)] = None,
) -> SpeakerDecisionResponse:
    shared._assert_lifecycle_enabled()
    try:
        return service.record_speaker_decision(token=token, payload=payload)
    except FirmOfferLifecycleError as exc:
        raise_firm_offer_http_exception(exc)
