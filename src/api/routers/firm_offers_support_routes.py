from typing import Optional

from fastapi import status

from src.api.routers import firm_offers as shared
from src.core.firm_offers.models import FirmOfferSupportabilityConfigResponse


@shared.router.get(
    "/api/firm-offers/supportability/config",
    response_model=FirmOfferSupportabilityConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Firm Offer Supportability Configuration",
    description=(
        "Returns firm offer runtime configuration and backend initialization status "
        "for operational diagnostics without direct database access."
    ),
)
def get_firm_offer_supportability_config() -> FirmOfferSupportabilityConfigResponse:
    shared._assert_support_apis_enabled()
    backend_error: Optional[str] = None
    backend_ready = True
    try:
        shared.firm_offers_config.build_repository()
    except RuntimeError as exc:
        backend_ready = False
        backend_error = str(exc)

    return FirmOfferSupportabilityConfigResponse(
        store_backend=shared.firm_offers_config.firm_offer_store_backend_name(),
        backend_ready=backend_ready,
        backend_init_error=backend_error,
        lifecycle_enabled=shared.env_flag("FIRM_OFFER_LIFECYCLE_ENABLED", True),
        support_apis_enabled=shared.env_flag("FIRM_OFFER_SUPPORT_APIS_ENABLED", True),
        public_base_url=shared.firm_offers_config.firm_offer_public_base_url(),
        admin_notification_email=shared.firm_offers_config.firm_offer_admin_email(),
    )
