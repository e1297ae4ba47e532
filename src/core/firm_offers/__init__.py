from src.core.firm_offers.errors import (
    AlreadyDecidedError,
    FirmOfferLifecycleError,
    FirmOfferNotFoundError,
    InvalidTransitionError,
    MissingRequiredFieldError,
    TokenNotFoundError,
)
from src.core.firm_offers.models import (
    ClientFirmOfferView,
    FirmOfferCreateRequest,
    FirmOfferDeriveRequest,
    FirmOfferDetail,
    FirmOfferDocument,
    FirmOfferDocumentPatch,
    FirmOfferRecord,
    FirmOfferSummary,
    FirmOfferUpdate,
    NotificationIntent,
    SpeakerFirmOfferView,
)
from src.core.firm_offers.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from src.core.firm_offers.repository import FirmOfferRepository, FirmOfferSourceLookup
from src.core.firm_offers.service import FirmOfferWorkflowService

__all__ = [
    "AlreadyDecidedError",
    "ClientFirmOfferView",
    "FirmOfferCreateRequest",
    "FirmOfferDeriveRequest",
    "FirmOfferDetail",
    "FirmOfferDocument",
    "FirmOfferDocumentPatch",
    "FirmOfferLifecycleError",
    "FirmOfferNotFoundError",
    "FirmOfferRecord",
    "FirmOfferRepository",
    "FirmOfferSourceLookup",
    "FirmOfferSummary",
    "FirmOfferUpdate",
    "FirmOfferWorkflowService",
    "InvalidTransitionError",
    "LoggingNotificationDispatcher",
    "MissingRequiredFieldError",
    "NotificationDispatcher",
    "NotificationIntent",
    "SpeakerFirmOfferView",
    "TokenNotFoundError",
]
