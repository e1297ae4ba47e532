import os
import warnings
from typing import Optional, cast

from src.core.firm_offers.repository import FirmOfferRepository, FirmOfferSourceLookup
from src.infrastructure.firm_offers import (
    InMemoryFirmOfferRepository,
    InMemoryFirmOfferSourceLookup,
    PostgresFirmOfferRepository,
    PostgresFirmOfferSourceLookup,
)

DEFAULT_PUBLIC_BASE_URL = "https://speakabout.ai"


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def firm_offer_store_backend_name() -> str:
    backend = os.getenv("FIRM_OFFER_STORE_BACKEND", "IN_MEMORY").strip().upper()
    if backend == "POSTGRES":
        return "POSTGRES"
    warnings.warn(
        "FIRM_OFFER_STORE_BACKEND legacy runtime backend (IN_MEMORY) is deprecated; use POSTGRES.",
        DeprecationWarning,
        stacklevel=2,
    )
    return "IN_MEMORY"


def firm_offer_postgres_dsn() -> str:
    return os.getenv("FIRM_OFFER_POSTGRES_DSN", "").strip()


def firm_offer_public_base_url() -> str:
    base_url = os.getenv("FIRM_OFFER_PUBLIC_BASE_URL", "").strip().rstrip("/")
    return base_url or DEFAULT_PUBLIC_BASE_URL


def firm_offer_admin_email() -> Optional[str]:
    return os.getenv("FIRM_OFFER_ADMIN_EMAIL", "").strip() or None


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_repository() -> FirmOfferRepository:
    backend = firm_offer_store_backend_name()
    if backend == "POSTGRES":
        dsn = firm_offer_postgres_dsn()
        if not dsn:
            raise RuntimeError("FIRM_OFFER_POSTGRES_DSN_REQUIRED")
        try:
            return cast(FirmOfferRepository, PostgresFirmOfferRepository(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("FIRM_OFFER_POSTGRES_CONNECTION_FAILED") from exc
    return cast(FirmOfferRepository, InMemoryFirmOfferRepository())


def build_source_lookup() -> FirmOfferSourceLookup:
    if firm_offer_store_backend_name() == "POSTGRES":
        dsn = firm_offer_postgres_dsn()
        if not dsn:
            raise RuntimeError("FIRM_OFFER_POSTGRES_DSN_REQUIRED")
        return cast(FirmOfferSourceLookup, PostgresFirmOfferSourceLookup(dsn=dsn))
    return cast(FirmOfferSourceLookup, InMemoryFirmOfferSourceLookup())
