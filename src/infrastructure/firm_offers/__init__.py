from src.infrastructure.firm_offers.in_memory import InMemoryFirmOfferRepository
from src.infrastructure.firm_offers.postgres import PostgresFirmOfferRepository
from src.infrastructure.firm_offers.sources import (
    InMemoryFirmOfferSourceLookup,
    PostgresFirmOfferSourceLookup,
)

__all__ = [
    "InMemoryFirmOfferRepository",
    "InMemoryFirmOfferSourceLookup",
    "PostgresFirmOfferRepository",
    "PostgresFirmOfferSourceLookup",
]
