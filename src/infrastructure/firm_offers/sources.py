import json
from contextlib import closing
from copy import deepcopy
from datetime import date, datetime
from decimal import Decimal
from importlib.util import find_spec
from threading import Lock
from typing import Any, Optional

from src.core.firm_offers.models import (
    DealSourceRecord,
    ProposalSourceRecord,
    ProposalSpeaker,
)
from src.core.firm_offers.repository import FirmOfferSourceLookup


class InMemoryFirmOfferSourceLookup(FirmOfferSourceLookup):
    def __init__(self) -> None:
        self._lock = Lock()
        self._deals: dict[str, DealSourceRecord] = {}
        self._proposals: dict[str, ProposalSourceRecord] = {}

    def add_deal(self, deal: DealSourceRecord) -> None:
        with self._lock:
            self._deals[deal.deal_id] = deepcopy(deal)

    def add_proposal(self, proposal: ProposalSourceRecord) -> None:
        with self._lock:
            self._proposals[proposal.proposal_id] = deepcopy(proposal)

    def get_deal(self, *, deal_id: str) -> Optional[DealSourceRecord]:
        with self._lock:
            deal = self._deals.get(deal_id)
            return deepcopy(deal) if deal is not None else None

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalSourceRecord]:
        with self._lock:
            proposal = self._proposals.get(proposal_id)
            return deepcopy(proposal) if proposal is not None else None


class PostgresFirmOfferSourceLookup:
    """Reads deals and proposals from the CRM tables sharing the firm offer database."""

    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("FIRM_OFFER_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("FIRM_OFFER_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn

    def get_deal(self, *, deal_id: str) -> Optional[DealSourceRecord]:
        query = """
            SELECT
                id,
                client_name,
                client_email,
                client_phone,
                company,
                event_title,
                event_date,
                event_location,
                event_type,
                speaker_requested,
                attendee_count,
                deal_value,
                status,
                travel_required,
                flight_required,
                hotel_required,
                travel_stipend,
                travel_notes,
                notes
            FROM deals
            WHERE id::text = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (deal_id,)).fetchone()
        if row is None:
            return None
        return DealSourceRecord(
            deal_id=str(row["id"]),
            client_name=row["client_name"] or "",
            client_email=row["client_email"] or "",
            client_phone=row["client_phone"] or "",
            company=row["company"] or "",
            event_title=row["event_title"] or "",
            event_date=_date_text(row["event_date"]),
            event_location=row["event_location"] or "",
            event_type=row["event_type"] or "",
            speaker_requested=row["speaker_requested"] or "",
            attendee_count=int(row["attendee_count"] or 0),
            deal_value=Decimal(str(row["deal_value"] or 0)),
            status=row["status"] or "",
            travel_required=bool(row["travel_required"]),
            flight_required=bool(row["flight_required"]),
            hotel_required=bool(row["hotel_required"]),
            travel_stipend=_optional_decimal(row["travel_stipend"]),
            travel_notes=row["travel_notes"] or "",
            notes=row["notes"] or "",
        )

    def get_proposal(self, *, proposal_id: str) -> Optional[ProposalSourceRecord]:
        query = """
            SELECT
                id,
                title,
                client_name,
                client_email,
                speakers,
                total_investment,
                event_title,
                event_date,
                event_location,
                attendee_count
            FROM proposals
            WHERE id::text = %s
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, (proposal_id,)).fetchone()
        if row is None:
            return None
        return ProposalSourceRecord(
            proposal_id=str(row["id"]),
            title=row["title"] or "",
            client_name=row["client_name"] or "",
            client_email=row["client_email"] or "",
            speakers=_to_speakers(row["speakers"]),
            total_investment=_optional_decimal(row["total_investment"]),
            event_title=row["event_title"] or "",
            event_date=_date_text(row["event_date"]),
            event_location=row["event_location"] or "",
            attendee_count=int(row["attendee_count"] or 0),
        )

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def _date_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).split("T", maxsplit=1)[0]


def _to_speakers(value: Any) -> list[ProposalSpeaker]:
    # speakers is stored as JSONB; older rows hold the serialized text
    if value is None:
        return []
    if isinstance(value, str):
        value = json.loads(value)
    return [
        ProposalSpeaker(name=item.get("name") or "", fee=_optional_decimal(item.get("fee")))
        for item in value
        if isinstance(item, dict)
    ]
