import json
from contextlib import closing
from datetime import datetime
from importlib.util import find_spec
from typing import Any, Optional

from src.core.firm_offers.hold import default_hold_expiry
from src.core.firm_offers.models import (
    DOCUMENT_SECTIONS,
    FirmOfferDocument,
    FirmOfferRecord,
    FirmOfferUpdate,
)
from src.core.firm_offers.repository import validate_update_fields
from src.infrastructure.postgres_migrations import apply_postgres_migrations

_RECORD_COLUMNS = (
    "offer_id",
    "proposal_id",
    "deal_id",
    "status",
    "client_access_token",
    "speaker_review_token",
    "created_by",
    "created_at",
    "updated_at",
    "hold_expires_at",
    "submitted_at",
    "sent_to_speaker_at",
    "speaker_email",
    "speaker_viewed_at",
    "speaker_response_at",
    "speaker_confirmed",
    "speaker_notes",
)
_SECTION_COLUMNS = tuple(f"{section}_json" for section in DOCUMENT_SECTIONS)
_SELECT_COLUMNS = ",\n                ".join(_RECORD_COLUMNS + _SECTION_COLUMNS)


class PostgresFirmOfferRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("FIRM_OFFER_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("FIRM_OFFER_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def create_offer(self, offer: FirmOfferRecord) -> None:
        columns = _RECORD_COLUMNS + _SECTION_COLUMNS
        placeholders = ", ".join(["%s"] * len(columns))
        query = f"""
            INSERT INTO firm_offers (
                {", ".join(columns)}
            ) VALUES ({placeholders})
        """
        with closing(self._connect()) as connection:
            connection.execute(query, _offer_params(offer))
            connection.commit()

    def get_offer(self, *, offer_id: str) -> Optional[FirmOfferRecord]:
        return self._fetch_one(where_sql="offer_id = %s", args=(offer_id,))

    def get_offer_by_client_token(self, *, token: str) -> Optional[FirmOfferRecord]:
        return self._fetch_one(where_sql="client_access_token = %s", args=(token,))

    def get_offer_by_speaker_token(self, *, token: str) -> Optional[FirmOfferRecord]:
        return self._fetch_one(where_sql="speaker_review_token = %s", args=(token,))

    def list_offers(
        self,
        *,
        status: Optional[str],
        proposal_id: Optional[str],
    ) -> list[FirmOfferRecord]:
        where_clauses = []
        args: list[str] = []
        if status is not None:
            where_clauses.append("status = %s")
            args.append(status)
        if proposal_id is not None:
            where_clauses.append("proposal_id = %s")
            args.append(proposal_id)
        where_sql = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        query = f"""
            SELECT
                {_SELECT_COLUMNS}
            FROM firm_offers
            {where_sql}
            ORDER BY created_at DESC, offer_id DESC
        """
        with closing(self._connect()) as connection:
            rows = connection.execute(query, tuple(args)).fetchall()
        return [_to_offer(row) for row in rows]

    def apply_update(
        self, *, offer_id: str, update: FirmOfferUpdate
    ) -> Optional[FirmOfferRecord]:
        validate_update_fields(update)
        assignments: list[str] = []
        args: list[Any] = []
        for field, value in update.changes.items():
            column = _column_for(field)
            assignments.append(f"{column} = %s")
            args.append(_column_value(field, value))
        for field, value in update.set_once.items():
            assignments.append(f"{field} = COALESCE({field}, %s)")
            args.append(_column_value(field, value))
        if not assignments:
            assignments.append("offer_id = offer_id")

        where_clauses = ["offer_id = %s"]
        args.append(offer_id)
        for field in update.require_null:
            where_clauses.append(f"{field} IS NULL")
        if update.require_status_in is not None:
            where_clauses.append("status = ANY(%s)")
            args.append(list(update.require_status_in))

        query = f"""
            UPDATE firm_offers
            SET {", ".join(assignments)}
            WHERE {" AND ".join(where_clauses)}
            RETURNING
                {_SELECT_COLUMNS}
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, tuple(args)).fetchone()
            connection.commit()
        if row is None:
            return None
        return _to_offer(row)

    def _fetch_one(self, *, where_sql: str, args: tuple) -> Optional[FirmOfferRecord]:
        query = f"""
            SELECT
                {_SELECT_COLUMNS}
            FROM firm_offers
            WHERE {where_sql}
        """
        with closing(self._connect()) as connection:
            row = connection.execute(query, args).fetchone()
        if row is None:
            return None
        return _to_offer(row)

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="firm_offers")


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


def _column_for(field: str) -> str:
    if field in DOCUMENT_SECTIONS:
        return f"{field}_json"
    return field


def _column_value(field: str, value: Any) -> Any:
    if field in DOCUMENT_SECTIONS:
        return _json_dump(value.model_dump(mode="json"))
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _offer_params(offer: FirmOfferRecord) -> tuple:
    record_values = tuple(
        _column_value(column, getattr(offer, column)) for column in _RECORD_COLUMNS
    )
    section_values = tuple(
        _column_value(section, getattr(offer.document, section)) for section in DOCUMENT_SECTIONS
    )
    return record_values + section_values


def _json_dump(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _to_offer(row) -> FirmOfferRecord:
    created_at = datetime.fromisoformat(row["created_at"])
    hold_expires_at = _optional_datetime(row["hold_expires_at"])
    document = FirmOfferDocument.model_validate(
        {section: json.loads(row[f"{section}_json"]) for section in DOCUMENT_SECTIONS}
    )
    return FirmOfferRecord(
        offer_id=row["offer_id"],
        proposal_id=row["proposal_id"],
        deal_id=row["deal_id"],
        status=row["status"],
        client_access_token=row["client_access_token"],
        speaker_review_token=row["speaker_review_token"],
        created_by=row["created_by"],
        created_at=created_at,
        updated_at=datetime.fromisoformat(row["updated_at"]),
        hold_expires_at=(
            hold_expires_at if hold_expires_at is not None else default_hold_expiry(created_at)
        ),
        submitted_at=_optional_datetime(row["submitted_at"]),
        sent_to_speaker_at=_optional_datetime(row["sent_to_speaker_at"]),
        speaker_email=row["speaker_email"],
        speaker_viewed_at=_optional_datetime(row["speaker_viewed_at"]),
        speaker_response_at=_optional_datetime(row["speaker_response_at"]),
        speaker_confirmed=row["speaker_confirmed"],
        speaker_notes=row["speaker_notes"],
        document=document,
    )
