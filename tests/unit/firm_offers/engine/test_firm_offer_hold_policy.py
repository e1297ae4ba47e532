from datetime import datetime, timedelta, timezone

from src.core.firm_offers.hold import HOLD_PERIOD, compute_hold_status, default_hold_expiry

CREATED_AT = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def test_default_hold_expiry_is_fourteen_days_after_creation():
    assert HOLD_PERIOD == timedelta(days=14)
    assert default_hold_expiry(CREATED_AT) == datetime(2026, 3, 16, 9, 30, tzinfo=timezone.utc)


def test_hold_active_one_day_before_expiry():
    hold = compute_hold_status(
        hold_expires_at=default_hold_expiry(CREATED_AT),
        created_at=CREATED_AT,
        now=CREATED_AT + timedelta(days=13),
    )

    assert hold.expired is False
    assert hold.days_remaining == 1
    assert hold.expires_at == "2026-03-16T09:30:00+00:00"


def test_hold_expired_one_day_after_expiry_reports_zero_days():
    hold = compute_hold_status(
        hold_expires_at=default_hold_expiry(CREATED_AT),
        created_at=CREATED_AT,
        now=CREATED_AT + timedelta(days=15),
    )

    assert hold.expired is True
    assert hold.days_remaining == 0


def test_partial_days_round_up():
    hold = compute_hold_status(
        hold_expires_at=default_hold_expiry(CREATED_AT),
        created_at=CREATED_AT,
        now=CREATED_AT + timedelta(days=10, hours=1),
    )

    assert hold.expired is False
    assert hold.days_remaining == 4


def test_hold_not_expired_until_a_full_day_has_passed():
    expires_at = default_hold_expiry(CREATED_AT)

    at_expiry = compute_hold_status(
        hold_expires_at=expires_at,
        created_at=CREATED_AT,
        now=expires_at,
    )
    half_day_late = compute_hold_status(
        hold_expires_at=expires_at,
        created_at=CREATED_AT,
        now=expires_at + timedelta(hours=12),
    )
    over_a_day_late = compute_hold_status(
        hold_expires_at=expires_at,
        created_at=CREATED_AT,
        now=expires_at + timedelta(days=1, seconds=1),
    )

    assert (at_expiry.expired, at_expiry.days_remaining) == (False, 0)
    assert (half_day_late.expired, half_day_late.days_remaining) == (False, 0)
    assert (over_a_day_late.expired, over_a_day_late.days_remaining) == (True, 0)


def test_missing_expiry_falls_back_to_creation_window():
    hold = compute_hold_status(
        hold_expires_at=None,
        created_at=CREATED_AT,
        now=CREATED_AT + timedelta(days=4),
    )

    assert hold.expired is False
    assert hold.days_remaining == 10
    assert hold.expires_at == default_hold_expiry(CREATED_AT).isoformat()


def test_explicit_expiry_is_used_over_creation_window():
    explicit = CREATED_AT + timedelta(days=30)
    hold = compute_hold_status(
        hold_expires_at=explicit,
        created_at=CREATED_AT,
        now=CREATED_AT + timedelta(days=20),
    )

    assert hold.expired is False
    assert hold.days_remaining == 10
