"""
Tests for duration parsing and the lifetime table.
"""
from datetime import datetime, timedelta, timezone
import pytest

from clinic_api.auth.expiration import (
    DurationTable,
    InvalidDurationSpec,
    expiry_from,
    resolve_duration_ms,
)
from clinic_api.auth.models import TokenType, UserRole


def test_resolve_duration_units():
    assert resolve_duration_ms("15m") == 15 * 60 * 1000
    assert resolve_duration_ms("2h") == 2 * 60 * 60 * 1000
    assert resolve_duration_ms("1d") == 24 * 60 * 60 * 1000
    assert resolve_duration_ms("30d") == 30 * 24 * 60 * 60 * 1000


@pytest.mark.parametrize("spec", ["", "d", "10", "10s", "1.5d", "-1d", "0m", "1 d", "ten days", None, 5])
def test_resolve_duration_rejects_bad_specs(spec):
    with pytest.raises(InvalidDurationSpec):
        resolve_duration_ms(spec)


def test_expiry_from():
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert expiry_from(now, "30m") == now + timedelta(minutes=30)
    assert expiry_from(now, "7d") == datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc)


def test_duration_table_lookup_and_defaults():
    table = DurationTable({"PATIENT": {"access": "7d", "refresh": "30d"}, "ADMIN": {"access": "2h"}})
    assert table.spec_for(UserRole.PATIENT, TokenType.ACCESS) == "7d"
    assert table.spec_for(UserRole.ADMIN, TokenType.ACCESS) == "2h"
    # No entry: defaults
    assert table.spec_for(UserRole.DOCTOR, TokenType.ACCESS) == "1d"
    assert table.spec_for(UserRole.DOCTOR, TokenType.REFRESH) == "30d"


def test_duration_table_validate_fails_fast():
    DurationTable({"DOCTOR": {"access": "1d"}}).validate()
    with pytest.raises(InvalidDurationSpec):
        DurationTable({"DOCTOR": {"access": "one day"}}).validate()
