"""
Token lifetime calculation.

Durations are written as an integer followed by a unit letter:
``m`` (minutes), ``h`` (hours) or ``d`` (days), e.g. "15m", "1d", "30d".
"""
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional
import re

from .models import UserRole, TokenType

_DURATION = re.compile(r"^([0-9]+)([mhd])$")

_UNIT_MS = {
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

DEFAULT_DURATIONS = {
    TokenType.ACCESS: "1d",
    TokenType.REFRESH: "30d",
}


class InvalidDurationSpec(ValueError):
    """Raised for an unparsable duration. This is a configuration error."""
    def __init__(self, spec):
        self.spec = spec
        super().__init__(f"Invalid duration specification: {spec!r}")


def resolve_duration_ms(spec: str) -> int:
    """
    Convert a duration specification to milliseconds.

    Args:
        spec: Duration such as "15m", "12h" or "30d"

    Returns:
        int: Duration in milliseconds

    Raises:
        InvalidDurationSpec: If the specification cannot be parsed
    """
    if not isinstance(spec, str):
        raise InvalidDurationSpec(spec)
    match = _DURATION.match(spec.strip())
    if not match:
        raise InvalidDurationSpec(spec)
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        raise InvalidDurationSpec(spec)
    return amount * _UNIT_MS[unit]


def expiry_from(now: datetime, spec: str) -> datetime:
    return now + timedelta(milliseconds=resolve_duration_ms(spec))


class DurationTable:
    """
    Per-role, per-token-kind lifetimes.

    Built from configuration such as
    ``{"PATIENT": {"access": "7d", "refresh": "30d"}, "ADMIN": {"access": "1d"}}``.
    Missing entries fall back to DEFAULT_DURATIONS.
    """

    def __init__(self, table: Optional[Mapping[str, Mapping[str, str]]] = None):
        self._table: Dict[str, Dict[str, str]] = {
            str(role).upper(): {str(kind).lower(): spec for kind, spec in kinds.items()}
            for role, kinds in (table or {}).items()
        }

    def spec_for(self, role: UserRole, kind: TokenType) -> str:
        role_key = role.value if isinstance(role, UserRole) else str(role).upper()
        kind_key = kind.value.lower()
        return self._table.get(role_key, {}).get(kind_key, DEFAULT_DURATIONS[kind])

    def expiry_for(self, role: UserRole, kind: TokenType, now: datetime) -> datetime:
        return expiry_from(now, self.spec_for(role, kind))

    def validate(self) -> None:
        """
        Resolve every configured entry.

        Raises:
            InvalidDurationSpec: On the first unparsable entry
        """
        for kinds in self._table.values():
            for spec in kinds.values():
                resolve_duration_ms(spec)
        for spec in DEFAULT_DURATIONS.values():
            resolve_duration_ms(spec)
