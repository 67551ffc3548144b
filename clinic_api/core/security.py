"""
Core security utilities for password hashing, token fingerprints and
identifier normalization.
"""
from datetime import datetime, timezone
from typing import Optional
from passlib.context import CryptContext
import hashlib
import hmac
import logging
import re

# Set up logging
logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_NON_DIGITS = re.compile(r"[^0-9]")

def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        str: Salted bcrypt hash
    """
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against a hash.

    A missing or malformed hash never raises; it simply does not match.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password to compare against

    Returns:
        bool: True if password matches hash
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.warning(f"Password verification against unusable hash: {type(e).__name__}")
        return False

def hash_token(token: str) -> str:
    """
    Fingerprint a token for storage.

    Deterministic (no salt) so a presented token can be looked up later.

    Args:
        token: Raw token

    Returns:
        str: SHA-256 hex digest
    """
    return hashlib.sha256(token.encode()).hexdigest()

def verify_token_hash(token: str, hashed_token: str) -> bool:
    """
    Verify a token against a stored fingerprint.

    Args:
        token: Raw token
        hashed_token: Stored fingerprint

    Returns:
        bool: True if token matches fingerprint
    """
    return hmac.compare_digest(hash_token(token), hashed_token)

def normalize_email(email: str) -> str:
    return email.strip().lower()

def normalize_phone(phone: str) -> str:
    """Keep digits only, e.g. '+225 07 00-00' -> '225070000'."""
    return _NON_DIGITS.sub("", phone)

def mask_phone(phone: str) -> str:
    """Mask all but the last two digits for log lines."""
    if len(phone) <= 2:
        return "*" * len(phone)
    return "*" * (len(phone) - 2) + phone[-2:]

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes.

    Some backends (SQLite) return naive datetimes even for timezone-aware
    columns; every stored instant is written in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
