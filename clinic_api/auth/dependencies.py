"""
FastAPI dependencies for the authentication components.

The issuer, code store and ledger are built once from settings and can be
replaced through app.dependency_overrides.
"""
from functools import lru_cache
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from .expiration import DurationTable
from .exceptions import InvalidTokenException
from .ledger import TokenLedger
from .models import User
from .otp import OtpStore, LoggingCodeSender
from .tokens import TokenIssuer

# OAuth2 scheme for JWT token authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

@lru_cache
def get_duration_table() -> DurationTable:
    return DurationTable(settings.jwt_expiration)

@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(
        secret_key=settings.secret_key,
        algorithm=settings.algorithm,
        durations=get_duration_table(),
    )

@lru_cache
def get_otp_store() -> OtpStore:
    return OtpStore(length=settings.otp_length, ttl=settings.otp_ttl, sender=LoggingCodeSender())

@lru_cache
def get_token_ledger() -> TokenLedger:
    return TokenLedger()

def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> User:
    """
    Get current authenticated user from an access token.

    Args:
        token: JWT token from Authorization header
        db: Database session
        issuer: Issuer holding the verification key

    Returns:
        User: Current authenticated user

    Raises:
        InvalidTokenException: If token is invalid or user not found
    """
    payload = issuer.decode(token)
    if not payload or not payload.get("id"):
        raise InvalidTokenException()

    user = db.query(User).filter(User.id == payload["id"]).first()
    if not user:
        raise InvalidTokenException()

    return user
