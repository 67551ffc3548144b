"""
JWT issuance for signed-in users.

The issuer is constructed with its signing key and lifetime table so it can
be built with fixed keys and clocks in tests; nothing here reads global
settings.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from jose import jwt, JWTError

from ..core.security import utcnow
from .expiration import DurationTable
from .models import User, UserRole, TokenType

# Set up logging
logger = logging.getLogger(__name__)

# Roles that re-authenticate with primary credentials instead of refreshing
NO_REFRESH_ROLES = frozenset({UserRole.ADMIN})


@dataclass(frozen=True)
class IssuedTokens:
    """Tokens minted for one sign-in, with their expiry instants."""
    access_token: str
    access_expires_at: datetime
    expires_in: str
    refresh_token: Optional[str] = None
    refresh_expires_at: Optional[datetime] = None

    def as_response(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresIn": self.expires_in,
        }


class TokenIssuer:
    """
    Mints signed access and refresh tokens.

    Args:
        secret_key: Key used to sign and verify tokens
        algorithm: JWS algorithm, e.g. HS256
        durations: Lifetime table per role and token kind
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        durations: Optional[DurationTable] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret_key:
            raise ValueError("A signing key is required")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.durations = durations or DurationTable()
        self.clock = clock or utcnow

    def _claims(self, user: User, kind: TokenType, issued_at: datetime, expires_at: datetime) -> Dict[str, Any]:
        return {
            "id": user.id,
            "role": user.role.value,
            "status": user.status.value,
            "type": kind.value.lower(),
            # Sub-second precision keeps two tokens minted in the same second distinct
            "iat": issued_at.timestamp(),
            "exp": expires_at,
        }

    def _sign(self, user: User, kind: TokenType, issued_at: datetime) -> Tuple[str, datetime]:
        expires_at = self.durations.expiry_for(user.role, kind, issued_at)
        token = jwt.encode(self._claims(user, kind, issued_at, expires_at), self.secret_key, algorithm=self.algorithm)
        return token, expires_at

    def issue_access_token(self, user: User) -> str:
        token, _ = self._sign(user, TokenType.ACCESS, self.clock())
        return token

    def issue_refresh_token(self, user: User) -> Optional[str]:
        """
        Create a refresh token, or None for roles that may not refresh.
        """
        if user.role in NO_REFRESH_ROLES:
            return None
        token, _ = self._sign(user, TokenType.REFRESH, self.clock())
        return token

    def issue(self, user: User) -> IssuedTokens:
        """
        Mint the token set for a sign-in.

        Args:
            user: Authenticated user

        Returns:
            IssuedTokens: Access token, refresh token (None for ADMIN) and expiries
        """
        issued_at = self.clock()
        access_token, access_expires_at = self._sign(user, TokenType.ACCESS, issued_at)
        refresh_token, refresh_expires_at = None, None
        if user.role not in NO_REFRESH_ROLES:
            refresh_token, refresh_expires_at = self._sign(user, TokenType.REFRESH, issued_at)
        logger.info(f"Tokens issued for user {user.id} ({user.role.value})")
        return IssuedTokens(
            access_token=access_token,
            access_expires_at=access_expires_at,
            expires_in=self.durations.spec_for(user.role, TokenType.ACCESS),
            refresh_token=refresh_token,
            refresh_expires_at=refresh_expires_at,
        )

    def decode(self, token: str, expected_type: Optional[str] = "access") -> Optional[Dict[str, Any]]:
        """
        Verify and decode a token signed by this issuer.

        Args:
            token: JWT string
            expected_type: Required "type" claim, or None to accept any

        Returns:
            Dict containing token payload if valid, None if invalid
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if expected_type is not None and payload.get("type") != expected_type:
            return None
        return payload
