"""
Token persistence ledger.

Every issued token is recorded as a SHA-256 fingerprint for audit and
future revocation. Recording is best-effort: the signed token is the source
of truth for authorization, so a failed write is logged and never reaches
the caller.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.security import hash_token
from .models import TokenType, UserToken
from .tokens import IssuedTokens

# Set up logging
logger = logging.getLogger(__name__)

LedgerEntry = Tuple[TokenType, str, datetime]


class TokenLedger:
    """Writes UserToken rows for issued tokens."""

    def record(self, db: Session, user_id: int, kind: TokenType, raw_token: str, expires_at: datetime) -> bool:
        """
        Record a single token.

        Returns:
            bool: True if the row was written
        """
        return self.record_many(db, user_id, [(kind, raw_token, expires_at)])

    def record_issued(self, db: Session, user_id: int, issued: IssuedTokens) -> bool:
        """
        Record the access token and, when present, its refresh token.

        Both rows go in one commit. A failure here does not invalidate the
        tokens already handed out.
        """
        entries = [(TokenType.ACCESS, issued.access_token, issued.access_expires_at)]
        if issued.refresh_token:
            entries.append((TokenType.REFRESH, issued.refresh_token, issued.refresh_expires_at))
        return self.record_many(db, user_id, entries)

    def record_many(self, db: Session, user_id: int, entries: Iterable[LedgerEntry]) -> bool:
        rows = [
            UserToken(
                user_id=user_id,
                token_type=kind,
                token_hash=hash_token(raw_token),
                expires_at=expires_at,
                used=False,
            )
            for kind, raw_token, expires_at in entries
        ]
        try:
            db.add_all(rows)
            db.commit()
        except SQLAlchemyError:
            logger.exception(f"Failed to record {len(rows)} token(s) for user {user_id}")
            try:
                db.rollback()
            except SQLAlchemyError:
                logger.exception(f"Rollback after failed token write for user {user_id} failed")
            return False
        logger.info(f"Recorded {len(rows)} token(s) for user {user_id}")
        return True

    def find_by_token(self, db: Session, raw_token: str) -> Optional[UserToken]:
        """Look up the ledger row for a presented token."""
        return db.query(UserToken).filter(UserToken.token_hash == hash_token(raw_token)).first()
