"""
One-time code issuance and verification.

Codes are keyed by phone number (digits only). Several codes may exist for
the same phone; only the most recently created unconsumed, unexpired one is
live. A code is consumed exactly once, through a conditional update, so two
concurrent submissions of the same code cannot both succeed.
"""
import enum
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..core.security import normalize_phone, mask_phone, utcnow, as_utc
from .expiration import expiry_from, resolve_duration_ms
from .models import OneTimeCode

# Set up logging
logger = logging.getLogger(__name__)


class OtpOutcome(str, enum.Enum):
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"
    INVALID = "INVALID"

class OtpState(str, enum.Enum):
    """Lifecycle of a code, derived from its consumed flag and expiry."""
    NO_CODE = "NO_CODE"
    ISSUED = "ISSUED"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"
    SUPERSEDED = "SUPERSEDED"


class CodeSender:
    """Delivers a code to a phone. Implementations wrap an SMS gateway."""

    def send(self, phone: str, code: str) -> None:
        raise NotImplementedError

class LoggingCodeSender(CodeSender):
    """Records the dispatch without delivering anything."""

    def send(self, phone: str, code: str) -> None:
        logger.info(f"One-time code dispatched to {mask_phone(phone)}")


def generate_numeric_code(length: int = 4) -> str:
    """
    Generate a random numeric code of the given length.

    Args:
        length: Number of digits

    Returns:
        str: Digit string, leading zeros preserved
    """
    return "".join(secrets.choice("0123456789") for _ in range(length))


class OtpStore:
    """
    Issues, inspects and verifies one-time codes.

    Args:
        length: Digits per code
        ttl: Code lifetime, e.g. "5m"
        sender: Delivery collaborator
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        length: int = 4,
        ttl: str = "5m",
        sender: Optional[CodeSender] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        resolve_duration_ms(ttl)
        self.length = length
        self.ttl = ttl
        self.sender = sender or LoggingCodeSender()
        self.clock = clock or utcnow

    def issue(self, db: Session, phone: str) -> OneTimeCode:
        """
        Create a fresh code for a phone and hand it to the sender.

        Earlier codes stay in place; they are superseded by this one.
        """
        clean_phone = normalize_phone(phone)
        if not clean_phone:
            raise ValueError("phone has no digits")
        now = self.clock()
        record = OneTimeCode(
            phone=clean_phone,
            code=generate_numeric_code(self.length),
            expires_at=expiry_from(now, self.ttl),
            consumed=False,
            created_at=now,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        logger.info(f"One-time code {record.id} issued for {mask_phone(clean_phone)}")
        self.sender.send(clean_phone, record.code)
        return record

    def _candidates(self, db: Session, clean_phone: str, code: str, now: datetime) -> List[OneTimeCode]:
        """
        Unconsumed codes for a phone that are either still unexpired or carry
        the submitted value, newest first.

        Every unexpired code is included, so the first live row is the live
        code for the phone; expired rows only come back when they match.
        """
        return (
            db.query(OneTimeCode)
            .filter(
                OneTimeCode.phone == clean_phone,
                OneTimeCode.consumed.is_(False),
                or_(OneTimeCode.expires_at > now, OneTimeCode.code == code),
            )
            .order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc())
            .all()
        )

    def _is_live(self, record: OneTimeCode, now: datetime) -> bool:
        return as_utc(record.expires_at) > now

    def verify(self, db: Session, phone: str, code: str) -> OtpOutcome:
        """
        Check a submitted code and consume it on success.

        Args:
            db: Database session
            phone: Phone number in any format
            code: Submitted digits

        Returns:
            OtpOutcome: VERIFIED when the live code matches and this call
            consumed it; EXPIRED when the matching code ran out of time;
            INVALID otherwise (wrong, superseded or already used)
        """
        clean_phone = normalize_phone(phone)
        now = self.clock()
        candidates = self._candidates(db, clean_phone, code, now)

        live = next((r for r in candidates if self._is_live(r, now)), None)
        if live is not None and secrets.compare_digest(live.code, code):
            if self._consume(db, live.id):
                logger.info(f"One-time code {live.id} verified for {mask_phone(clean_phone)}")
                return OtpOutcome.VERIFIED
            logger.warning(f"One-time code {live.id} consumed concurrently for {mask_phone(clean_phone)}")
            return OtpOutcome.INVALID

        matching = next((r for r in candidates if secrets.compare_digest(r.code, code)), None)
        if matching is not None and not self._is_live(matching, now):
            logger.info(f"Expired one-time code submitted for {mask_phone(clean_phone)}")
            return OtpOutcome.EXPIRED

        logger.info(f"Invalid one-time code submitted for {mask_phone(clean_phone)}")
        return OtpOutcome.INVALID

    def _consume(self, db: Session, code_id: int) -> bool:
        """Flip consumed only if still unconsumed. True if this call won."""
        result = db.execute(
            update(OneTimeCode)
            .where(OneTimeCode.id == code_id, OneTimeCode.consumed.is_(False))
            .values(consumed=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def state_for(self, db: Session, phone: str, code: Optional[str] = None) -> OtpState:
        """
        Derive the lifecycle state for a phone, or for one of its codes.

        Without a code, the state of the most recent record is returned.
        """
        clean_phone = normalize_phone(phone)
        now = self.clock()
        query = db.query(OneTimeCode).filter(OneTimeCode.phone == clean_phone)
        if code is not None:
            query = query.filter(OneTimeCode.code == code)
        record = query.order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc()).first()
        if record is None:
            return OtpState.NO_CODE
        if record.consumed:
            return OtpState.VERIFIED
        if not self._is_live(record, now):
            return OtpState.EXPIRED
        live = next((r for r in self._candidates(db, clean_phone, record.code, now) if self._is_live(r, now)), None)
        if live is not None and live.id != record.id:
            return OtpState.SUPERSEDED
        return OtpState.ISSUED

    def recently_verified(self, db: Session, phone: str, window: str = "10m") -> bool:
        """True if a code for this phone was consumed and issued within the window."""
        clean_phone = normalize_phone(phone)
        since = self.clock() - timedelta(milliseconds=resolve_duration_ms(window))
        record = (
            db.query(OneTimeCode)
            .filter(OneTimeCode.phone == clean_phone, OneTimeCode.consumed.is_(True))
            .order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc())
            .first()
        )
        return record is not None and as_utc(record.created_at) >= since
