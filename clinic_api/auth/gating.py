"""
Sign-in gating rules.

Each rule maps (entry point, role, account status, doctor validation status)
to a decision. Rules are evaluated in order and the first match wins, so
every reachable outcome is listed here and nowhere else.
"""
import enum
from typing import Optional, NamedTuple, Tuple

from .models import UserRole, AccountStatus
from ..doctors.models import ValidationStatus


class EntryPoint(str, enum.Enum):
    PASSWORD = "PASSWORD"
    OTP = "OTP"

class Decision(str, enum.Enum):
    ISSUE_TOKENS = "ISSUE_TOKENS"
    WRONG_AUTH_METHOD = "WRONG_AUTH_METHOD"
    ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
    PROFILE_MISSING = "PROFILE_MISSING"
    VALIDATION_PENDING = "VALIDATION_PENDING"
    VALIDATION_REJECTED = "VALIDATION_REJECTED"
    VERIFICATION_ONLY = "VERIFICATION_ONLY"
    REGISTRATION_REQUIRED = "REGISTRATION_REQUIRED"

    @property
    def precedes_credentials(self) -> bool:
        """Decisions that are surfaced before the password is checked."""
        return self is Decision.WRONG_AUTH_METHOD


class _Any:
    def __contains__(self, item) -> bool:
        return True

    def __repr__(self):
        return "ANY"

ANY = _Any()

# None in the role column means "no account"; in the validation column it
# means "no doctor profile"
NO_ACCOUNT = frozenset({None})
NO_PROFILE = frozenset({None})
NOT_ACTIVE = frozenset({AccountStatus.SUSPENDED, AccountStatus.INACTIVE})
ACTIVE = frozenset({AccountStatus.ACTIVE})
STAFF = frozenset({UserRole.DOCTOR, UserRole.ADMIN})


class Rule(NamedTuple):
    entry: EntryPoint
    roles: object
    statuses: object
    validations: object
    decision: Decision


DECISION_TABLE: Tuple[Rule, ...] = (
    # Email and password: doctors and administrators only
    Rule(EntryPoint.PASSWORD, frozenset({UserRole.PATIENT}), ANY, ANY, Decision.WRONG_AUTH_METHOD),
    Rule(EntryPoint.PASSWORD, STAFF, NOT_ACTIVE, ANY, Decision.ACCOUNT_SUSPENDED),
    Rule(EntryPoint.PASSWORD, frozenset({UserRole.DOCTOR}), ACTIVE, NO_PROFILE, Decision.PROFILE_MISSING),
    Rule(EntryPoint.PASSWORD, frozenset({UserRole.DOCTOR}), ACTIVE, frozenset({ValidationStatus.PENDING}), Decision.VALIDATION_PENDING),
    Rule(EntryPoint.PASSWORD, frozenset({UserRole.DOCTOR}), ACTIVE, frozenset({ValidationStatus.REJECTED}), Decision.VALIDATION_REJECTED),
    Rule(EntryPoint.PASSWORD, frozenset({UserRole.DOCTOR}), ACTIVE, frozenset({ValidationStatus.APPROVED}), Decision.ISSUE_TOKENS),
    Rule(EntryPoint.PASSWORD, frozenset({UserRole.ADMIN}), ACTIVE, ANY, Decision.ISSUE_TOKENS),
    # One-time code: tokens for patients only
    Rule(EntryPoint.OTP, NO_ACCOUNT, ANY, ANY, Decision.REGISTRATION_REQUIRED),
    Rule(EntryPoint.OTP, frozenset({UserRole.PATIENT}), NOT_ACTIVE, ANY, Decision.ACCOUNT_SUSPENDED),
    Rule(EntryPoint.OTP, frozenset({UserRole.PATIENT}), ACTIVE, ANY, Decision.ISSUE_TOKENS),
    Rule(EntryPoint.OTP, STAFF, ANY, ANY, Decision.VERIFICATION_ONLY),
)


class NoMatchingRule(LookupError):
    pass


def decide(
    entry: EntryPoint,
    role: Optional[UserRole],
    status: Optional[AccountStatus],
    validation: Optional[ValidationStatus] = None,
) -> Decision:
    """
    Look up the decision for a sign-in attempt.

    Args:
        entry: Entry point being used
        role: Account role, None when no account exists
        status: Account status, None when no account exists
        validation: Doctor validation status, None when there is no profile

    Returns:
        Decision: Outcome of the first matching rule

    Raises:
        NoMatchingRule: If the combination is not covered by the table
    """
    for rule in DECISION_TABLE:
        if rule.entry == entry and role in rule.roles and status in rule.statuses and validation in rule.validations:
            return rule.decision
    raise NoMatchingRule(f"No sign-in rule for {entry.value}/{role}/{status}/{validation}")
