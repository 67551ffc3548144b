"""
Authentication service layer: the sign-in entry points.

Each entry point first decides the outcome (credential checks plus the
gating table) and only then commits side effects. Token recording is the
one side effect allowed to fail without changing the response.
Responses are assembled before tokens are recorded: a failed ledger write
rolls the session back, which expires every loaded object.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.security import verify_password, normalize_email, normalize_phone, mask_phone, utcnow, as_utc
from ..doctors.models import DoctorProfile
from ..patients.models import Gender, PatientProfile
from .exceptions import (
    InvalidCredentialsException,
    WrongAuthMethodException,
    AccountSuspendedException,
    ProfileMissingException,
    ValidationPendingException,
    ValidationRejectedException,
    OtpInvalidException,
    OtpExpiredException,
    PhoneNotVerifiedException,
    EmailExistsException,
    PhoneExistsException,
)
from .gating import Decision, EntryPoint, decide
from .ledger import TokenLedger
from .models import User, UserRole, AccountStatus
from .otp import OtpOutcome, OtpStore
from .schemas import PatientRegistration
from .tokens import TokenIssuer

# Set up logging
logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "POST /api/v1/auth/login"
REGISTER_PATIENT_ENDPOINT = "POST /api/v1/auth/register/patient"

# How long a verification-only result is advertised as valid
VERIFICATION_VALIDITY = timedelta(minutes=10)


def _validation_status(user: User):
    profile: Optional[DoctorProfile] = user.doctor_profile
    return profile.validation_status if profile is not None else None

def _raise_for(decision: Decision, user: User, suspended_message: Optional[str] = None) -> None:
    """Translate a refusing decision into its client-facing exception."""
    if decision is Decision.WRONG_AUTH_METHOD:
        raise WrongAuthMethodException()
    if decision is Decision.ACCOUNT_SUSPENDED:
        raise AccountSuspendedException(user.status, suspended_message)
    if decision is Decision.PROFILE_MISSING:
        logger.error(f"Doctor profile missing for user {user.id}")
        raise ProfileMissingException(user.id)
    if decision is Decision.VALIDATION_PENDING:
        raise ValidationPendingException()
    if decision is Decision.VALIDATION_REJECTED:
        raise ValidationRejectedException(user.doctor_profile.rejection_reason)
    raise ValueError(f"Decision {decision.value} does not refuse sign-in")

def _session_info(login_method: str, client_ip: Optional[str]) -> Dict[str, Any]:
    return {
        "loginMethod": login_method,
        "timestamp": utcnow().isoformat(),
        "ip": client_ip,
    }

def _validation_info(client_ip: Optional[str]) -> Dict[str, Any]:
    validated_at = utcnow()
    return {
        "validatedAt": validated_at.isoformat(),
        "ip": client_ip,
        "validUntil": (validated_at + VERIFICATION_VALIDITY).isoformat(),
    }

def _user_info(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "phone": user.phone,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "role": user.role.value,
        "status": user.status.value,
    }

def _patient_snapshot(user: User) -> Dict[str, Any]:
    info = _user_info(user)
    info["email"] = user.email
    info["patient"] = user.patient_profile.snapshot() if user.patient_profile else None
    return info


async def login_with_password(
    db: Session,
    email: str,
    password: str,
    issuer: TokenIssuer,
    ledger: TokenLedger,
    client_ip: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Authenticate a doctor or administrator with email and password.

    Args:
        db: Database session
        email: Email address, any case
        password: Plain text password
        issuer: Token issuer
        ledger: Token ledger
        client_ip: Caller address for session metadata

    Returns:
        Dict with tokens and session information

    Raises:
        InvalidCredentialsException: Unknown email, no password or wrong password
        WrongAuthMethodException: The account is a patient
        AccountSuspendedException: Credentials are correct but the account is not active
        ProfileMissingException: A doctor account has no profile
        ValidationPendingException / ValidationRejectedException: Doctor not approved
    """
    clean_email = normalize_email(email)
    logger.info(f"Password login attempt for {clean_email} from {client_ip}")

    user = db.query(User).filter(User.email == clean_email).first()
    if not user:
        logger.warning(f"Login failed: unknown email {clean_email}")
        raise InvalidCredentialsException()

    decision = decide(EntryPoint.PASSWORD, user.role, user.status, _validation_status(user))
    if decision.precedes_credentials:
        logger.warning(f"Login refused for user {user.id}: {decision.value}")
        _raise_for(decision, user)

    if not user.password_hash or not verify_password(password, user.password_hash):
        logger.warning(f"Login failed: invalid credentials for user {user.id}")
        raise InvalidCredentialsException()

    if decision is not Decision.ISSUE_TOKENS:
        logger.warning(f"Login refused for user {user.id}: {decision.value}")
        _raise_for(decision, user)

    user_id, role = user.id, user.role.value
    issued = issuer.issue(user)
    response = {
        "tokens": issued.as_response(),
        "sessionInfo": _session_info("EMAIL_PASSWORD", client_ip),
    }
    ledger.record_issued(db, user_id, issued)

    logger.info(f"Login successful: user {user_id} ({role})")
    return response


async def send_otp(db: Session, phone: str, otp_store: OtpStore) -> Dict[str, Any]:
    """
    Issue a one-time code for a phone number.

    The code itself is only given to the delivery channel, never returned.
    """
    record = otp_store.issue(db, phone)
    return {
        "phone": record.phone,
        "expiresAt": as_utc(record.expires_at).isoformat(),
        "message": "A verification code has been sent.",
    }


async def verify_otp(
    db: Session,
    phone: str,
    code: str,
    otp_store: OtpStore,
    issuer: TokenIssuer,
    ledger: TokenLedger,
    client_ip: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Verify a one-time code and sign the caller in when they are a patient.

    Args:
        db: Database session
        phone: Phone number in any format
        code: Submitted four-digit code
        otp_store: Code store
        issuer: Token issuer
        ledger: Token ledger
        client_ip: Caller address for session metadata

    Returns:
        Dict with authType PATIENT_LOGIN (tokens and profile) or
        VERIFICATION_ONLY (phone confirmed, userExists tells whether an
        account exists)

    Raises:
        OtpInvalidException / OtpExpiredException: Code rejected
        AccountSuspendedException: Patient account not active
    """
    clean_phone = normalize_phone(phone)
    outcome = otp_store.verify(db, clean_phone, code)
    if outcome is OtpOutcome.EXPIRED:
        raise OtpExpiredException()
    if outcome is not OtpOutcome.VERIFIED:
        raise OtpInvalidException()

    user = db.query(User).filter(User.phone == clean_phone).first()
    if user is None:
        decision = decide(EntryPoint.OTP, None, None)
    else:
        decision = decide(EntryPoint.OTP, user.role, user.status, _validation_status(user))

    if decision is Decision.REGISTRATION_REQUIRED:
        logger.info(f"Phone {mask_phone(clean_phone)} verified, no account")
        return {
            "authType": "VERIFICATION_ONLY",
            "phone": clean_phone,
            "isValidated": True,
            "userExists": False,
            "userInfo": None,
            "nextSteps": [
                "Your phone number is verified",
                "You can now create your patient account",
                f"Endpoint: {REGISTER_PATIENT_ENDPOINT}",
            ],
            "validationInfo": _validation_info(client_ip),
        }

    if decision is Decision.VERIFICATION_ONLY:
        logger.info(f"Phone {mask_phone(clean_phone)} verified for {user.role.value} user {user.id}")
        return {
            "authType": "VERIFICATION_ONLY",
            "phone": clean_phone,
            "isValidated": True,
            "userExists": True,
            "userInfo": _user_info(user),
            "nextSteps": [
                "Sign in with your email and password",
                f"Endpoint: {LOGIN_ENDPOINT}",
            ],
            "validationInfo": _validation_info(client_ip),
        }

    if decision is not Decision.ISSUE_TOKENS:
        logger.warning(f"OTP login refused for user {user.id}: {decision.value}")
        _raise_for(decision, user, "Your patient account is suspended. Contact support.")

    user_id = user.id
    issued = issuer.issue(user)
    response = {
        "authType": "PATIENT_LOGIN",
        "user": _patient_snapshot(user),
        "tokens": issued.as_response(),
        "sessionInfo": _session_info("OTP", client_ip),
    }
    ledger.record_issued(db, user_id, issued)

    logger.info(f"OTP login successful: patient {user_id}")
    return response


async def register_patient(
    db: Session,
    data: PatientRegistration,
    otp_store: OtpStore,
    issuer: TokenIssuer,
    ledger: TokenLedger,
    verification_window: str = "10m",
    default_city: Optional[str] = None,
    client_ip: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a password-less patient account for a recently verified phone.

    Args:
        db: Database session
        data: Registration payload
        otp_store: Code store, used to check the phone was verified
        issuer: Token issuer
        ledger: Token ledger
        verification_window: How recent the phone verification must be
        default_city: City stored on the new profile
        client_ip: Caller address

    Returns:
        Dict with the new user, tokens and account information

    Raises:
        PhoneNotVerifiedException: No recent verified code for the phone
        EmailExistsException / PhoneExistsException: Identifier already taken
    """
    clean_phone = normalize_phone(data.phone)
    clean_email = normalize_email(data.email)
    logger.info(f"Patient registration for {mask_phone(clean_phone)} from {client_ip}")

    if not otp_store.recently_verified(db, clean_phone, verification_window):
        logger.warning(f"Registration refused: phone {mask_phone(clean_phone)} not verified")
        raise PhoneNotVerifiedException()

    if db.query(User).filter(User.email == clean_email).first():
        raise EmailExistsException()
    if db.query(User).filter(User.phone == clean_phone).first():
        raise PhoneExistsException()

    user = User(
        email=clean_email,
        phone=clean_phone,
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        password_hash=None,
        role=UserRole.PATIENT,
        status=AccountStatus.ACTIVE,
    )
    try:
        db.add(user)
        db.flush()
        db.add(PatientProfile(
            user_id=user.id,
            date_of_birth=data.date_of_birth,
            gender=data.gender or Gender.OTHER,
            city=default_city,
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Registration conflict for {mask_phone(clean_phone)}")
        if db.query(User).filter(User.email == clean_email).first():
            raise EmailExistsException()
        raise PhoneExistsException()
    db.refresh(user)
    logger.info(f"Patient account created: {user.id}")

    issued = issuer.issue(user)
    snapshot = _patient_snapshot(user)
    snapshot["hasPassword"] = False
    snapshot["authMethod"] = "OTP_ONLY"
    response = {
        "user": snapshot,
        "tokens": issued.as_response(),
        "accountInfo": {
            "createdAt": user.created_at.isoformat() if user.created_at else None,
            "ip": client_ip,
            "registrationMethod": "OTP_VERIFICATION",
        },
    }
    ledger.record_issued(db, snapshot["id"], issued)
    return response
