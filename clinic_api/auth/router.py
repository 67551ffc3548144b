"""
Authentication routes for the clinic booking system.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
import logging
from typing import Any, Dict, Optional

from ..config import settings
from ..core.security import mask_phone, normalize_phone
from ..database import get_db
from .dependencies import get_current_user, get_otp_store, get_token_issuer, get_token_ledger
from .exceptions import AuthException
from .ledger import TokenLedger
from .models import User
from .otp import OtpStore
from .schemas import UserLogin, OtpSend, OtpVerify, PatientRegistration
from .service import login_with_password, send_otp, verify_otp, register_patient
from .tokens import TokenIssuer

# Set up logging
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(tags=["Authentication"])

INTERNAL_ERROR = {"code": "INTERNAL_ERROR", "message": "Internal server error"}


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None

def _internal_error(context: str, e: Exception) -> HTTPException:
    logger.exception(f"Unexpected error during {context}: {type(e).__name__}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR)


@router.post("/login", summary="Email and Password Login (doctors, admins)")
async def login_route(
    login_data: UserLogin,
    request: Request,
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    ledger: TokenLedger = Depends(get_token_ledger),
) -> Dict[str, Any]:
    """
    Password login endpoint.

    Patients are redirected to the one-time code flow. Doctors must have
    an approved profile. Administrators never receive a refresh token.

    Returns:
        Dict with tokens {accessToken, refreshToken, expiresIn} and sessionInfo

    Raises:
        HTTPException: With a stable error code on refusal
    """
    try:
        return await login_with_password(
            db=db,
            email=login_data.email,
            password=login_data.password,
            issuer=issuer,
            ledger=ledger,
            client_ip=_client_ip(request),
        )
    except AuthException:
        raise
    except Exception as e:
        raise _internal_error("login", e)


@router.post("/otp/send", summary="Send a One-Time Code")
async def otp_send_route(
    otp_data: OtpSend,
    db: Session = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
) -> Dict[str, Any]:
    """
    Issue a one-time code for a phone number and hand it to the SMS channel.
    """
    try:
        return await send_otp(db=db, phone=otp_data.phone, otp_store=otp_store)
    except Exception as e:
        raise _internal_error(f"code issuance for {mask_phone(normalize_phone(otp_data.phone))}", e)


@router.post("/otp/verify", summary="Verify a One-Time Code")
async def otp_verify_route(
    otp_data: OtpVerify,
    request: Request,
    db: Session = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
    ledger: TokenLedger = Depends(get_token_ledger),
) -> Dict[str, Any]:
    """
    One-time code verification endpoint.

    - Existing patient: signed in, tokens returned (authType PATIENT_LOGIN)
    - Existing doctor/admin: phone confirmed only, use the login endpoint
    - Unknown phone: phone confirmed only, proceed to registration
    """
    try:
        return await verify_otp(
            db=db,
            phone=otp_data.phone,
            code=otp_data.code,
            otp_store=otp_store,
            issuer=issuer,
            ledger=ledger,
            client_ip=_client_ip(request),
        )
    except AuthException:
        raise
    except Exception as e:
        raise _internal_error("code verification", e)


@router.post("/register/patient", status_code=status.HTTP_201_CREATED, summary="Patient Registration (after phone verification)")
async def register_patient_route(
    patient_data: PatientRegistration,
    request: Request,
    db: Session = Depends(get_db),
    otp_store: OtpStore = Depends(get_otp_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
    ledger: TokenLedger = Depends(get_token_ledger),
) -> Dict[str, Any]:
    """
    Patient self-registration endpoint.

    Requires a one-time code verified for the same phone within the
    configured window. Patients have no password.
    """
    try:
        return await register_patient(
            db=db,
            data=patient_data,
            otp_store=otp_store,
            issuer=issuer,
            ledger=ledger,
            verification_window=settings.phone_verification_window,
            default_city=settings.default_city,
            client_ip=_client_ip(request),
        )
    except AuthException:
        raise
    except Exception as e:
        raise _internal_error("patient registration", e)


@router.get("/me", summary="Get Current User Profile")
async def get_current_user_profile(current_user: User = Depends(get_current_user)) -> Dict[str, Any]:
    """
    Return the account behind the bearer token.
    """
    return {
        "id": current_user.id,
        "email": current_user.email,
        "phone": current_user.phone,
        "firstName": current_user.first_name,
        "lastName": current_user.last_name,
        "role": current_user.role.value,
        "status": current_user.status.value,
    }
