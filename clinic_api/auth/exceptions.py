"""
Authentication-specific exceptions.

Every exception carries a stable machine-readable code; the response body is
{"detail": {"code": ..., "message": ..., ...extra}}.
"""
from fastapi import HTTPException, status
from typing import Any, Dict, List, Optional, Union
from .models import AccountStatus
from ..doctors.models import ValidationStatus

VALIDATION_CONTACT = {
    "email": "validation@medecins-patients.ci",
}

class AuthException(HTTPException):
    """Base class for authentication exceptions."""
    code = "AUTH_ERROR"

    def __init__(self, status_code: int, message: str, **extra: Any):
        self.message = message
        detail: Dict[str, Any] = {"code": self.code, "message": message}
        detail.update(extra)
        super().__init__(status_code=status_code, detail=detail)

class InvalidCredentialsException(AuthException):
    """Wrong email or password. Deliberately identical for unknown accounts."""
    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)

class WrongAuthMethodException(AuthException):
    """Exception raised when a patient tries the password endpoint."""
    code = "WRONG_AUTH_METHOD"

    def __init__(self, message: str = "Patients sign in with a one-time code sent by SMS."):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            message,
            correctEndpoint="POST /api/v1/auth/otp/send then POST /api/v1/auth/otp/verify",
        )

class AccountSuspendedException(AuthException):
    """Exception raised when account status prevents sign-in."""
    code = "ACCOUNT_SUSPENDED"

    def __init__(self, account_status: Union[str, AccountStatus], message: str = None):
        status_value = account_status.value if hasattr(account_status, 'value') else str(account_status)
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            message or "Account suspended or deactivated. Contact support.",
            accountStatus=status_value,
        )

class ProfileMissingException(AuthException):
    """
    A DOCTOR account has no doctor profile.

    Internal inconsistency: the client only sees a generic server error.
    """
    code = "INTERNAL_ERROR"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

class ValidationGateException(AuthException):
    """Base class for doctor validation gating."""

    def __init__(self, validation_status: ValidationStatus, message: str, rejection_reason: Optional[str], next_steps: List[str]):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            message,
            validationStatus=validation_status.value,
            rejectionReason=rejection_reason,
            nextSteps=next_steps,
            contact=VALIDATION_CONTACT,
        )

class ValidationPendingException(ValidationGateException):
    code = "VALIDATION_PENDING"

    def __init__(self):
        super().__init__(
            ValidationStatus.PENDING,
            "Your doctor account is being validated.",
            None,
            [
                "Validation in progress by the administration",
                "Estimated delay: 24-48 hours",
                "You will receive a confirmation email",
            ],
        )

class ValidationRejectedException(ValidationGateException):
    code = "VALIDATION_REJECTED"

    def __init__(self, rejection_reason: Optional[str] = None):
        super().__init__(
            ValidationStatus.REJECTED,
            "Your validation request was rejected.",
            rejection_reason,
            [
                "Contact the administration for more information",
                "Rejection reason: " + (rejection_reason or "Not specified"),
            ],
        )

class OtpInvalidException(AuthException):
    code = "OTP_INVALID"

    def __init__(self, message: str = "The verification code is incorrect."):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)

class OtpExpiredException(AuthException):
    code = "OTP_EXPIRED"

    def __init__(self, message: str = "The verification code has expired. Please request a new code."):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)

class PhoneNotVerifiedException(AuthException):
    code = "PHONE_NOT_VERIFIED"

    def __init__(self, message: str = "Verify your phone number with a one-time code first."):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            message,
            action="POST /api/v1/auth/otp/send then POST /api/v1/auth/otp/verify",
        )

class EmailExistsException(AuthException):
    code = "EMAIL_EXISTS"

    def __init__(self, message: str = "An account already exists with this email."):
        super().__init__(status.HTTP_409_CONFLICT, message, field="email")

class PhoneExistsException(AuthException):
    code = "PHONE_EXISTS"

    def __init__(self, message: str = "An account already exists with this phone number."):
        super().__init__(status.HTTP_409_CONFLICT, message, field="phone")

class InvalidTokenException(AuthException):
    """Exception raised when a bearer token is invalid or expired."""
    code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)
        self.headers = {"WWW-Authenticate": "Bearer"}
