"""
Auth Schemas - Pydantic models for request validation.

Requests use the camelCase field names of the public API.
"""
import re
from typing import Optional
from datetime import date
from pydantic import BaseModel, EmailStr, Field, field_validator
from ..patients.models import Gender

MIN_PHONE_DIGITS = 8
MAX_PHONE_DIGITS = 15
_PHONE_CHARS = re.compile(r"[0-9+\-(). ]+")

def _check_phone(value: str) -> str:
    # ASCII digits only, the same set normalize_phone keeps
    if not _PHONE_CHARS.fullmatch(value):
        raise ValueError("phone contains invalid characters")
    digits = sum(1 for c in value if c in "0123456789")
    if not MIN_PHONE_DIGITS <= digits <= MAX_PHONE_DIGITS:
        raise ValueError(f"phone must contain between {MIN_PHONE_DIGITS} and {MAX_PHONE_DIGITS} digits")
    return value

class UserLogin(BaseModel):
    """
    User Login Schema - Email and password sign-in for doctors and admins

    Fields:
    - email: User's email address
    - password: User's plain text password
    """
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=100)

class OtpSend(BaseModel):
    """
    OTP Send Schema - Request a one-time code for a phone number
    """
    phone: str

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _check_phone(value)

class OtpVerify(BaseModel):
    """
    OTP Verify Schema - Submit the one-time code received by SMS

    Fields:
    - phone: Phone number the code was sent to
    - code: Exactly four digits
    """
    phone: str
    code: str = Field(..., pattern=r"^[0-9]{4}$")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _check_phone(value)

class PatientRegistration(BaseModel):
    """
    Patient Registration Schema - Password-less sign-up after phone verification
    """
    model_config = {"populate_by_name": True}

    first_name: str = Field(..., alias="firstName", min_length=2, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=2, max_length=100)
    phone: str
    email: EmailStr
    date_of_birth: Optional[date] = Field(None, alias="dateOfBirth")
    gender: Optional[Gender] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _check_phone(value)
