"""
Authentication models - accounts, one-time codes and the issued token ledger.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import enum
from ..database import Base


def _now():
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    """
    Enumeration for user roles in the clinic booking system.

    Roles:
    - PATIENT: End users who sign in with a one-time code sent to their phone
    - DOCTOR: Clinicians who sign in with email and password once validated
    - ADMIN: System administrators, email and password only, no refresh token
    """
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"

class AccountStatus(str, enum.Enum):
    """
    Enumeration for account status types.

    Status Types:
    - ACTIVE: Account may sign in
    - SUSPENDED: Account blocked by an administrator
    - INACTIVE: Account closed or dormant
    """
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"

class TokenType(str, enum.Enum):
    """Kind of issued bearer credential."""
    ACCESS = "ACCESS"
    REFRESH = "REFRESH"


class User(Base):
    """
    User Model - Identity record shared by every role

    Fields:
    - id: Primary key for user identification
    - email: Unique email address, required for password login (optional for patients)
    - phone: Unique phone number, digits only (optional for staff)
    - first_name / last_name: User's name
    - password_hash: bcrypt hash, absent for phone-only patients
    - role: User role (patient, doctor, admin)
    - status: Current account status
    - created_at: Timestamp when user was created
    - updated_at: Timestamp when user was last updated
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, unique=True, index=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.PATIENT)
    status = Column(Enum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    doctor_profile = relationship("DoctorProfile", back_populates="user", uselist=False)
    patient_profile = relationship("PatientProfile", back_populates="user", uselist=False)
    tokens = relationship("UserToken", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, role='{self.role}', status='{self.status}')>"


class UserToken(Base):
    """
    UserToken Model - Fingerprint of an issued JWT

    The raw token is never stored; token_hash is its SHA-256 hex digest.
    `used` is reserved for single-use refresh rotation and is not enforced.
    """
    __tablename__ = "user_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_type = Column(Enum(TokenType), nullable=False)
    token_hash = Column(String(64), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_now)

    user = relationship("User", back_populates="tokens")

    def __repr__(self):
        return f"<UserToken(id={self.id}, user_id={self.user_id}, type='{self.token_type}')>"


class OneTimeCode(Base):
    """
    OneTimeCode Model - Short-lived numeric challenge bound to a phone number

    Not linked to a user: the phone may not belong to any account yet.
    created_at is set in Python so that codes issued within the same second
    still order correctly.
    """
    __tablename__ = "one_time_codes"
    __table_args__ = (
        Index("ix_one_time_codes_phone_created", "phone", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String, nullable=False)
    code = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    def __repr__(self):
        return f"<OneTimeCode(id={self.id}, consumed={self.consumed})>"
