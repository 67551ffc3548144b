"""
Doctor Model - Stores the clinician profile attached to a DOCTOR account.

The validation status gates password login independently of the account status.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
import enum
from ..database import Base

class ValidationStatus(str, enum.Enum):
    """
    Credential review state of a doctor.

    - PENDING: Awaiting review by an administrator
    - APPROVED: Doctor may sign in
    - REJECTED: Review failed, see rejection_reason
    """
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

class DoctorProfile(Base):
    """
    DoctorProfile Model - One-to-one extension of a DOCTOR user

    Fields:
    - id: Primary key for doctor profile
    - user_id: Foreign key to User model
    - specialization: Doctor's medical specialization
    - validation_status: Credential review state
    - rejection_reason: Set only when validation_status is REJECTED
    - created_at / updated_at: Timestamps
    """
    __tablename__ = "doctor_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialization = Column(String, nullable=True)
    validation_status = Column(Enum(ValidationStatus), nullable=False, default=ValidationStatus.PENDING)
    rejection_reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor_profile", uselist=False)

    def __repr__(self):
        """String representation of the DoctorProfile model"""
        return f"<DoctorProfile(id={self.id}, user_id={self.user_id}, validation_status='{self.validation_status}')>"
