"""
Patient Model - Stores patient-specific information.

This model extends the base User model with the fields returned in the
profile snapshot of an OTP login.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Date, Enum, func
from sqlalchemy.orm import relationship
import enum
from ..database import Base

class Gender(str, enum.Enum):
    M = "M"
    F = "F"
    OTHER = "OTHER"

class PatientProfile(Base):
    """
    PatientProfile Model - Stores patient-specific information

    Fields:
    - id: Primary key for patient profile
    - user_id: Foreign key to User model
    - date_of_birth: Patient's date of birth
    - gender: Patient's gender
    - city: Patient's city
    - created_at: When the patient profile was created
    - updated_at: When the patient profile was last updated
    """
    __tablename__ = "patient_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Enum(Gender), nullable=False, default=Gender.OTHER)
    city = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="patient_profile", uselist=False)

    def __repr__(self):
        """String representation of the PatientProfile model"""
        return f"<PatientProfile(id={self.id}, user_id={self.user_id})>"

    def snapshot(self) -> dict:
        """Profile fields exposed to the patient after login."""
        return {
            "id": self.id,
            "dateOfBirth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "gender": self.gender.value if self.gender else None,
            "city": self.city,
        }
