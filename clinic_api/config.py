"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from pydantic_settings import BaseSettings
from typing import Dict, List

class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        database_url: SQLAlchemy connection string
        secret_key: Secret key for JWT token signing
        algorithm: Algorithm used for JWT encoding (typically HS256)
        jwt_expiration: Token lifetimes per role and token kind, e.g.
            {"PATIENT": {"access": "7d", "refresh": "30d"}}

        # One-time code settings
        otp_length: Number of digits in a one-time code
        otp_ttl: Lifetime of a one-time code
        phone_verification_window: How long a verified phone may be used
            to register a patient account

        # Registration settings
        default_city: City assigned to new patient profiles

        # HTTP settings
        cors_origins: Allowed CORS origins
        log_level: Root logging level
    """
    # Database settings
    database_url: str = "sqlite:///./clinic.db"

    # JWT settings
    secret_key: str
    algorithm: str = "HS256"
    jwt_expiration: Dict[str, Dict[str, str]] = {
        "PATIENT": {"access": "7d", "refresh": "30d"},
        "DOCTOR": {"access": "1d", "refresh": "30d"},
        "ADMIN": {"access": "1d"},
    }

    # One-time code settings
    otp_length: int = 4
    otp_ttl: str = "5m"
    phone_verification_window: str = "10m"

    # Registration settings
    default_city: str = "Abidjan"

    # HTTP settings
    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False

# Create settings instance
settings = Settings()
