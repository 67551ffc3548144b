"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from .auth.router import router as auth_router
from .auth.dependencies import get_duration_table
from .auth.expiration import resolve_duration_ms
from .database import Base, engine, get_db
from .config import settings
# Import all models here for creating tables
from .auth import models as auth_models  # noqa: F401
from .doctors import models as doctor_models  # noqa: F401
from .patients import models as patient_models  # noqa: F401
from .exceptions import register_exception_handlers
from .core.middleware import setup_middlewares

API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Token and code lifetimes are configuration: refuse to start with a bad one
get_duration_table().validate()
resolve_duration_ms(settings.otp_ttl)
resolve_duration_ms(settings.phone_verification_window)

# Create database tables if they don't exist
Base.metadata.create_all(bind=engine)

logger.info("Starting Clinic Booking API...")

# Create FastAPI application
app = FastAPI(
    title="Clinic Booking API",
    description="API for clinic and doctor booking: authentication and sessions",
    version=API_VERSION
)

# Register exception handlers
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware
setup_middlewares(app)

# Include routers
app.include_router(auth_router, prefix="/api/v1/auth")

# Root endpoint
@app.get("/")
def root():
    """
    Root endpoint for API health check.

    Returns:
        dict: Welcome message and API version
    """
    return {"message": "Welcome to Clinic Booking API", "version": API_VERSION}

# Health check endpoint
@app.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for monitoring.

    Returns:
        dict: Health status information
    """
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "unreachable"
    return {"status": "healthy" if database == "connected" else "degraded", "database": database}
