"""
Configuration settings for the VQF onboarding engine.
Uses pydantic-settings for environment variable management.
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Mode
    DEBUG: bool = Field(False, description="Enable debug mode")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # Rendering backend
    RENDER_API_BASE_URL: str = Field(
        "http://localhost:3001",
        description="Base URL of the PDF rendering backend"
    )
    SUBMIT_ENDPOINT: str = Field(
        "/api/submit",
        description="Submission path (older deployments use /api/submit-form)"
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(60.0, description="Per-template request timeout")

    # File Upload Configuration
    MAX_FILE_SIZE_MB: int = Field(10, description="Maximum file upload size in MB")
    ALLOWED_FILE_TYPES: list = Field(
        default=["application/pdf", "image/jpeg", "image/png"],
        description="Allowed MIME types for identity and register documents"
    )
    ADDITIONAL_FILE_TYPES: list = Field(
        default=[
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ],
        description="Extra MIME types accepted for additional documents"
    )

    # Policy switches
    UID_REQUIRED: bool = Field(False, description="Require a UID for llc/assoc clients")
    ENABLE_FORM_K: bool = Field(False, description="Select 902.11e when controlling persons exist")

    # Document metadata
    VQF_MEMBER_NUMBER: str = Field("100809", description="VQF member number printed on forms")
    COMPLIANCE_OFFICER: Optional[str] = Field(None, description="Name printed as 'completed by'")
    DOCUMENT_LANGUAGE: str = Field("en", description="Language code sent with each document")

    # Server Configuration
    HOST: str = Field("0.0.0.0", description="Server host")
    PORT: int = Field(8000, description="Server port")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def submit_url(self) -> str:
        return self.RENDER_API_BASE_URL.rstrip("/") + "/" + self.SUBMIT_ENDPOINT.lstrip("/")


def get_project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


def validate_settings() -> tuple[bool, list[str]]:
    """
    Validate that the settings are usable.
    Returns (is_valid, list of missing/invalid settings).
    """
    issues = []

    try:
        s = settings

        if not s.RENDER_API_BASE_URL.startswith(("http://", "https://")):
            issues.append("RENDER_API_BASE_URL must be an http(s) URL")

        if s.SUBMIT_ENDPOINT not in ("/api/submit", "/api/submit-form"):
            issues.append(f"SUBMIT_ENDPOINT '{s.SUBMIT_ENDPOINT}' is not a known endpoint (optional)")

        if s.MAX_FILE_SIZE_MB <= 0:
            issues.append("MAX_FILE_SIZE_MB must be positive")

        if not s.COMPLIANCE_OFFICER:
            issues.append("COMPLIANCE_OFFICER not set (optional - forms leave it blank)")

    except Exception as e:
        issues.append(f"Configuration error: {str(e)}")

    blocking = [i for i in issues if "optional" not in i.lower()]
    return len(blocking) == 0, issues


# Load .env from project root
env_path = get_project_root() / ".env"
if env_path.exists():
    from dotenv import load_dotenv
    load_dotenv(env_path)

# Global settings instance
settings = Settings()
