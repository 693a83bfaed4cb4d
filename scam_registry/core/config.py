from typing import List, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Community Scam Registry"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Session lifecycle and OTP verification for the community scam registry"

    # Auth Gateway (client side)
    API_BASE_URL: str = "http://localhost:3001/api"
    API_TIMEOUT_SECONDS: float = 10.0
    TOKEN_STORE_PATH: str = "~/.scam_registry/auth-storage.json"

    # OTP
    OTP_LENGTH: int = 6
    OTP_VALIDITY_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 3

    # Security
    SECRET_KEY: str = "scam-registry-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_EXPIRE_MINUTES: int = 30

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # API
    API_PREFIX: str = "/api"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = {"env_file": ".env", "case_sensitive": True, "extra": "ignore"}

# Create settings instance
settings = Settings()
