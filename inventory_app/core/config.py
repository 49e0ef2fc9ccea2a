"""
Inventory API Configuration
Core settings for the inventory purchasing service
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application Info
    APP_NAME: str = "Inventory Management API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./inventory.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 20

    # CORS
    ALLOWED_HOSTS: list = ["*"]
    CORS_ORIGINS: list = [
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Path = Path("logs")
    LOG_FILE: str = "app.log"
    ERROR_LOG_FILE: str = "error.log"
    LOG_TO_FILE: bool = True

    # API Configuration
    API_PREFIX: str = "/api"
    DOCS_URL: str = "/docs"
    REDOC_URL: str = "/redoc"
    OPENAPI_URL: str = "/openapi.json"
    MAX_PAGE_SIZE: int = 100

    # Business Logic Settings
    DEFAULT_ACTOR: str = "system"
    DEFAULT_PAYMENT_TERMS: str = "net_30"
    PO_NUMBER_PREFIX: str = "PO"
    PO_NUMBER_WIDTH: int = 5
    NOTES_MAX_LENGTH: int = 500
    MOVEMENT_NOTES_MAX_LENGTH: int = 200

    # Financial Precision
    CURRENCY_DECIMAL_PLACES: int = 2

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        """Validate database URL"""
        if isinstance(v, str) and v:
            return v
        return "sqlite:///./inventory.db"

    @field_validator("LOG_DIR", mode="before")
    @classmethod
    def coerce_log_dir(cls, v):
        """Accept log directory as string or path"""
        return Path(v) if isinstance(v, str) else v


# Global settings instance
settings = Settings()
