import json
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be configured via .env file or environment variables.
    """

    # =============================================================================
    # APPLICATION
    # =============================================================================
    PROJECT_NAME: str = "Student Management API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_PREFIX: str = "/api"

    # =============================================================================
    # SERVER
    # =============================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # =============================================================================
    # POSTGRESQL DATABASE - Individual components
    # =============================================================================
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "student_db"

    # Set directly, or built from the POSTGRES_* components above
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    # =============================================================================
    # DATABASE POOL SETTINGS
    # =============================================================================
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO_SQL: bool = False
    DB_CONNECT_TIMEOUT: int = 10

    # libpq sslmode. "require" encrypts without verifying the server
    # certificate; leave unset unless the hosting provider needs it.
    DB_SSLMODE: Optional[str] = None

    # Isolation level for the duplicate checks + write of create/update.
    # None keeps the driver default.
    DB_WRITE_ISOLATION_LEVEL: Optional[str] = "SERIALIZABLE"

    # Development only: drop the students table before creating it
    DB_DROP_ON_STARTUP: bool = False

    # =============================================================================
    # API
    # =============================================================================
    LIST_DEFAULT_PAGE_SIZE: int = 10
    # Optional upper bound on pageSize; None serves whatever the client asks for
    LIST_MAX_PAGE_SIZE: Optional[int] = None

    # Return raw database error text to clients (trusted deployments only)
    EXPOSE_ERROR_DETAILS: bool = False

    # =============================================================================
    # CORS
    # =============================================================================
    BACKEND_CORS_ORIGINS: List[str] = [
        "https://xinnnnx.github.io",
        "https://xinnnnx.github.io/studentsystem",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # =============================================================================
    # STATIC FILES
    # =============================================================================
    STATIC_DIR: str = "public"

    # =============================================================================
    # LOGGING
    # =============================================================================
    LOG_LEVEL: str = "INFO"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def build_database_url(cls, v: Optional[str], info) -> str:
        """
        Build DATABASE_URL from components if not provided.

        Priority:
        1. Use DATABASE_URL if explicitly set in .env (postgres:// is normalized)
        2. Build from POSTGRES_* components
        """
        if isinstance(v, str) and v:
            # Hosted providers hand out postgres:// URLs; SQLAlchemy only knows postgresql://
            if v.startswith("postgres://"):
                return "postgresql://" + v[len("postgres://"):]
            return v

        user = info.data.get("POSTGRES_USER")
        password = info.data.get("POSTGRES_PASSWORD")
        host = info.data.get("POSTGRES_HOST")
        port = info.data.get("POSTGRES_PORT")
        db = info.data.get("POSTGRES_DB")

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Create global settings instance
settings = Settings()
