from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Get the project directory (parent of the package directory)
PROJECT_DIR = Path(__file__).parent.parent
ENV_FILE = PROJECT_DIR / ".env"

class Settings(BaseSettings):
    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000

    # Database settings - a full URL wins over the individual parts
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: Optional[str] = None  # Postgres is used only when a name is given
    db_user: Optional[str] = None
    db_password: Optional[str] = None  # Confidential - from .env
    db_ssl_mode: str = "prefer"  # Options: disable, allow, prefer, require, verify-ca, verify-full
    sqlite_path: str = "library.db"

    # JWT settings - confidential values from .env
    jwt_secret_key: str  # Required from .env (confidential - no default)
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 1440
    bcrypt_rounds: int = 12

    # Local timezone for issue, due and return timestamps
    timezone: str = "UTC"

    # Borrowing policy
    loan_period_days: int = 14
    fine_per_day: float = 1.0
    delinquency_ignores_paid_fines: bool = False

    # Book suggestion service - disabled when no URL is configured
    suggestion_service_url: Optional[str] = None
    suggestion_service_api_key: Optional[str] = None  # Optional, sent as Bearer token
    suggestion_timeout_seconds: float = 5.0
    suggestion_count: int = 3

    # Load the sample catalogue and accounts on startup
    seed_sample_data: bool = False

    class Config:
        env_file = str(ENV_FILE) if ENV_FILE.exists() else ".env"
        case_sensitive = False

settings = Settings()
