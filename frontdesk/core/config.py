from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List
import os

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Front Desk Registration Service"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    TESTING: bool = os.getenv("TESTING", "0").lower() in ("1", "true", "t", "yes", "y")

    # Hospital backend - one base path per staff role
    API_BASE_URL: str = "http://localhost:5000/api"
    ADMIN_API_PATH: str = "/admin"
    RECEPTIONIST_API_PATH: str = "/receptionist"
    SCANNER_API_PATH: str = "/scanner"
    AUTH_API_PATH: str = "/auth"
    HTTP_TIMEOUT: float = 10.0

    # Registration form
    RENEWAL_PERIOD_DAYS: int = 7
    ENFORCE_RENEWAL_ORDER: bool = False

    # Prescription printing
    PRESCRIPTION_SOURCE: str = "document"  # "document", "url" or "generate"
    HOSPITAL_NAME: str = "Malabar Academic City Hospital"
    HOSPITAL_TAGLINE: str = "Care Beyond Cure"
    PRINT_TASK_TTL: float = 3600.0  # seconds a finished print job stays visible
    PRINT_TASK_LIMIT: int = 500
    PRINT_LOAD_DELAY: float = 0.5
    PRINT_RELEASE_DELAY: float = 1.0
    PRINTER_BACKEND: str = "lp"  # "lp" or "spool"
    PRINTER_NAME: Optional[str] = None
    PRINT_SPOOL_DIR: Optional[str] = None

    # CORS
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://testserver"]

    def api_url(self, path: str) -> str:
        """Return the backend base URL for one role-scoped path."""
        return self.API_BASE_URL.rstrip("/") + "/" + path.strip("/")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

# Create settings instance
settings = Settings()
