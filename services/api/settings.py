# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
import base64
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    # Storage settings
    # "script" talks to the Apps Script web app; "sheets" goes straight to
    # Google Sheets/Drive; "sqlite" is for local development.
    storage_backend: str = "script"

    # ===== Script endpoint =====
    # Full /exec URL of the deployed Apps Script web app
    script_url: str = ""
    script_timeout_seconds: float = 120.0

    # Drive folder that receives uploaded document images
    upload_folder_id: str = ""

    # Worksheet/tab names (script endpoint uses the same names)
    master_sheet_name: str = "Master"
    documents_sheet_name: str = "Documents"
    serials_sheet_name: str = "Serials"

    # ===== Google service account (sheets backend) =====
    google_sa_json: str = ""
    google_sa_json_base64: str = ""
    sheets_spreadsheet_id: str = ""

    # ===== Local backend =====
    db_url: str = "sqlite:///data/register.db"
    data_dir: str = "data"

    # CORS settings
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    # Master vocabulary is cached this long (seconds)
    master_cache_ttl_seconds: int = 300

    # Editor sessions
    session_ttl_seconds: int = 3600
    max_sessions: int = 500

    # Empty = server local clock. Example: TIMEZONE=Asia/Kolkata
    timezone: Optional[str] = Field(
        default=None,
        description="IANA time zone used for row timestamps",
    )

    # Where the client should navigate after a successful submission
    redirect_path: str = "/documents"
    redirect_delay_ms: int = 1500

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )


    def resolved_google_sa_json(self) -> str:
        """
        Service account credentials for the sheets backend: inline JSON
        decoded from GOOGLE_SA_JSON_BASE64 when set, else GOOGLE_SA_JSON
        as given (a file path or inline JSON).
        """
        if self.google_sa_json_base64:
            return base64.b64decode(self.google_sa_json_base64).decode("utf-8")
        return self.google_sa_json

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
