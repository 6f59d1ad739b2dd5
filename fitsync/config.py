"""Application configuration loaded from environment variables."""

from datetime import date
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from fitsync.config_loader import ConfigMissingError


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "fitsync"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    open_browser: bool = True

    # --- Fitbit OAuth ---
    fitbit_client_id: str = ""
    fitbit_client_secret: str = ""  # never exposed through /api/authstate
    fitbit_redirect_uri: str = "http://localhost:8000/auth/fitbit"
    fitbit_scopes: str = (
        "activity heartrate location nutrition profile settings sleep social weight"
    )
    fitbit_auth_url: str = "https://www.fitbit.com/oauth2/authorize"
    fitbit_token_url: str = "https://api.fitbit.com/oauth2/token"
    fitbit_api_base: str = "https://api.fitbit.com/1/user/-"
    fitbit_locale: str = "en_US"

    # --- Google (reported in /api/authstate only) ---
    google_client_id: str = ""
    google_redirect_uri: str = "http://localhost:8000/"

    # --- Storage ---
    config_dir: Path = Path.home() / ".config" / "fitsync"
    cache_dir: Path = Path.home() / ".cache" / "fitsync"
    keyring_service_prefix: str = "fitsync_"

    # --- Sync ---
    sync_interval_minutes: int = Field(default=15, gt=0)
    sync_max_window_days: int = Field(default=365, gt=0)
    sync_epoch_start: date = date(2010, 1, 1)
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def destinations_file(self) -> Path:
        return self.config_dir / "destinations.json"

    @property
    def destinations_cache_file(self) -> Path:
        return self.cache_dir / "destinations_cache.json"

    def require_client_credentials(self) -> None:
        """Fail startup when the Fitbit OAuth client is not configured."""
        missing = [
            name
            for name, value in (
                ("FITBIT_CLIENT_ID", self.fitbit_client_id),
                ("FITBIT_CLIENT_SECRET", self.fitbit_client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigMissingError(
                f"Missing required setting(s): {', '.join(missing)}. "
                "Set them in the environment or a .env file."
            )


@lru_cache
def get_settings() -> Settings:
    return Settings()
