"""Application settings loaded from .env via pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration — values come from environment / .env file."""

    # Plant catalog (Perenual)
    perenual_api_key: str = ""
    perenual_base_url: str = "https://perenual.com/api"

    # Audio catalog (Jamendo)
    jamendo_client_id: str = ""
    jamendo_base_url: str = "https://api.jamendo.com/v3.0"
    ambient_tag: str = "nature"
    ambient_track_limit: int = 20
    audio_format: str = "mp31"

    # Identity provider (Firebase Auth) + Google as federated provider
    firebase_api_key: str = ""
    firebase_project_id: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""

    # App
    base_url: str = "http://localhost:8000"
    secret_key: str = "change-me"
    log_level: str = "INFO"
    notification_ttl_seconds: float = 3.0
    search_result_limit: int = 12
    player_idle_seconds: float = 1800.0
    max_players: int = 500

    # Storage
    db_path: str = "./data/bloomly.db"
    document_store: Literal["sqlite", "firestore"] = "sqlite"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def db_abs_path(self) -> Path:
        """Return the database path as an absolute Path, creating parents if needed."""
        p = Path(self.db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p.resolve()


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()
