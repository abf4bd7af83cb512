"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    note_auth_token: str | None = Field(default=None, validation_alias="NOTE_AUTH_TOKEN")
    note_session_token: str | None = Field(
        default=None, validation_alias="NOTE_SESSION_TOKEN"
    )
    db_path: Path = Field(
        default=Path("state/note_analytics.sqlite"),
        validation_alias="NOTE_ANALYTICS_DB_PATH",
    )
    max_pages: int = Field(default=10, ge=1, le=100, validation_alias="NOTE_MAX_PAGES")
    page_delay_seconds: float = Field(
        default=1.0, ge=0.0, le=60.0, validation_alias="NOTE_PAGE_DELAY_SECONDS"
    )
    stats_base_url: str = Field(
        default="https://note.com/api/v1/stats/pv",
        validation_alias="NOTE_STATS_BASE_URL",
    )

    @property
    def has_credentials(self) -> bool:
        """Return True when both session cookies are configured."""
        return bool(self.note_auth_token and self.note_session_token)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
