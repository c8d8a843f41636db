"""Configuration management for splitledger."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import SplitType


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SPLITLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Acting identity when a command does not pass --as
    user_email: str = "dev@example.com"
    user_name: str = "You"

    # Expense defaults
    default_split_type: SplitType = SplitType.EQUAL

    # Fund transaction listing
    transactions_page_size: int = 20

    # Database path
    database_path: Path = Path.home() / ".splitledger" / "splitledger.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and SPLITLEDGER_* "
            f"environment variables.\n"
            f"Error: {e}"
        ) from e
