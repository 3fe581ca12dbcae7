"""
Configuration management for the Acto chat server.

Handles environment-based configuration for development and production.
"""
import os
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Debug - handle non-boolean values gracefully
    debug: bool = False

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        """Parse debug from environment, handling non-boolean values."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes")
        debug_env = os.getenv("DEBUG", "false").lower()
        return debug_env in ("true", "1", "yes")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "3001"))

    # Database. Default is a process-local in-memory SQLite; state is gone on exit.
    database_url: str = os.getenv("DATABASE_URL", "sqlite://")
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Security
    secret_key: str = os.getenv("SECRET_KEY", "change-me-in-production-use-strong-random-key")
    token_algorithm: str = os.getenv("TOKEN_ALGORITHM", "HS256")
    token_expire_hours: int = int(os.getenv("TOKEN_EXPIRE_HOURS", "168"))  # 7 days
    password_hash_rounds: int = int(os.getenv("PASSWORD_HASH_ROUNDS", "10"))

    # CORS
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    # Demo identities (alice, bob, charlie) created at startup
    seed_demo_users: bool = os.getenv("SEED_DEMO_USERS", "true").lower() in ("1", "true", "yes")

    # Message history paging
    default_page_limit: int = int(os.getenv("DEFAULT_PAGE_LIMIT", "50"))
    max_page_limit: int = int(os.getenv("MAX_PAGE_LIMIT", "200"))

    # User search
    search_result_limit: int = int(os.getenv("SEARCH_RESULT_LIMIT", "10"))
    search_min_query_length: int = int(os.getenv("SEARCH_MIN_QUERY_LENGTH", "2"))

    # WebSocket transport
    heartbeat_interval: float = float(os.getenv("HEARTBEAT_INTERVAL", "60"))
    heartbeat_timeout: float = float(os.getenv("HEARTBEAT_TIMEOUT", "90"))
    max_frame_size: int = int(os.getenv("MAX_FRAME_SIZE", str(64 * 1024)))

    # Send chat-created to every open connection instead of only the chat's participants
    broadcast_chat_created_to_all: bool = (
        os.getenv("BROADCAST_CHAT_CREATED_TO_ALL", "false").lower() in ("1", "true", "yes")
    )

    class Config:
        # Load .env from project root (acto/core/config.py -> parent.parent.parent)
        env_file = str(Path(__file__).resolve().parent.parent.parent / ".env")
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields in .env file


# Global settings instance
settings = Settings()


def get_database_url() -> str:
    """Get the database URL, creating the parent directory for file-backed SQLite."""
    url = settings.database_url
    if url.startswith("sqlite:///") and not url.endswith(":memory:"):
        db_path = Path(url[len("sqlite:///"):])
        db_path.parent.mkdir(parents=True, exist_ok=True)
    return url
