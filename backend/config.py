from pathlib import Path

from pydantic_settings import BaseSettings


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    # Database
    DATABASE_URL: str = "sqlite:///./data/registrar.db"
    # How long a registration waits for another one's SQLite write lock
    SQLITE_BUSY_TIMEOUT_MS: int = 30000

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Application
    APP_NAME: str = "Device Registrar"
    APP_VERSION: str = _load_version()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Registration ───────────────────────────────────────────────────
    # Attempts made when a concurrent registration wins a unique MAC
    # before this one could commit its device.
    REGISTRATION_MAX_ATTEMPTS: int = 3

    # Tag the built-in characteristic plugin is registered under
    DEFAULT_PLUGIN_TAG: str = "generic"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
