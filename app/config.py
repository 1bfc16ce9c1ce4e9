"""
Configuration settings for the Report Forge backend.
Loads environment variables and provides application-wide settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/reportforge.db"
    DATABASE_ECHO: bool = False  # Set to True for SQL query logging
    SEED_DATABASE: bool = True   # create the demo schema and rows on startup

    # Ollama Configuration
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_LLM_MODEL: str = "qwen2.5:3b"
    OLLAMA_TIMEOUT: int = 120  # seconds per suggest / verify call

    # Report Generation
    REPORT_DATE_TOKEN: str = "[REPORT_DATE]"
    NO_DATA_VALUE: str = "N/A"
    QUERY_ERROR_VALUE: str = "Query Error"

    # Template Upload
    MAX_FILE_SIZE: int = 20 * 1024 * 1024  # 20 MB
    SUPPORTED_FILE_TYPES: List[str] = [".docx"]

    # Browser session
    SESSION_COOKIE_NAME: str = "reportforge_session"

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]


# Global settings instance
settings = Settings()
