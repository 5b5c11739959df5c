from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    """Application settings with validation"""

    # API Configuration
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL_NAME: str = "gemini-1.5-flash"
    AI_REQUEST_DELAY_SECONDS: float = 0.5  # Fixed gap between AI calls in a batch

    # Sampling Configuration
    SAMPLE_INTERVAL_SECONDS: int = 60
    CONTINUATION_THRESHOLD_MINUTES: int = 5
    OSASCRIPT_TIMEOUT_SECONDS: float = 5.0
    MAX_ERRORS: int = 5

    # Deviation Configuration
    DEVIATION_CONTINUOUS_SECONDS: int = 120
    DEVIATION_THRESHOLD_PERCENT: float = 20.0

    # Path Configuration
    BASE_DIR: Path = Path.home() / ".focus_drift"
    DATA_DIR: Path = BASE_DIR / "data"
    LOG_DIR: Path = BASE_DIR / "logs"
    DEFAULT_DB_PATH: Path = DATA_DIR / "focus_drift.db"
    CUSTOM_RULES_PATH: Optional[Path] = None

    # Development Configuration
    DEBUG: bool = False
    ENV: str = "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def validate_paths(self) -> None:
        """Ensure all required paths exist"""
        for path in [self.DATA_DIR, self.LOG_DIR]:
            path.mkdir(parents=True, exist_ok=True)

settings = Settings()
