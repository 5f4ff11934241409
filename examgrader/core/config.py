from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./examgrader.db"

    # strict | flexible | semantic
    DEFAULT_MATCHING_MODE: str = "strict"

    # Semantic matching loads a sentence-transformers model, so it is opt-in
    SEMANTIC_ENABLED: bool = False
    SEMANTIC_MODEL_NAME: str = "all-MiniLM-L6-v2"
    SEMANTIC_FULL_THRESHOLD: float = 0.85
    SEMANTIC_PARTIAL_THRESHOLD: float = 0.6
    SEMANTIC_DEVICE: Optional[str] = None

    # Late answers are still accepted this long after an attempt's deadline
    ATTEMPT_GRACE_SECONDS: int = 30

    REPORTS_DIR: str = "reports"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
