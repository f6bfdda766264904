from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    DATABASE_URL: str
    TEST_DATABASE_URL: Optional[str] = None

    # Authentication settings
    SECRET_KEY: str = "secret-key"
    ALGORITHM: str = "HS256"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Shared platform credential for the provider API. Users may supply their own.
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_TIMEOUT_SEC: float = 60.0

    # Model identifiers
    WHISPER_MODEL: str = "whisper-1"
    DEFAULT_AGENT_MODEL: str = "gpt-3.5-turbo"
    DEFAULT_ASSISTANT_MODEL: str = "gpt-4o"

    # Local storage for uploads and generated documents
    UPLOAD_DIR: str = "uploads/audio"
    OUTPUT_DIR: str = "uploads/outputs"
    KNOWLEDGE_UPLOAD_DIR: str = "uploads/knowledge"
    MAX_AUDIO_MB: int = 25
    AUDIO_BITRATE_KBPS: int = 128

    # Remote run polling
    RUN_POLL_INTERVAL_SEC: float = 3.0
    RUN_POLL_TIMEOUT_SEC: float = 300.0

    # Redis settings for Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    QUOTA_SWEEP_HOUR: int = 0
    QUOTA_SWEEP_MINUTE: int = 0

def get_settings():
    return Settings()

settings = get_settings()
