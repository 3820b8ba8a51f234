import json
from typing import Annotated
from pydantic_settings import BaseSettings, NoDecode
from pydantic import AnyUrl, field_validator

class Settings(BaseSettings):
    # FastAPI
    APP_NAME: str = "contentops-transcription"
    API_PREFIX: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # Celery / Redis
    REDIS_URL: AnyUrl = "redis://localhost:6379/0"
    CELERY_BROKER_URL: AnyUrl | None = None
    CELERY_RESULT_BACKEND: AnyUrl | None = None
    TASK_RUNNER: str = "inprocess"  # "inprocess" | "celery"

    # Database settings for MySQL
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_SCHEMA: str = "app"
    DB_USERNAME: str = "user"
    DB_PASSWORD: str = "password"
    SQLALCHEMY_URL: str | None = None  # overrides the MySQL URL, e.g. sqlite:///./dev.db

    # Polling
    POLL_INTERVAL_SEC: float = 5.0
    TRANSCRIBE_MAX_ATTEMPTS: int = 120  # ~10 min
    EXTRACT_MAX_ATTEMPTS: int = 60  # ~5 min
    HTTP_TIMEOUT_SEC: float = 30.0

    # Speech-to-text
    DEFAULT_PROVIDER: str = "assemblyai"
    DEFAULT_LANGUAGE: str = "tr"
    ASSEMBLYAI_BASE_URL: str = "https://api.assemblyai.com"
    ASSEMBLYAI_API_KEY: str | None = None

    # Internal audio-processor microservice
    AUDIO_PROCESSOR_URL: str | None = None
    AUDIO_PROCESSOR_TOKEN: str | None = None

    # Audio extraction backends, tried in this order
    # comma-separated (yt_dlp,hosted_converter) or a JSON list
    AUDIO_BACKENDS: Annotated[list[str], NoDecode] = [
        "audio_processor", "extractor_service", "hosted_converter", "yt_dlp",
    ]
    EXTRACTOR_SERVICE_URL: str | None = None
    HOSTED_CONVERTER_URL: str | None = None
    HOSTED_CONVERTER_HOST: str | None = None
    HOSTED_CONVERTER_KEY: str | None = None
    YTDLP_AUDIO_DIR: str = "data/audio"

    # Azure Storage (publishes locally extracted audio)
    AZURE_STORAGE_CONNECTION_STRING: str | None = None
    AZURE_CONTAINER_NAME: str | None = None

    # Blog generation
    BLOG_LLM_URL: str | None = None  # OpenAI-compatible base URL
    BLOG_LLM_API_KEY: str | None = None
    BLOG_LLM_MODEL: str = "gpt-4o-mini"
    BLOG_DEFAULT_CATEGORY: str = "Genel"

    class Config:
        env_file = ".env"

    @field_validator("AUDIO_BACKENDS", mode="before")
    @classmethod
    def _split_backends(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @property
    def DATABASE_URL(self) -> str:
        if self.SQLALCHEMY_URL:
            return self.SQLALCHEMY_URL
        return (
            f"mysql+mysqlconnector://{self.DB_USERNAME}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_SCHEMA}"
        )

    @property
    def stale_processing_after_sec(self) -> float:
        # Longest window a healthy orchestration can spend in "processing"
        return self.POLL_INTERVAL_SEC * (self.TRANSCRIBE_MAX_ATTEMPTS + self.EXTRACT_MAX_ATTEMPTS)


settings = Settings()
# Default Celery endpoints to REDIS_URL if not set explicitly
if settings.CELERY_BROKER_URL is None:
    settings.CELERY_BROKER_URL = settings.REDIS_URL
if settings.CELERY_RESULT_BACKEND is None:
    settings.CELERY_RESULT_BACKEND = settings.REDIS_URL
