from pydantic import validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Compliance Job Queue"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # Queue Settings
    QUEUE_KEY_PREFIX: str = "queue"
    QUEUE_BATCH_SIZE: int = 10
    QUEUE_MAX_ATTEMPTS: int = 3
    QUEUE_BASE_BACKOFF_MS: int = 1000
    QUEUE_JOB_TTL_SECONDS: int = 7 * 24 * 60 * 60  # 7 days
    QUEUE_PROCESSING_TIMEOUT_SECONDS: int = 300
    QUEUE_POLL_INTERVAL_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"

    @validator("ENVIRONMENT")
    def validate_environment(cls, v):
        allowed_envs = ["development", "staging", "production", "testing"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"Log level must be one of: {allowed_levels}")
        return v.upper()

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
