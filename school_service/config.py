from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./school.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str = "dev-secret-school"
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_MINUTES: int = 24 * 60
    SESSION_COOKIE_NAME: str = "session-token"
    COOKIE_SECURE: bool = False
    LOG_LEVEL: str = "INFO"
    CACHE_TTL: int = 300  # 5 minutes
    LOGIN_RATE_LIMIT: str = "10/minute"
    RATE_LIMIT_ENABLED: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
