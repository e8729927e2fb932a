from pydantic_settings import BaseSettings

from license_issuer.config import DEFAULT_PRIVATE_KEY_PATH, DEFAULT_PUBLIC_KEY_PATH


class Settings(BaseSettings):
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    ADMIN_SECRET: str | None = None
    LICENSE_PRIVATE_KEY_PATH: str = str(DEFAULT_PRIVATE_KEY_PATH)
    LICENSE_PRIVATE_KEY: str | None = None
    LICENSE_PUBLIC_KEY_PATH: str = str(DEFAULT_PUBLIC_KEY_PATH)
    LICENSE_KEY_BITS: int = 2048
    LICENSE_UTC_OFFSET_HOURS: int = 8
    LICENSE_MAX_MONTHS: int | None = 1
    LICENSE_GRACE_DAYS: int = 1
    LICENSE_MIN_MACHINE_ID_LENGTH: int = 10

    class Config:
        env_file = ".env"


settings = Settings()
