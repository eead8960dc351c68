import logging
from typing import List, Literal

from pydantic import AnyHttpUrl, computed_field
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DB_MODES = ("postgres", "sqlite-file", "sqlite-memory")


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "FitTrack"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # Security
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    AUTH_MODE: Literal["jwt", "dev"] = "jwt"
    DEV_USER_ID: str = "dev-user-1"
    DEV_USERNAME: str = "dev"
    DEV_USER_NAME: str = "Dev User"

    # Local time used for "today" windows and day/week buckets
    APP_TIMEZONE: str = "UTC"

    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    # Database
    DB_MODE: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "fittrack"
    SQLITE_DB_PATH: str = "./data/app.db"

    @property
    def database_mode(self) -> str:
        mode = self.DB_MODE.lower()
        if mode not in DB_MODES:
            logger.warning("Invalid DB_MODE '%s', defaulting to 'postgres'. Valid options: %s", self.DB_MODE, ", ".join(DB_MODES))
            return "postgres"
        return mode

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        mode = self.database_mode
        if mode == "sqlite-memory":
            return "sqlite+aiosqlite:///:memory:"
        if mode == "sqlite-file":
            return f"sqlite+aiosqlite:///{self.SQLITE_DB_PATH}"
        return str(MultiHostUrl.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
