from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./taskflow.db")
    SQL_ECHO: bool = Field(False)

    LOG_LEVEL: str = Field("INFO")

    # Upper bounds for the trailing analytics windows accepted over HTTP
    ANALYTICS_MAX_MONTHS: int = Field(24)
    ANALYTICS_MAX_WEEKS: int = Field(52)
    # Python weekday number the analytics weeks start on (6 = Sunday)
    WEEK_START_DAY: int = Field(6, ge=0, le=6)

    NOTIFICATIONS_PAGE_SIZE: int = Field(20)

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        """
        Async driver URL. A bare postgresql:// URL is switched to asyncpg.
        """
        url = self.DATABASE_URL
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url


settings = Settings()
