from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="Europe/Moscow", alias="TIMEZONE")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="lessonbook", alias="POSTGRES_DB")
    postgres_user: str = Field(default="lessonbook", alias="POSTGRES_USER")
    postgres_password: str = Field(default="lessonbook", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    scheduler_api_token: str = Field(default="", alias="SCHEDULER_API_TOKEN")

    slot_duration_min: int = Field(default=60, alias="SLOT_DURATION_MIN")
    transaction_retry_attempts: int = Field(default=3, alias="TRANSACTION_RETRY_ATTEMPTS")
    credit_default_validity_days: int = Field(default=365, alias="CREDIT_DEFAULT_VALIDITY_DAYS")
    credit_expiry_hour: int = Field(default=2, alias="CREDIT_EXPIRY_HOUR")

    notify_webhook_url: str = Field(default="", alias="NOTIFY_WEBHOOK_URL")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
