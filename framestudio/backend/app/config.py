from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="America/Mexico_City", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="studio", alias="POSTGRES_DB")
    postgres_user: str = Field(default="studio", alias="POSTGRES_USER")
    postgres_password: str = Field(default="studio", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")

    default_admin_email: str = Field(default="admin@studio.local", alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    cancellation_window_hours: int = Field(default=24, alias="CANCELLATION_WINDOW_HOURS")
    allow_pending_payment_credits: bool = Field(default=True, alias="ALLOW_PENDING_PAYMENT_CREDITS")
    default_package_validity_days: int = Field(default=90, alias="DEFAULT_PACKAGE_VALIDITY_DAYS")
    guest_activation_days: int = Field(default=30, alias="GUEST_ACTIVATION_DAYS")
    payment_currency: str = Field(default="USD", alias="PAYMENT_CURRENCY")

    email_api_url: str = Field(default="", alias="EMAIL_API_URL")
    email_api_key: str = Field(default="", alias="EMAIL_API_KEY")
    email_from: str = Field(default="reservas@studio.local", alias="EMAIL_FROM")

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
