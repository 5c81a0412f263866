from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'reports_user'
    POSTGRES_PASSWORD: str = 'reports_pass'
    POSTGRES_DB: str = 'reports_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Override completo (ej. sqlite+aiosqlite para tests)

    # Report builder
    REPORT_DEFAULT_LIMIT: int = 100
    REPORT_MAX_LIMIT: int = 5000

    # Inventory rollups
    MOVEMENTS_DEFAULT_LIMIT: int = 50
    TURNOVER_DEFAULT_LIMIT: int = 10
    SALES_BATCH_SIZE: int = 100  # IDs de ventas por consulta de sale_items

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("SALES_BATCH_SIZE", "REPORT_DEFAULT_LIMIT", "REPORT_MAX_LIMIT")
    @classmethod
    def positive_int(cls, v):
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

settings = Settings()
