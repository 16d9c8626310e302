from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "bookstore"
    POSTGRES_USER: str = "bookstore"
    POSTGRES_PASSWORD: str = "bookstore"
    # Full SQLAlchemy URL; takes precedence over the POSTGRES_* parts
    DATABASE_URL: Optional[str] = None

    # "sql" talks to the database directly, "postgrest" goes through the hosted REST API
    BACKEND: str = "sql"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"

    TAX_RATE: float = 0.0825
    RELATED_PRICE_RANGE_CENTS: int = 500
    RELATED_LIMIT: int = 4
    CATALOG_CACHE_TTL: int = 60
    REDIS_URL: Optional[str] = None

    RUN_MIGRATIONS: bool = False
    LOG_LEVEL: str = "INFO"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

@lru_cache
def get_settings() -> Settings:
    return Settings()
