# config/settings.py

from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, validator
import os
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Active Sessions"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    API_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: str = ""

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        if not self.CORS_ORIGINS:
            return ["*"] if self.DEBUG else []
        return [s.strip() for s in self.CORS_ORIGINS.split(",") if s.strip()]

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = Field(default=20, ge=5, le=100)
    DB_MAX_OVERFLOW: int = Field(default=30, ge=5, le=100)
    DB_POOL_RECYCLE: int = Field(default=3600, ge=300)
    AUTO_CREATE_TABLES: bool = False

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Security
    SECRET_KEY: str = Field(min_length=8)
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=15, le=1440)

    # Caching
    CACHE_ENABLED: bool = False
    CACHE_DEFAULT_TTL: int = Field(default=30, ge=1)

    # Scheduled checkouts
    SCHEDULER_ENABLED: bool = False
    SCHEDULED_CHECKOUT_INTERVAL_SECONDS: int = Field(default=60, ge=5)
    CANCEL_PENDING_CHECKOUTS_ON_CHECKOUT: bool = True

    # Rooms offered for claiming (empty means every room)
    DEVICELESS_ROOM_NAMES: str = ""

    @property
    def deviceless_room_names_list(self) -> List[str]:
        return [s.strip() for s in self.DEVICELESS_ROOM_NAMES.split(",") if s.strip()]

    # Monitoring
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Server
    PORT: int = Field(default=8000, ge=1, le=65535)

    @validator('SECRET_KEY')
    def validate_secrets(cls, v):
        """Ensure secrets are strong enough"""
        if len(v) < 8:
            raise ValueError('Secret keys must be at least 8 characters long')
        if len(v) < 32:
            import warnings
            warnings.warn(f"Secret key is only {len(v)} characters. Consider using at least 32 characters for production.", UserWarning)
        return v

    @validator('DATABASE_URL')
    def validate_database_url(cls, v):
        """Validate database URL format"""
        if not v.startswith(('postgresql://', 'postgresql+psycopg2://', 'sqlite:///')):
            raise ValueError('Unsupported database URL format')
        return v

    @validator('REDIS_URL')
    def validate_redis_url(cls, v):
        """Validate Redis URL format"""
        if not v.startswith(('redis://', 'rediss://')):
            raise ValueError('Invalid Redis URL format')
        return v

    @validator('CORS_ORIGINS')
    def validate_cors_origins(cls, v):
        """Validate CORS origins in production"""
        environment = os.getenv('ENVIRONMENT', 'development')
        if environment == 'production' and ('*' in v or not v):
            raise ValueError('Wildcard CORS origins not allowed in production')
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
