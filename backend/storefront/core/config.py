import secrets
from typing import Any, Dict, List, Optional, Union
from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)

class EnvironmentSettings(BaseSettings):
    """Basic environment settings"""
    ENVIRONMENT: str = "development"

    @validator("ENVIRONMENT")
    def validate_environment(cls, v):
        allowed = ["development", "testing", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {', '.join(allowed)}")
        return v.lower()

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

# Resolve the environment first, it picks the env files below
env = EnvironmentSettings().ENVIRONMENT

env_files = {
    "development": [".env.development", ".env"],
    "testing": [".env.testing", ".env"],
    "staging": [".env.staging", ".env"],
    "production": [".env.production", ".env"],
}

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Storefront"
    DEBUG: bool = False

    ENVIRONMENT: str = env

    # JWT
    SECRET_KEY: str = Field("", validate_default=True)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    @validator("SECRET_KEY", pre=True)
    def validate_secret_key(cls, v):
        if not v or len(v) < 32:
            if env == "production":
                raise ValueError("SECRET_KEY must be at least 32 characters in production")
            logger.warning("SECRET_KEY missing or too short, generating one")
            return secrets.token_urlsafe(32)
        return v

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Database
    DATABASE_URL: str = "sqlite:///./storefront.db"
    DB_CONNECT_RETRIES: int = 5

    # Redis (Celery broker and result backend)
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_URL: Optional[str] = Field(None, validate_default=True)

    @validator("REDIS_URL", pre=True)
    def assemble_redis_connection(cls, v: Optional[str], values: Dict[str, Any]) -> Any:
        if isinstance(v, str):
            return v

        password_part = f":{values.get('REDIS_PASSWORD')}@" if values.get('REDIS_PASSWORD') else ""
        return f"redis://{password_part}{values.get('REDIS_HOST')}:{values.get('REDIS_PORT')}/{values.get('REDIS_DB')}"

    SECURITY_BCRYPT_ROUNDS: int = 12

    # Offers and reservations
    OFFER_MAX_AMOUNT: float = 99999
    RESERVATION_HOURS: int = 72
    RESERVATION_SWEEP_SECONDS: float = 300.0
    DEFAULT_CURRENCY: str = "USD"

    # Checkout
    CHECKOUT_SUCCESS_URL: str = "http://localhost:3000/checkout/success"
    CHECKOUT_CANCEL_URL: str = "http://localhost:3000/checkout/cancel"
    CHECKOUT_REDIRECT_URL: str = "https://checkout.example.com/pay/{session_id}"

    def get_settings_by_environment(self) -> Dict[str, Any]:
        settings_map = {
            "development": {
                "DEBUG": True,
                "SECURITY_BCRYPT_ROUNDS": 4,
            },
            "testing": {
                "DEBUG": True,
                "SECURITY_BCRYPT_ROUNDS": 4,
            },
            "staging": {
                "DEBUG": False,
                "SECURITY_BCRYPT_ROUNDS": 10,
            },
            "production": {
                "DEBUG": False,
                "SECURITY_BCRYPT_ROUNDS": 12,
            },
        }

        return settings_map.get(self.ENVIRONMENT, {})

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        # Apply environment specific overrides
        env_settings = self.get_settings_by_environment()
        for key, value in env_settings.items():
            if hasattr(self, key):
                setattr(self, key, value)

    class Config:
        case_sensitive = True
        env_file = env_files.get(env, [".env"])
        extra = "ignore"

settings = Settings()

logger.info(f"Starting application in environment: {settings.ENVIRONMENT}")
logger.info(f"Debug: {'on' if settings.DEBUG else 'off'}")
