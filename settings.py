"""
Application settings

Values come from environment variables, optionally loaded from a .env file.
"""
import os
from functools import lru_cache
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "ecommerce_db"
    jwt_secret: str = "devsecret"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = Field(30, ge=1)
    payment_webhook_secret: Optional[str] = None
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"
    cors_origins: List[str] = ["*"]
    port: int = 8000
    seed_admin_email: str = "admin@shop.com"
    seed_admin_password: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "database_url": os.getenv("DATABASE_URL"),
            "database_name": os.getenv("DATABASE_NAME"),
            "jwt_secret": os.getenv("JWT_SECRET"),
            "jwt_expire_days": os.getenv("JWT_EXPIRE_DAYS"),
            "payment_webhook_secret": os.getenv("PAYMENT_WEBHOOK_SECRET") or None,
            "log_level": os.getenv("LOG_LEVEL"),
            "log_format": os.getenv("LOG_FORMAT"),
            "port": os.getenv("PORT"),
            "seed_admin_email": os.getenv("SEED_ADMIN_EMAIL"),
            "seed_admin_password": os.getenv("SEED_ADMIN_PASSWORD") or None,
        }
        origins = os.getenv("CORS_ORIGINS")
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        return cls(**{k: v for k, v in values.items() if v is not None})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
