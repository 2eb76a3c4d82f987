# storefront/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from functools import lru_cache
from typing import Dict, List


class Settings(BaseSettings):
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    STORE_NAME: str = "Hood Shop"

    DATA_DIR: Path = Path("data")  # where the CSV table files live
    USERS_FILE: str = "users.csv"
    PRODUCTS_FILE: str = "products.csv"
    ORDERS_FILE: str = "orders.csv"
    ORDER_ITEMS_FILE: str = "order_items.csv"
    ORDER_STATUS_HISTORY_FILE: str = "order_status_history.csv"
    CARTS_FILE: str = "carts.csv"
    REVIEWS_FILE: str = "reviews.csv"
    REFRESH_TOKENS_FILE: str = "refresh_tokens.csv"

    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30

    # comma separated; falls back to FRONTEND_URL when empty
    CORS_ORIGINS: str = ""
    FRONTEND_URL: str = "http://localhost:5173"

    # memory | console | resend
    EMAIL_BACKEND: str = "console"
    EMAIL_FROM: str = "Hood Shop <onboarding@resend.dev>"
    ADMIN_EMAIL: str = "admin@hoodshop.com"
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # permissive | forward_only
    ORDER_STATUS_POLICY: str = "permissive"
    ORDER_NUMBER_ATTEMPTS: int = 5
    LOW_STOCK_THRESHOLD: int = 10

    # Example .env:
    # DATA_DIR=./data
    # EMAIL_BACKEND=resend
    # RESEND_API_KEY=re_xxx

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        return self.ENV.strip().lower() in ("dev", "development", "local")

    @property
    def table_files(self) -> Dict[str, str]:
        return {
            "users": self.USERS_FILE,
            "products": self.PRODUCTS_FILE,
            "orders": self.ORDERS_FILE,
            "order_items": self.ORDER_ITEMS_FILE,
            "order_status_history": self.ORDER_STATUS_HISTORY_FILE,
            "carts": self.CARTS_FILE,
            "reviews": self.REVIEWS_FILE,
            "refresh_tokens": self.REFRESH_TOKENS_FILE,
        }

    @property
    def cors_origins(self) -> List[str]:
        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return origins or [self.FRONTEND_URL]


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
