# backend/stockledger/core/config.py

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./stockledger.db"

    # JWT
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 10080

    # comma-separated allowlist, e.g. "https://app.example.com,http://localhost:3000"
    cors_origins: str = "http://localhost:3000"

    # cache ttls (seconds) per tag
    cache_ttl_products: int = 60
    cache_ttl_categories: int = 300
    cache_ttl_suppliers: int = 300
    cache_ttl_customers: int = 300
    cache_ttl_analytics: int = 120
    cache_ttl_locations: int = 600
    cache_ttl_tags: int = 300
    cache_ttl_purchase_orders: int = 60
    cache_ttl_activity_log: int = 30

    seed_demo_data: bool = False

    @property
    def allow_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
