from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Force-load .env before settings are read
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    debug: bool = Field(default=False, alias="DEBUG")

    database_url: str = Field(default="sqlite:///./stryve.db", alias="DATABASE_URL")

    # Shopify app credentials
    shopify_app_url: str = Field(default="", alias="SHOPIFY_APP_URL")
    shopify_api_key: str = Field(default="", alias="SHOPIFY_API_KEY")
    shopify_api_secret: str = Field(default="", alias="SHOPIFY_API_SECRET")

    # Payment sessions API used for settlement
    shopify_payment_token: str = Field(default="", alias="SHOPIFY_PAYMENT_TOKEN")
    shopify_payments_api_url: str = Field(
        default="https://api.shopify.com/payments",
        alias="SHOPIFY_PAYMENTS_API_URL",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
