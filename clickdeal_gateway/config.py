from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class Settings(BaseSettings):
    API_KEY: str = ""

    SHOPIFY_STORE_DOMAIN: str = ""
    SHOPIFY_ADMIN_TOKEN: str = ""
    SHOPIFY_STOREFRONT_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2024-07"

    # WhatsApp Cloud API; leaving any of these empty disables notifications
    WA_TOKEN: str = ""
    WA_PHONE_ID: str = ""
    WA_RECIPIENTS: str = ""
    WA_API_VERSION: str = "v20.0"

    HTTP_TIMEOUT_SECONDS: float = 10.0
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @property
    def wa_recipients(self) -> tuple[str, ...]:
        return _split_csv(self.WA_RECIPIENTS)

    @property
    def notifications_enabled(self) -> bool:
        return bool(self.WA_TOKEN and self.WA_PHONE_ID and self.wa_recipients)

    @property
    def cors_origins(self) -> list[str]:
        return list(_split_csv(self.CORS_ORIGINS))


@lru_cache
def get_settings() -> Settings:
    return Settings()
