# common/settings.py
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent  # sobe até a pasta do main.py


class Settings(BaseSettings):
    SHOP_URL: str = ""  # ex.: minha-loja.myshopify.com
    SHOPIFY_TOKEN: str = ""  # Admin API access token
    SHOPIFY_API_VERSION: str = ""  # vazio = versão trimestral corrente
    APP_ENV: str = "dev"
    CORS_ORIGINS: str = "*"

    HTTP_CONNECT_TIMEOUT: int = 5
    HTTP_READ_TIMEOUT: int = 30

    # tamanhos de página das consultas GraphQL
    ORDERS_LIST_LIMIT: int = 50
    FULFILLMENT_ORDERS_PAGE: int = 50
    FO_LINE_ITEMS_PAGE: int = 100

    model_config = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),  # busca o .env na raiz do projeto
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Em runtime, pydantic-settings vai sobrescrever com valores do .env/ambiente
settings: Settings = Settings()
