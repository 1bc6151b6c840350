"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Storage
    storage_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "postgresql+asyncpg://catalog:catalog_dev_password@db:5432/catalog"

    # Authentication
    admin_api_key: str = "dev-api-key-change-in-production"

    # Catalog behaviour
    product_id_strategy: Literal["counter", "scan"] = "counter"
    compensate_partial_writes: bool = True
    migrate_parents_on_update: bool = True

    # Media host
    media_backend: Literal["memory", "cloudinary"] = "memory"
    media_upload_url: str = "https://api.cloudinary.com/v1_1"
    media_cloud_name: str = ""
    media_api_key: str = ""
    media_api_secret: str = ""
    media_root_folder: str = "products"
    media_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
