"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class PriceSettings(BaseSettings):
    """Currency partitions served by the price book."""

    model_config = SettingsConfigDict(env_prefix="PRICES_")

    currencies: list[str] = ["usd"]
    default_currency: str = "usd"


class ConcurrencySettings(BaseSettings):
    """Bounds for concurrent collaborator calls in batch operations."""

    model_config = SettingsConfigDict(env_prefix="CONCURRENCY_")

    aggregation_concurrency: int = 10  # stats fetches in flight per TVL sum
    projection_concurrency: int = 10  # metadata joins in flight per listing


class CoinGeckoSettings(BaseSettings):
    """CoinGecko REST API connection settings."""

    model_config = SettingsConfigDict(env_prefix="COINGECKO_")

    host: str = "https://api.coingecko.com/api/v3"
    api_key: SecretStr = SecretStr("")
    platform: str = "ethereum"
    request_timeout: float = 10.0


class IngestionSettings(BaseSettings):
    """Price ingestion loop configuration.

    Controls which addresses are polled, how often, how far back the
    startup backfill reaches, and the retry policy for upstream calls.
    All fields configurable via INGEST_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="INGEST_")

    enabled: bool = True
    addresses: list[str] = []
    poll_interval: float = 60.0  # seconds between current-price polls
    backfill_days: int = 7
    max_retries: int = 3
    retry_base_delay: float = 1.0


class StorageSettings(BaseSettings):
    """SQLite persistence for price samples."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    enabled: bool = True
    db_path: str = "data/prices.db"


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production
    prices: PriceSettings = PriceSettings()
    concurrency: ConcurrencySettings = ConcurrencySettings()
    coingecko: CoinGeckoSettings = CoinGeckoSettings()
    ingestion: IngestionSettings = IngestionSettings()
    storage: StorageSettings = StorageSettings()
    api: ApiSettings = ApiSettings()
