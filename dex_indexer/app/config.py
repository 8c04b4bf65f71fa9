"""Config file."""
from datetime import timedelta
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dex_indexer.app.domain.errors import ConfigurationError

DEFAULT_RPC_URLS: dict[str, list[str]] = {
    "ethereum": [
        "https://mainnet.infura.io/",
    ],
    "binance-smart-chain": [
        "https://bsc-dataseed.binance.org/",
        "https://bsc-dataseed1.binance.org/",
        "https://bsc-dataseed2.binance.org/",
        "https://bsc-dataseed3.binance.org/",
        "https://bsc-dataseed4.binance.org/",
        "https://bsc-dataseed1.defibit.io/",
        "https://bsc-dataseed2.defibit.io/",
        "https://bsc-dataseed4.defibit.io/",
        "https://bsc-dataseed1.ninicoin.io/",
        "https://bsc-dataseed2.ninicoin.io/",
        "https://bsc-dataseed3.ninicoin.io/",
        "https://bsc-dataseed4.ninicoin.io/",
    ],
}


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("dex-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str = Field(..., alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(..., alias="POSTGRES_PASSWORD")
    postgres_server: str = Field(..., alias="POSTGRES_SERVER")
    postgres_port: int = Field(..., alias="POSTGRES_PORT")
    postgres_db: str = Field(..., alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")

    # CHAIN
    rpc_urls: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_RPC_URLS.items()},
        alias="RPC_URLS",
    )
    rpc_timeout_seconds: float = Field(30.0, alias="RPC_TIMEOUT_SECONDS")

    # SYNC
    max_block_range: int = Field(5000, alias="MAX_BLOCK_RANGE", ge=1)
    multiworker_range_factor: int = Field(3, alias="MULTIWORKER_RANGE_FACTOR", ge=1)
    worker_count: int | None = Field(None, alias="WORKER_COUNT", ge=1)
    max_past_event_attempts: int = Field(8, alias="MAX_PAST_EVENT_ATTEMPTS", ge=1)
    max_data_attempts: int = Field(3, alias="MAX_DATA_ATTEMPTS", ge=1)
    max_requests_before_rotation: int = Field(2000, alias="MAX_REQUESTS_BEFORE_ROTATION", ge=1)
    rotation_delay_seconds: float = Field(1.0, alias="ROTATION_DELAY_SECONDS", ge=0)
    lease_timeout_seconds: int = Field(4 * 60 * 60, alias="LEASE_TIMEOUT_SECONDS", ge=1)
    retry_failed_ranges: bool = Field(False, alias="RETRY_FAILED_RANGES")
    sink_batch_size: int = Field(250, alias="SINK_BATCH_SIZE", ge=1)

    @model_validator(mode="after")
    def assemble_db_url(self) -> "Settings":
        if not self.database_url:
            user = quote_plus(self.postgres_user)
            password = quote_plus(self.postgres_password.get_secret_value())
            host = self.postgres_server
            port = self.postgres_port
            db = self.postgres_db

            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        return self

    @property
    def lease_timeout(self) -> timedelta:
        return timedelta(seconds=self.lease_timeout_seconds)

    def rpc_urls_for(self, network: str | None) -> list[str]:
        urls = self.rpc_urls.get(network or "", [])
        if not urls:
            raise ConfigurationError(f"No RPC endpoints configured for network {network!r}")
        return list(urls)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


settings: Settings = Settings()
