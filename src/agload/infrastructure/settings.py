"""Loader settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from infrastructure.identifiers import validate_identifier


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        AGLOAD_DB_HOST: Database host (default: localhost)
        AGLOAD_DB_PORT: Database port (default: 5432)
        AGLOAD_DB_DATABASE: Database name (default: agload)
        AGLOAD_DB_USERNAME: Database user (default: agload)
        AGLOAD_DB_PASSWORD: Database password (required in production)
        AGLOAD_DB_GRAPH_NAME: AGE graph name (default: agload_graph)
        AGLOAD_DB_CONNECT_TIMEOUT: Seconds to wait for a connection (default: 10)
        AGLOAD_DB_APPLICATION_NAME: Name reported in pg_stat_activity
            (default: age-graph-loader)
    """

    model_config = SettingsConfigDict(
        env_prefix="AGLOAD_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="agload", description="Database name")
    username: str = Field(default="agload", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    graph_name: str = Field(
        default="agload_graph",
        description="Name of the AGE graph",
    )
    connect_timeout: int = Field(
        default=10,
        ge=1,
        description="Seconds to wait for a connection to be established",
    )
    application_name: str = Field(
        default="age-graph-loader",
        description="Application name reported to the server",
    )

    @field_validator("graph_name")
    @classmethod
    def validate_graph_name(cls, value: str) -> str:
        validate_identifier(value, kind="graph name")
        return value

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class LoaderSettings(BaseSettings):
    """Tunables for the batch graph loader.

    Environment variables:
        AGLOAD_LOADER_DEFAULT_GRAPH_NAME: Graph used when a call names none
        AGLOAD_LOADER_BATCH_SIZE: Records per staging batch (default: 1000)
        AGLOAD_LOADER_VALIDATE_BEFORE_LOAD: Validate records against the schema (default: true)
        AGLOAD_LOADER_STAGING_NAMESPACE: Schema that holds bridge functions (default: public)
        AGLOAD_LOADER_PARALLEL_INSERTS: Insert staging batches concurrently (default: false)
        AGLOAD_LOADER_MAX_PARALLEL_BATCHES: Concurrent batches per wave (default: 4)
        AGLOAD_LOADER_USE_BULK_INSERT: One multi-row INSERT per batch (default: false)
        AGLOAD_LOADER_USE_STREAMING_FOR_LARGE_DATASETS: Stream large inputs (default: false)
        AGLOAD_LOADER_LARGE_DATASET_THRESHOLD: Records that trigger streaming (default: 10000)
    """

    model_config = SettingsConfigDict(
        env_prefix="AGLOAD_LOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    default_graph_name: str | None = Field(
        default=None,
        description="Graph name used when neither the call nor the client names one",
    )
    batch_size: int = Field(
        default=1000,
        description="Number of records per staging batch",
        ge=1,
    )
    validate_before_load: bool = Field(
        default=True,
        description="Validate records against the schema before any write",
    )
    staging_namespace: str = Field(
        default="public",
        description="Schema in which bridge functions are created",
    )
    parallel_inserts: bool = Field(
        default=False,
        description="Insert staging batches concurrently",
    )
    max_parallel_batches: int = Field(
        default=4,
        description="Maximum number of staging batches in flight at once",
        ge=1,
        le=64,
    )
    use_bulk_insert: bool = Field(
        default=False,
        description="Insert each staging batch with a single multi-row INSERT",
    )
    use_streaming_for_large_datasets: bool = Field(
        default=False,
        description="Consume large inputs in chunks without materializing them",
    )
    large_dataset_threshold: int = Field(
        default=10000,
        description="Record count above which streaming mode is used",
        ge=1,
    )

    @field_validator("staging_namespace")
    @classmethod
    def validate_staging_namespace(cls, value: str) -> str:
        validate_identifier(value, kind="staging namespace")
        return value

    @field_validator("default_graph_name")
    @classmethod
    def validate_default_graph_name(cls, value: str | None) -> str | None:
        if value is not None:
            validate_identifier(value, kind="graph name")
        return value


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_loader_settings() -> LoaderSettings:
    """Get cached loader settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return LoaderSettings()
