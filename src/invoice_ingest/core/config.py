
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("invoice-ingest", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Logging
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # External extraction (OCR) service, e.g. https://ocr.example.com/api/v2
    extraction_api_base_url: str | None = Field(default=None, alias="EXTRACTION_API_BASE_URL")

    # Upload validation
    max_file_size_bytes: int = Field(5 * 1024 * 1024, alias="MAX_FILE_SIZE_BYTES")
    accepted_content_type: str = Field("application/pdf", alias="ACCEPTED_CONTENT_TYPE")

    # Batch orchestration
    batch_size: int = Field(3, alias="BATCH_SIZE")
    max_concurrent_batches: int = Field(2, alias="MAX_CONCURRENT_BATCHES")
    per_file_timeout_seconds: float = Field(300.0, alias="PER_FILE_TIMEOUT_SECONDS")
    single_file_timeout_seconds: float = Field(600.0, alias="SINGLE_FILE_TIMEOUT_SECONDS")
    inter_wave_delay_seconds: float = Field(0.0, alias="INTER_WAVE_DELAY_SECONDS")

    # Health probe budgets (batch path fails fast, single path absorbs cold starts)
    batch_health_timeout_seconds: float = Field(10.0, alias="BATCH_HEALTH_TIMEOUT_SECONDS")
    batch_health_max_attempts: int = Field(1, alias="BATCH_HEALTH_MAX_ATTEMPTS")
    single_health_timeout_seconds: float = Field(30.0, alias="SINGLE_HEALTH_TIMEOUT_SECONDS")
    single_health_max_attempts: int = Field(3, alias="SINGLE_HEALTH_MAX_ATTEMPTS")
    health_retry_delay_seconds: float = Field(5.0, alias="HEALTH_RETRY_DELAY_SECONDS")

    # Storage
    storage_backend: str = Field("memory", alias="STORAGE_BACKEND")  # "memory" or "sqlite"
    sqlite_db_path: str = Field("invoices.db", alias="SQLITE_DB_PATH")
    duplicate_lookup_fail_closed: bool = Field(False, alias="DUPLICATE_LOOKUP_FAIL_CLOSED")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    # Azure Service Bus (optional, events are disabled when unset)
    service_bus_connection_string: str | None = Field(default=None, alias="SERVICE_BUS_CONNECTION_STRING")
    service_bus_entity: str = Field("invoice-events", alias="SERVICE_BUS_ENTITY")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "populate_by_name": True}

settings = Settings()
