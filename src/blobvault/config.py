from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BLOBVAULT_", env_file=".env", extra="ignore")

    # Blob Storage
    blob_storage_type: str = Field(default="disk", validation_alias="BLOB_STORAGE_TYPE")
    blob_storage_path: str = Field(
        default="/var/lib/blobvault/blobs", validation_alias="BLOB_STORAGE_PATH"
    )
    blob_chunk_size: int = Field(default=65536, validation_alias="BLOB_CHUNK_SIZE")  # 64KB

    # Observability
    log_level: str = "INFO"
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")


settings = Settings()
