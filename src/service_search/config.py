from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AnyHttpUrl, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.errors import ConfigurationError


class Settings(BaseSettings):
    openai_api_key: SecretStr
    embedding_model: str = "text-embedding-ada-002"
    embedding_base_url: AnyHttpUrl = "https://api.openai.com/v1/embeddings"

    # Azure OpenAI deployment (embedding_model is the deployment name)
    azure_openai_endpoint: Optional[AnyHttpUrl] = None
    azure_openai_api_version: str = "2023-05-15"

    embedding_dimensions: int = Field(default=1536, gt=0)
    embedding_timeout: float = Field(default=60.0, gt=0)

    index_name: str = Field(default="test-index", min_length=1)
    index_algorithm: Literal["hnsw", "exhaustive"] = "hnsw"
    index_dir: Optional[str] = None

    corpus_path: str = "services.json"
    search_top_k: int = Field(default=3, ge=1)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value


@lru_cache
def get_settings() -> Settings:
    """
    Load settings once per process.

    Raises
    ------
    ConfigurationError
        If a required setting is missing or a value fails validation.
    """
    try:
        return Settings()
    except ValidationError as exc:
        missing = ", ".join(
            ".".join(str(p) for p in err["loc"]) for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid or missing settings: {missing}") from exc
