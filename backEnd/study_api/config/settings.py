"""
Application settings with environment variable support.

Configuration is loaded from environment variables with optional .env file.
Azure OpenAI settings override OpenAI when fully configured.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Stage store
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    max_upload_mb: int = Field(default=20, ge=1, alias="MAX_UPLOAD_MB")

    # Question corpus
    questions_csv_path: str = Field(default="data/questions.csv", alias="QUESTIONS_CSV_PATH")
    questions_csv_delimiter: str = Field(
        default=",", min_length=1, max_length=1, alias="QUESTIONS_CSV_DELIMITER"
    )

    # Extraction
    extract_backend: Literal["pdfplumber", "poppler"] = Field(
        default="pdfplumber", alias="EXTRACT_BACKEND"
    )
    extract_max_concurrency: int = Field(default=4, ge=1, alias="EXTRACT_MAX_CONCURRENCY")

    # Chunking
    default_chunk_size: int = Field(default=800, ge=1, alias="CHUNK_SIZE")
    default_overlap: int = Field(default=150, ge=0, alias="CHUNK_OVERLAP")
    representative_text_chars: int = Field(default=8000, ge=1, alias="REPRESENTATIVE_TEXT_CHARS")

    # Query generation
    query_generator: Literal["llm", "heuristic"] = Field(default="llm", alias="QUERY_GENERATOR")

    # OpenAI settings (default provider)
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")

    # Azure OpenAI settings (overrides OpenAI if all are set)
    azure_openai_endpoint: Optional[str] = Field(
        default=None, alias="AZURE_OPENAI_ENDPOINT"
    )
    azure_openai_api_key: Optional[str] = Field(
        default=None, alias="AZURE_OPENAI_API_KEY"
    )
    azure_openai_deployment_name: Optional[str] = Field(
        default=None, alias="AZURE_OPENAI_DEPLOYMENT_NAME"
    )
    azure_openai_api_version: str = Field(
        default="2024-02-15-preview", alias="AZURE_OPENAI_API_VERSION"
    )

    # LangSmith settings
    langchain_api_key: Optional[str] = Field(default=None, alias="LANGCHAIN_API_KEY")
    langchain_project: str = Field(default="study-search", alias="LANGCHAIN_PROJECT")
    langchain_tracing_v2: bool = Field(default=True, alias="LANGCHAIN_TRACING_V2")

    # LLM behavior settings
    llm_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=512, ge=1)

    # Service
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    @model_validator(mode="after")
    def _check_chunk_defaults(self) -> "Settings":
        if self.default_overlap >= self.default_chunk_size:
            raise ValueError("CHUNK_OVERLAP must be smaller than CHUNK_SIZE")
        return self

    def is_azure_configured(self) -> bool:
        """Check if Azure OpenAI is fully configured."""
        return all([
            self.azure_openai_endpoint,
            self.azure_openai_api_key,
            self.azure_openai_deployment_name,
        ])

    def is_openai_configured(self) -> bool:
        """Check if any LLM provider has credentials."""
        return bool(self.openai_api_key) or self.is_azure_configured()

    def is_langsmith_configured(self) -> bool:
        """Check if LangSmith is configured."""
        return bool(self.langchain_api_key)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def resolved_questions_csv_path(self) -> Path:
        """Corpus path resolved against the working directory."""
        return Path(self.questions_csv_path).resolve()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
