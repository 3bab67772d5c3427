"""Configuration management for Lore Catalog."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LORE_",
    )

    # Knowledge store
    store_backend: str = Field(default="neo4j", description="neo4j, or memory (tests only; the CLI rejects it)")
    neo4j_uri: str = Field(default="bolt://localhost:7687")
    neo4j_user: str = Field(default="neo4j")
    neo4j_password: str = Field(default="lorecatalog")

    # Ollama (local LLM)
    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3.1:8b")

    # OpenAI-compatible chat completions endpoint
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o")
    llm_provider: str = Field(default="ollama", description="ollama or openai")
    llm_timeout: float = Field(default=120.0)

    # Extraction
    segment_max_chars: int = Field(default=12000, description="Max characters per extraction segment")
    extraction_workers: int = Field(default=4, description="Parallel model calls per ingestion")
    extraction_max_tokens: int = Field(default=4096)
    extraction_temperature: float = Field(default=0.3)

    # Indexing and retrieval
    index_max_chars: int = Field(default=8000, description="Truncate indexed documents to this length")
    retrieval_limit: int = Field(default=6)
    duplicate_threshold: float = Field(default=0.3)

    log_level: str = Field(default="INFO")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
