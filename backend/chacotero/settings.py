"""
Chacotero Calls - Application Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

PACKAGE_DIR = Path(__file__).parent
BACKEND_DIR = PACKAGE_DIR.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Chacotero Calls"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"

    # OpenAI (chat completions + remote embeddings)
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4o"  # Call separation
    llm_metadata_model: str = "gpt-4o"  # Title, scene and summary generation
    separation_temperature: float = 0.1
    metadata_temperature: float = 0.7

    # Embeddings
    embedding_provider: str = "openai"  # "local" or "openai" ("remote" is an alias)
    openai_embedding_model: str = "text-embedding-3-small"
    openai_embedding_dimensions: int = 1024
    embedding_local_model: str = "paraphrase-multilingual-MiniLM-L12-v2"
    embedding_local_dimensions: int = 384

    # Pinecone
    pinecone_api_key: Optional[str] = None
    pinecone_index_name: str = "chacotero-calls"
    duplicate_threshold: float = 0.98
    related_threshold: float = 0.90
    similarity_top_k: int = 10

    # Storage
    storage_path: Path = BACKEND_DIR / "storage"
    calls_path: Optional[Path] = None  # Defaults to <storage_path>/calls
    prompts_path: Path = PACKAGE_DIR / "prompts"

    @field_validator("embedding_provider")
    @classmethod
    def normalize_provider(cls, value: str) -> str:
        """Accept 'remote' as an alias for the OpenAI provider"""
        value = (value or "").strip().lower()
        if value == "remote":
            return "openai"
        if value not in ("local", "openai"):
            raise ValueError(f"embedding_provider must be 'local' or 'openai', got '{value}'")
        return value

    @field_validator("duplicate_threshold", "related_threshold")
    @classmethod
    def threshold_in_range(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"similarity thresholds must be within [0, 1], got {value}")
        return value

    @model_validator(mode="after")
    def check_thresholds_and_paths(self) -> "Settings":
        if self.related_threshold > self.duplicate_threshold:
            raise ValueError(
                f"related_threshold ({self.related_threshold}) cannot exceed "
                f"duplicate_threshold ({self.duplicate_threshold})"
            )
        if self.calls_path is None:
            self.calls_path = self.storage_path / "calls"
        return self

    @property
    def embedding_dimensions(self) -> int:
        """Dimensionality of the vectors produced by the active provider"""
        if self.embedding_provider == "local":
            return self.embedding_local_dimensions
        return self.openai_embedding_dimensions

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Allow extra environment variables


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
