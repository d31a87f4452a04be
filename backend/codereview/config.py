"""
Configuration settings for the code review backend.
Loads from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv


def _resolve_project_root() -> Path:
    """Resolve repo root for local and container deployments."""
    current = Path(__file__).resolve()
    backend_root = current.parents[1]
    if backend_root.name == "backend":
        return backend_root.parent
    return backend_root


PROJECT_ROOT = _resolve_project_root()

# Explicitly load .env from project root
env_path = PROJECT_ROOT / ".env"
load_dotenv(env_path)


DEFAULT_CODE_EXTENSIONS = [
    ".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".cpp", ".c", ".go",
    ".rs", ".rb", ".php", ".swift", ".kt", ".cs", ".md",
]

DEFAULT_IGNORE_PATTERNS = [
    "node_modules", "dist", "build", ".git", "coverage", ".next",
    "package-lock.json", "yarn.lock",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=env_path,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # App info
    app_name: str = "AI Code Review Backend"
    app_version: str = "0.1.0"
    debug: bool = False

    # GitHub
    github_token: Optional[str] = Field(default=None, validation_alias="GITHUB_TOKEN")
    github_api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")
    github_timeout_seconds: float = Field(default=30.0, validation_alias="GITHUB_TIMEOUT_SECONDS")

    # Gemini
    gemini_api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_embedding_model: str = Field(default="text-embedding-004", validation_alias="GEMINI_EMBEDDING_MODEL")
    gemini_chat_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_CHAT_MODEL")
    embedding_dimension: int = Field(default=768, validation_alias="EMBEDDING_DIMENSION")

    # Vector store (ChromaDB)
    chroma_host: Optional[str] = Field(default=None, validation_alias="CHROMA_HOST")
    chroma_port: int = Field(default=8000, validation_alias="CHROMA_PORT")
    chroma_path: Path = Field(default=PROJECT_ROOT / "data" / "chroma", validation_alias="CHROMA_PATH")
    chroma_collection: str = Field(default="repo-context", validation_alias="CHROMA_COLLECTION")

    # Relational store side channel
    store_api_url: str = Field(default="http://localhost:8080/api", validation_alias="STORE_API_URL")

    # Crawling
    code_extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_CODE_EXTENSIONS))
    ignore_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    max_blob_bytes: int = Field(default=1024 * 1024, validation_alias="MAX_BLOB_BYTES")

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Indexing performance
    index_workers: int = Field(default=8, validation_alias="INDEX_WORKERS")
    embed_concurrency: int = Field(default=4, validation_alias="EMBED_CONCURRENCY")
    upsert_batch_size: int = Field(default=100, validation_alias="UPSERT_BATCH_SIZE")
    delete_query_cap: int = 10000
    delete_batch_size: int = 1000

    # Retrieval
    top_k: int = 5

    # Review posting
    review_batch_size: int = Field(default=50, validation_alias="REVIEW_BATCH_SIZE")
    review_max_attempts: int = 3
    review_retry_base_seconds: float = 0.5
    review_retry_max_seconds: float = 5.0

    # Background jobs
    job_workers: int = Field(default=2, validation_alias="JOB_WORKERS")
    job_queue_size: int = Field(default=100, validation_alias="JOB_QUEUE_SIZE")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, validation_alias="PORT")

    @field_validator("github_token", "gemini_api_key", "chroma_host", mode="before")
    @classmethod
    def _normalize_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @property
    def use_mock_embeddings(self) -> bool:
        """Use mock embeddings if no API key is set."""
        return not self.gemini_api_key


# Global settings instance
settings = Settings()
