"""
Configuration management for the Compliance Checker.

This module provides centralized configuration management for all
components of the checklist compliance pipeline.
"""

import os
from typing import Dict, Any, Optional
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

PLACEHOLDER_API_KEYS = {"", "your-openai-api-key"}


class ModelConfig(BaseModel):
    """Configuration for the completion and embedding providers."""

    # OpenAI configuration
    openai_api_key: Optional[str] = Field(None, validate_default=True, description="OpenAI API key")
    openai_model: str = Field("gpt-4o-mini", description="OpenAI model to use")
    openai_temperature: float = Field(0.1, ge=0.0, le=2.0, description="Model temperature")
    openai_max_tokens: int = Field(1000, gt=0, description="Maximum tokens for response")

    # Embedding model configuration
    embedding_model: str = Field("text-embedding-3-small", description="Embedding model to use")
    embedding_dimensions: int = Field(1536, gt=0, description="Embedding dimensions")
    embedding_batch_size: int = Field(100, gt=0, le=100, description="Texts per embedding request")
    embedding_max_input_chars: int = Field(8000, gt=0, description="Texts are truncated to this length before embedding")
    embedding_batch_delay_seconds: float = Field(0.1, ge=0.0, description="Pause between embedding batches")

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def validate_api_key(cls, v):
        """Fall back to the environment when no key is given."""
        if v is None:
            v = os.getenv("OPENAI_API_KEY")
        return v


class ChunkingConfig(BaseModel):
    """Configuration for splitting page text into retrieval units."""

    chunk_size: int = Field(2000, gt=0, description="Maximum characters per chunk")
    chunk_overlap: int = Field(300, ge=0, description="Overlap between consecutive chunks of a page")
    max_chunks: int = Field(500, gt=0, description="Global cap on chunks per document")


class RetrievalConfig(BaseModel):
    """Configuration for chunk retrieval."""

    top_k: int = Field(5, gt=0, description="Number of chunks retrieved per checklist item")


class JobConfig(BaseModel):
    """Configuration for check run execution."""

    concurrency: int = Field(3, gt=0, description="Items evaluated concurrently per batch")
    batch_delay_seconds: float = Field(0.5, ge=0.0, description="Pause between item batches")
    applicable_type: Optional[str] = Field("i+d", description="Checklist applicability type to load")

    # Provider timeouts
    extraction_timeout_seconds: float = Field(60.0, gt=0, description="Timeout for text extraction")
    embedding_timeout_seconds: float = Field(240.0, gt=0, description="Timeout for embedding a document")
    completion_timeout_seconds: float = Field(60.0, gt=0, description="Timeout for a single completion call")
    max_provider_retries: int = Field(2, ge=0, description="Retries performed by the provider client")


class ComplianceConfig(BaseModel):
    """Main configuration class for the Compliance Checker."""

    # Core configuration
    project_name: str = Field("Compliance Checker", description="Project name")
    version: str = Field("0.1.0", description="Version number")

    models: ModelConfig = Field(default_factory=ModelConfig, description="Provider configuration")
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig, description="Chunking configuration")
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig, description="Retrieval configuration")
    jobs: JobConfig = Field(default_factory=JobConfig, description="Check run configuration")

    # Logging configuration
    log_level: str = Field("INFO", description="Logging level")
    log_file: Optional[str] = Field(None, description="Log file path")

    def __init__(self, **data):
        """Initialize configuration with environment variable support."""
        for field_name in ("project_name", "log_level", "log_file"):
            if data.get(field_name) is None:
                env_var = f"COMPLIANCE_{field_name.upper()}"
                if env_var in os.environ:
                    data[field_name] = os.environ[env_var]

        super().__init__(**data)

    @property
    def has_openai_key(self) -> bool:
        """Whether a usable OpenAI key is configured."""
        key = self.models.openai_api_key
        return key is not None and key.strip() not in PLACEHOLDER_API_KEYS

    def get_model_config(self) -> Dict[str, Any]:
        """Get model configuration as a dictionary, without the API key."""
        return self.models.model_dump(exclude={"openai_api_key"})

    def validate_configuration(self) -> list:
        """Validate the configuration and return any issues."""
        issues = []

        if not self.has_openai_key:
            issues.append("OpenAI API key is not configured; retrieval falls back to keyword matching "
                          "and evaluation returns UNKNOWN")

        if self.chunking.chunk_overlap >= self.chunking.chunk_size:
            issues.append("Chunk overlap is not smaller than chunk size; chunks advance one character at a time")

        return issues


# Global configuration instance
config = ComplianceConfig()


def get_config() -> ComplianceConfig:
    """Get the global configuration instance."""
    return config


def update_config(**kwargs) -> ComplianceConfig:
    """Update the global configuration with new values."""
    global config
    config = config.model_copy(update=kwargs)
    return config


def load_config_from_file(config_path: str) -> ComplianceConfig:
    """Load configuration from a JSON or YAML file."""
    import json
    import yaml

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        if config_path.suffix.lower() == '.json':
            config_data = json.load(f)
        elif config_path.suffix.lower() in ['.yml', '.yaml']:
            config_data = yaml.safe_load(f) or {}
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    return ComplianceConfig(**config_data)
