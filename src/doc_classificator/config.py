"""
Application configuration management.

This module handles configuration from environment variables using Pydantic Settings.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application configuration from environment variables.

    All settings can be overridden via environment variables with the same name.
    """

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Intake limits
    max_upload_size_mb: int = 25

    # LLM Provider Configuration
    llm_provider: str = "openai"  # "openai" | "ollama" | "deepseek" | "openrouter"
    llm_model: str = "gpt-4o-mini"
    llm_api_key: str = ""  # Required for cloud providers
    llm_api_base_url: str = ""  # Empty = provider default
    llm_temperature: float = 0.2
    llm_max_tokens: int = 1000
    llm_timeout_seconds: float = 60.0

    # Prompt configuration
    prompt_template: str = "standard"  # standard | detailed | safety_first | propaganda_detection
    prompt_include_examples: bool = True
    prompt_max_excerpt_length: int = 1000  # First N characters of document text

    # Cross-verification policy
    cross_verify_enabled: bool = False
    cross_verify_threshold: float = 0.95  # second call when top confidence < threshold

    # Taxonomy (JSON file, empty = packaged default taxonomy)
    taxonomy_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


# Global settings instance
settings = Settings()
