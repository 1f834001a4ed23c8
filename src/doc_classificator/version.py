"""
Version constants for the document classification engine.

This module defines all version constants used throughout the engine to ensure
reproducible request text and complete audit trail.
"""

from typing import Optional

from .models.engine_version import EngineVersion

# API Version
API_VERSION = "1.0.0"

# Component versions (update these when implementations change)
ENGINE_VERSION = "orchestrator-1.0.0"
PROMPT_VERSION = "prompts-v1.0"
SCHEMA_VERSION = "response-schema-v1.0"


def get_current_engine_version(
    taxonomy_version: str,
    model_version: Optional[str] = None,
) -> EngineVersion:
    """
    Get current engine version configuration.

    Args:
        taxonomy_version: Version string of the active taxonomy
        model_version: LLM identifier; defaults to the configured provider/model

    Returns:
        EngineVersion instance with current versions
    """
    if model_version is None:
        from .config import settings

        model_version = f"{settings.llm_provider}/{settings.llm_model}"

    return EngineVersion(
        engine_version=ENGINE_VERSION,
        prompt_version=PROMPT_VERSION,
        schema_version=SCHEMA_VERSION,
        taxonomy_version=taxonomy_version,
        model_version=model_version,
    )
