"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- Taxonomy and deterministic clock
- Scripted classification client
- Orchestrator, correction workflow and session wiring
- HTTP test client
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from doc_classificator.api.app import create_app
from doc_classificator.classification.correction import CorrectionWorkflow
from doc_classificator.classification.orchestrator import ClassificationOrchestrator
from doc_classificator.config import Settings
from doc_classificator.session import create_session
from doc_classificator.taxonomy.registry import TaxonomyRegistry, get_default_taxonomy
from .fixtures.documents import SAMPLE_DOCUMENTS, FixedClock, ScriptedClient


@pytest.fixture
def taxonomy() -> TaxonomyRegistry:
    """Packaged default taxonomy."""
    return get_default_taxonomy()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def scripted_client() -> ScriptedClient:
    """Client with an empty script; tests queue replies as needed."""
    return ScriptedClient()


@pytest.fixture
def orchestrator(scripted_client, taxonomy, clock) -> ClassificationOrchestrator:
    """Orchestrator with cross-verification disabled and default template."""
    return ClassificationOrchestrator(
        client=scripted_client,
        taxonomy=taxonomy,
        template="standard",
        cross_verify_enabled=False,
        cross_verify_threshold=0.95,
        max_excerpt_length=1000,
        include_examples=True,
        clock=clock,
    )


@pytest.fixture
def correction(orchestrator) -> CorrectionWorkflow:
    return CorrectionWorkflow(orchestrator)


@pytest.fixture
def ingest(orchestrator):
    """Ingest a named sample document into the orchestrator's store."""

    def _ingest(key: str):
        name, content, mime_type = SAMPLE_DOCUMENTS[key]
        return orchestrator.ingest(name=name, content=content, mime_type=mime_type)

    return _ingest


@pytest.fixture
def session(scripted_client, taxonomy, clock):
    return create_session(
        client=scripted_client,
        taxonomy=taxonomy,
        template="standard",
        cross_verify_enabled=False,
        clock=clock,
    )


@pytest_asyncio.fixture
async def async_client(session) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for an app serving the test session.

    Yields:
        AsyncClient instance
    """
    transport = ASGITransport(app=create_app(session=session))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_settings() -> Settings:
    """
    Create mock settings for testing with safe defaults.

    Returns:
        Settings instance with test configuration
    """
    return Settings(
        llm_provider="openai",
        llm_model="gpt-4o-mini",
        llm_api_key="test-key-not-for-production",
        log_level="INFO",
        log_json=False,  # Easier to read in tests
    )
