"""
Classification client abstraction layer.

The orchestrator only depends on the ClassificationClient contract:
an asynchronous `classify(request) -> raw response text` that may raise
TransportFailure. Concrete adapters:
- OpenAI API and OpenAI-compatible endpoints (DeepSeek, OpenRouter)
- Ollama (self-hosted models)

Adapters perform exactly one call per classify(); there are no automatic
retries. Timeouts are enforced by the SDK clients and surface as
TransportFailure.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import httpx
import ollama
import structlog
from openai import AsyncOpenAI, OpenAIError

from doc_classificator.classification.schemas import ClassificationRequest
from doc_classificator.config import settings
from doc_classificator.errors import TransportFailure


logger = structlog.get_logger(__name__)


PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "openrouter": "https://openrouter.ai/api/v1",
    "ollama": "http://localhost:11434",
}


# ============================================================================
# ABSTRACT BASE CLASS
# ============================================================================

class ClassificationClient(ABC):
    """
    Abstract base class for classification clients.

    All concrete implementations must provide the classify() coroutine
    that sends a request and returns the model's raw reply text.
    """

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        timeout_seconds: float = 60.0,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

        self.logger = logger.bind(
            llm_client=self.__class__.__name__,
            model=model
        )

    @property
    def provider(self) -> str:
        return "custom"

    @property
    def model_identifier(self) -> str:
        """provider/model string recorded in audit metadata."""
        return f"{self.provider}/{self.model}"

    @abstractmethod
    async def classify(self, request: ClassificationRequest) -> str:
        """
        Send a classification request.

        Args:
            request: Request built by the prompt template engine

        Returns:
            Raw response text from the model

        Raises:
            TransportFailure: On network/API errors or timeouts
        """


# ============================================================================
# OPENAI-COMPATIBLE CLIENT
# ============================================================================

class OpenAICompatibleClient(ClassificationClient):
    """
    OpenAI-compatible client for multiple providers.

    Works with:
    - OpenAI API (api.openai.com)
    - DeepSeek API (api.deepseek.com) - OpenAI-compatible
    - OpenRouter (openrouter.ai/api/v1)
    - Any other OpenAI-compatible endpoint
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str = PROVIDER_BASE_URLS["openai"],
        provider_name: str = "openai",
        **kwargs
    ):
        super().__init__(model=model, **kwargs)
        self.base_url = base_url
        self.provider_name = provider_name

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    @property
    def provider(self) -> str:
        return self.provider_name

    async def classify(self, request: ClassificationRequest) -> str:
        start_time = time.time()

        messages = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_prompt}
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except OpenAIError as e:
            self.logger.error(
                "openai_api_error",
                error=str(e),
                error_type=type(e).__name__,
                provider=self.provider_name,
                document_id=request.document_id
            )
            raise TransportFailure(f"{self.provider_name} API error: {e}") from e

        if not response.choices:
            raise TransportFailure(f"{self.provider_name} API returned no choices")

        content = response.choices[0].message.content or ""
        usage = response.usage

        self.logger.debug(
            "llm_call_completed",
            document_id=request.document_id,
            latency_ms=int((time.time() - start_time) * 1000),
            tokens_total=usage.total_tokens if usage else None,
            finish_reason=response.choices[0].finish_reason
        )

        return content.strip()


# ============================================================================
# OLLAMA CLIENT
# ============================================================================

class OllamaClient(ClassificationClient):
    """
    Ollama client for self-hosted models.

    Requires Ollama running locally or accessible via base_url.
    """

    def __init__(
        self,
        model: str,
        base_url: str = PROVIDER_BASE_URLS["ollama"],
        **kwargs
    ):
        super().__init__(model=model, **kwargs)
        self.base_url = base_url
        self.client = ollama.AsyncClient(host=base_url, timeout=self.timeout_seconds)

    @property
    def provider(self) -> str:
        return "ollama"

    async def classify(self, request: ClassificationRequest) -> str:
        start_time = time.time()

        messages = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_prompt}
        ]

        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                format="json",
                options={
                    "temperature": self.temperature,
                    "num_predict": self.max_tokens,
                }
            )
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            self.logger.error(
                "ollama_classification_failed",
                error=str(e),
                error_type=type(e).__name__,
                document_id=request.document_id
            )
            raise TransportFailure(f"Ollama error: {e}") from e

        content = response["message"]["content"] or ""

        self.logger.debug(
            "llm_call_completed",
            document_id=request.document_id,
            latency_ms=int((time.time() - start_time) * 1000),
            tokens_output=response.get("eval_count")
        )

        return content.strip()


# ============================================================================
# CLIENT FACTORY
# ============================================================================

def create_llm_client(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    **override_kwargs
) -> ClassificationClient:
    """
    Factory function to create appropriate client based on configuration.

    Priority order for configuration:
    1. Explicit parameters passed to this function
    2. Settings from config

    Args:
        provider: Provider name ("openai", "ollama", "deepseek", "openrouter")
        model: Model name (provider-specific)
        **override_kwargs: Override any client parameters

    Returns:
        Configured ClassificationClient instance

    Raises:
        ValueError: If provider is unknown or a required API key is missing
    """
    provider = provider or settings.llm_provider
    model = model or settings.llm_model

    client_params = {
        "temperature": override_kwargs.get("temperature", settings.llm_temperature),
        "max_tokens": override_kwargs.get("max_tokens", settings.llm_max_tokens),
        "timeout_seconds": override_kwargs.get("timeout_seconds", settings.llm_timeout_seconds),
    }
    base_url = override_kwargs.get("base_url") or settings.llm_api_base_url or PROVIDER_BASE_URLS.get(provider)

    logger.info(
        "creating_llm_client",
        provider=provider,
        model=model,
        temperature=client_params["temperature"]
    )

    if provider == "ollama":
        return OllamaClient(model=model, base_url=base_url, **client_params)

    if provider in ("openai", "deepseek", "openrouter"):
        api_key = override_kwargs.get("api_key", settings.llm_api_key)
        if not api_key:
            raise ValueError(f"{provider} API key required (set LLM_API_KEY env var)")

        return OpenAICompatibleClient(
            model=model,
            api_key=api_key,
            base_url=base_url,
            provider_name=provider,
            **client_params
        )

    raise ValueError(
        f"Unknown LLM provider: {provider}. "
        f"Supported: openai, ollama, deepseek, openrouter"
    )


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def parse_model_string(model_string: str) -> Tuple[Optional[str], str]:
    """
    Parse model string in format "provider/model-name".

    Examples:
        "openai/gpt-4o-mini" → ("openai", "gpt-4o-mini")
        "ollama/llama3.1:8b" → ("ollama", "llama3.1:8b")
        "gpt-4o-mini" → (None, "gpt-4o-mini")

    Returns:
        (provider, model_name) tuple. provider is None if no prefix.
    """
    if "/" in model_string:
        provider, model = model_string.split("/", 1)
        return provider, model
    return None, model_string


def create_llm_client_from_model_string(
    model_string: str,
    **override_kwargs
) -> ClassificationClient:
    """
    Create client from model string (e.g., "ollama/llama3.1:8b").

    Args:
        model_string: Model specification (may include provider prefix)
        **override_kwargs: Override any client parameters

    Returns:
        Configured ClassificationClient instance
    """
    provider_prefix, model_name = parse_model_string(model_string)
    provider = provider_prefix if provider_prefix else settings.llm_provider

    return create_llm_client(
        provider=provider,
        model=model_name,
        **override_kwargs
    )
