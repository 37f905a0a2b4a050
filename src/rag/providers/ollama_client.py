"""
Ollama provider client.

Thin HTTP client for Ollama's REST API. The retriever only needs the
embedding endpoint; chat and health checks back the command-line tools.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.request import Request, urlopen
from urllib.error import URLError, HTTPError

from ..core.exceptions import EmbeddingError, ProviderError
from ..core.types import LLMConfig


logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResponse:
    """
    Response from Ollama embeddings API.

    Attributes:
        success: Whether the request succeeded
        embeddings: List of embedding vectors, one per input text, same order
        model: Model that generated the embeddings
        raw_response: Full response JSON
        total_duration: Total time in nanoseconds
        load_duration: Model load time in nanoseconds
        error_message: Error message if failed
    """
    success: bool
    embeddings: List[List[float]] = field(default_factory=list)
    model: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    total_duration: Optional[int] = None
    load_duration: Optional[int] = None
    error_message: Optional[str] = None


@dataclass
class ChatResponse:
    """
    Response from Ollama chat API.

    Attributes:
        success: Whether the request succeeded
        content: The assistant message text
        model: Model that generated the response
        raw_response: Full response JSON
        prompt_tokens: Number of prompt tokens (if available)
        completion_tokens: Number of completion tokens (if available)
    """
    success: bool
    content: Optional[str] = None
    model: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


class OllamaClient:
    """
    HTTP client for the Ollama provider.

    Requests are non-streaming and are never retried here; every failure
    surfaces to the caller.

    Example:
        >>> client = OllamaClient(LLMConfig(embed_model="nomic-embed-text"))
        >>> response = client.embed(["Hello world", "Test text"])
        >>> len(response.embeddings)
        2
    """

    def __init__(self, config: Optional[LLMConfig] = None):
        """
        Initialize the Ollama client.

        Args:
            config: Provider settings (defaults to a local Ollama)
        """
        self.config = config or LLMConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.model = self.config.model
        self.embed_model = self.config.embed_model
        self.timeout = self.config.timeout_seconds

        logger.debug(
            f"Initialized OllamaClient: base_url={self.base_url}, "
            f"model={self.model}, embed_model={self.embed_model}"
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON payload and decode the JSON response."""
        url = f"{self.base_url}{path}"
        request = Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers=self._headers(),
            method="POST",
        )

        logger.debug(f"Making request to {url}")

        with urlopen(request, timeout=self.timeout) as response:
            return json.loads(response.read().decode("utf-8"))

    def embed(
        self,
        texts: List[str],
        model: Optional[str] = None,
    ) -> EmbeddingResponse:
        """
        Generate embeddings for a batch of texts using /api/embed.

        Args:
            texts: Texts to embed
            model: Embedding model (defaults to the configured embed_model)

        Returns:
            EmbeddingResponse with one vector per input text

        Raises:
            EmbeddingError: If the request fails or the vector count is wrong
        """
        embed_model = model or self.embed_model

        if not texts:
            return EmbeddingResponse(success=True, embeddings=[], model=embed_model)

        payload = {
            "model": embed_model,
            "input": list(texts),
        }

        try:
            result = self._post("/api/embed", payload)
        except HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            logger.error(f"HTTP error from Ollama embed: {e.code} - {error_body}")
            raise EmbeddingError(
                f"Ollama embed API error: {e.code} - {error_body}",
                provider="ollama",
                status_code=e.code,
            ) from e
        except URLError as e:
            logger.error(f"Failed to connect to Ollama for embedding: {e}")
            raise EmbeddingError(
                f"Failed to connect to Ollama at {self.base_url}: {e}",
                provider="ollama",
            ) from e
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON response from Ollama embed: {e}")
            raise EmbeddingError(
                f"Invalid JSON response from Ollama embed: {e}",
                provider="ollama",
            ) from e
        except (OSError, ValueError) as e:
            logger.error(f"Unexpected error calling Ollama embed: {e}")
            raise EmbeddingError(
                f"Unexpected error calling Ollama embed: {e}",
                provider="ollama",
            ) from e

        embeddings = result.get("embeddings") or []
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} texts",
                provider="ollama",
            )

        return EmbeddingResponse(
            success=True,
            embeddings=embeddings,
            model=result.get("model", embed_model),
            raw_response=result,
            total_duration=result.get("total_duration"),
            load_duration=result.get("load_duration"),
        )

    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
    ) -> ChatResponse:
        """
        Generate a reply using the native /api/chat endpoint (non-streaming).

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Chat model (defaults to the configured model)

        Returns:
            ChatResponse with the assistant message

        Raises:
            ProviderError: If the request fails
        """
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "stream": False,
        }
        if self.config.temperature is not None:
            payload["options"] = {"temperature": self.config.temperature}

        try:
            result = self._post("/api/chat", payload)
        except HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            logger.error(f"HTTP error from Ollama: {e.code} - {error_body}")
            raise ProviderError(
                f"Ollama API error: {e.code} - {error_body}",
                provider="ollama",
                status_code=e.code,
            ) from e
        except URLError as e:
            logger.error(f"Failed to connect to Ollama: {e}")
            raise ProviderError(
                f"Failed to connect to Ollama at {self.base_url}: {e}",
                provider="ollama",
            ) from e
        except (OSError, ValueError) as e:
            logger.error(f"Unexpected error calling Ollama chat: {e}")
            raise ProviderError(
                f"Unexpected error calling Ollama chat: {e}",
                provider="ollama",
            ) from e

        message = result.get("message", {})
        return ChatResponse(
            success=True,
            content=message.get("content"),
            model=result.get("model"),
            raw_response=result,
            prompt_tokens=result.get("prompt_eval_count"),
            completion_tokens=result.get("eval_count"),
        )

    def health_check(self) -> bool:
        """
        Check if Ollama is reachable and the embedding model is available.

        Returns:
            True if Ollama is healthy, False otherwise
        """
        try:
            request = Request(f"{self.base_url}/api/tags", headers=self._headers(), method="GET")
            with urlopen(request, timeout=10) as response:
                data = json.loads(response.read().decode("utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Health check failed: {e}")
            return False

        names = [m.get("name", "") for m in data.get("models", [])]
        bases = [name.split(":")[0] for name in names]
        if self.embed_model in names or self.embed_model.split(":")[0] in bases:
            logger.debug(f"Health check passed: model {self.embed_model} available")
            return True

        logger.warning(f"Model {self.embed_model} not found. Available: {bases}")
        return False
