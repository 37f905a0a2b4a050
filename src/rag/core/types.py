"""
Core configuration types for the retrieval module.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class LLMConfig:
    """
    Configuration for the model provider.

    Attributes:
        provider: Provider name (only 'ollama' is implemented)
        model: Chat model identifier (e.g., 'llama3.2')
        embed_model: Embedding model identifier (e.g., 'mxbai-embed-large')
        base_url: Base URL for the provider API
        token: Optional bearer token sent with every request
        temperature: Sampling temperature for chat calls
        timeout_seconds: Per-request timeout in seconds
    """
    provider: str = "ollama"
    model: str = "llama3.2"
    embed_model: str = "mxbai-embed-large"
    base_url: str = "http://localhost:11434"
    token: Optional[str] = None
    temperature: Optional[float] = None
    timeout_seconds: int = 120
