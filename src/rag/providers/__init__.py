"""
Model provider clients (Ollama).
"""

from .ollama_client import ChatResponse, EmbeddingResponse, OllamaClient

__all__ = [
    "ChatResponse",
    "EmbeddingResponse",
    "OllamaClient",
]
