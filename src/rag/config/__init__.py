"""
Configuration for the knowledge base tools.
"""

from .config_loader import DEFAULT_CONFIG, RAGConfig, default_config_path

__all__ = [
    "DEFAULT_CONFIG",
    "RAGConfig",
    "default_config_path",
]
