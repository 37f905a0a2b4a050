"""
Configuration loader for the knowledge base tools.

Settings come from a YAML file (optional), then environment variables.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..contracts.documents import ChunkingPolicy
from ..core.exceptions import ConfigError
from ..core.types import LLMConfig


logger = logging.getLogger(__name__)


CONFIG_DIR = Path.home() / ".ollama-rag"

BACKENDS = ("sqlite", "sqlserver", "memory")

DEFAULT_CONFIG: Dict[str, Any] = {
    "host": "localhost",
    "port": 11434,
    "token": "",
    "log_level": "info",
    "rag": {
        "knowledge_base": "",
        "backend": "sqlite",
        "embed_model": "mxbai-embed-large",
        "chat_model": "llama3.2",
        "chunk_size": 500,
        "chunk_overlap": 50,
        "top_k": 3,
        "allowed_files": [],
        "sqlserver": {
            "connection_string": "",
            "schema": "rag",
        },
    },
}

CONFIG_TEMPLATE = """\
# Ollama Server Configuration
# The hostname or IP address of the Ollama server
host: {host}

# The port number of the Ollama server (default: 11434)
port: {port}

# Authentication token for the Ollama server (leave empty if not required)
token: {token}

# Logging level: debug, info, warn, error (default: info)
log_level: {log_level}

# RAG (Retrieval Augmented Generation) Configuration
rag:
  # Path to the SQLite knowledge base
  # Leave empty to use default: ~/.ollama-rag/knowledge.db
  knowledge_base: {knowledge_base}

  # Storage backend: sqlite, sqlserver or memory
  backend: {backend}

  # Embedding model used to vectorize documents and queries
  # Recommended models: mxbai-embed-large, nomic-embed-text
  embed_model: {embed_model}

  # Chat model used by `ollama-rag ask`
  chat_model: {chat_model}

  # Maximum size of each text chunk in characters (default: 500)
  chunk_size: {chunk_size}

  # Number of overlapping characters between chunks (default: 50)
  chunk_overlap: {chunk_overlap}

  # Number of chunks added to each question (default: 3)
  top_k: {top_k}

  # File patterns that restrict which documents queries may return (optional).
  # Each pattern is matched against the file name and the absolute file path.
  # Example: ["*.go", "*/docs/*.md"]
  allowed_files: {allowed_files}

  sqlserver:
    connection_string: {connection_string}
    schema: {schema}
"""


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_config_path() -> Path:
    """Config path from OLLAMA_RAG_CONFIG, else ~/.ollama-rag/config.yaml."""
    env_path = os.environ.get("OLLAMA_RAG_CONFIG")
    if env_path:
        return Path(env_path)
    return CONFIG_DIR / "config.yaml"


class RAGConfig:
    """
    Configuration for the knowledge base tools.

    Loads an optional YAML config file, fills gaps with defaults and applies
    environment variable overrides.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (default: OLLAMA_RAG_CONFIG
                or ~/.ollama-rag/config.yaml). A missing file is not an error.
        """
        self.config_path = Path(config_path) if config_path else default_config_path()
        self.config = _merge(DEFAULT_CONFIG, self._load_config())
        self._apply_env_overrides()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            logger.debug(f"No config file at {self.config_path}, using defaults")
            return {}

        logger.info(f"Loading config from: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config file {self.config_path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {self.config_path} must contain a mapping")

        if config.get("rag") is None:
            config.pop("rag", None)
        elif not isinstance(config["rag"], dict):
            raise ConfigError(f"Config file {self.config_path}: 'rag' must be a mapping")
        elif "sqlserver" in config["rag"]:
            if config["rag"]["sqlserver"] is None:
                del config["rag"]["sqlserver"]
            elif not isinstance(config["rag"]["sqlserver"], dict):
                raise ConfigError(f"Config file {self.config_path}: 'rag.sqlserver' must be a mapping")
        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to loaded config."""
        rag = self.config["rag"]

        overrides = {
            "OLLAMA_HOST": (self.config, "host"),
            "OLLAMA_PORT": (self.config, "port"),
            "OLLAMA_TOKEN": (self.config, "token"),
            "OLLAMA_LOG_LEVEL": (self.config, "log_level"),
            "OLLAMA_EMBED_MODEL": (rag, "embed_model"),
            "RAG_KNOWLEDGE_BASE": (rag, "knowledge_base"),
            "RAG_BACKEND": (rag, "backend"),
            "RAG_SQLSERVER_CONN_STR": (rag["sqlserver"], "connection_string"),
        }
        for env_var, (section, key) in overrides.items():
            value = os.environ.get(env_var)
            if value:
                section[key] = value

    def _validate(self) -> None:
        if not isinstance(self.config["host"], str) or not self.config["host"]:
            raise ConfigError(f"Invalid host: {self.config['host']!r}")

        try:
            self.config["port"] = int(self.config["port"])
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid port: {self.config['port']!r}")

        rag = self.config["rag"]
        for key in ("chunk_size", "chunk_overlap", "top_k"):
            try:
                rag[key] = int(rag[key])
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid rag.{key}: {rag[key]!r}")

        if rag["chunk_size"] <= 0:
            raise ConfigError("rag.chunk_size must be positive")
        if rag["chunk_overlap"] < 0:
            raise ConfigError("rag.chunk_overlap must be non-negative")

        rag["backend"] = str(rag["backend"]).lower()
        if rag["backend"] not in BACKENDS:
            raise ConfigError(
                f"Unknown rag.backend: {rag['backend']!r} (expected one of {', '.join(BACKENDS)})"
            )

        if rag["allowed_files"] is None:
            rag["allowed_files"] = []
        if not isinstance(rag["allowed_files"], list):
            raise ConfigError("rag.allowed_files must be a list of patterns")

    # =========================================================================
    # Accessors
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key (e.g. 'rag.top_k')."""
        value = self.config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    @property
    def rag(self) -> Dict[str, Any]:
        return self.config["rag"]

    @property
    def server_url(self) -> str:
        host = self.config["host"]
        if host.startswith("http://") or host.startswith("https://"):
            return host.rstrip("/")
        return f"http://{host}:{self.config['port']}"

    @property
    def knowledge_base_path(self) -> Path:
        if self.rag["knowledge_base"]:
            return Path(self.rag["knowledge_base"]).expanduser()
        return CONFIG_DIR / "knowledge.db"

    @property
    def top_k(self) -> int:
        return self.rag["top_k"]

    @property
    def allowed_files(self) -> List[str]:
        return list(self.rag["allowed_files"])

    def chunking_policy(self) -> ChunkingPolicy:
        return ChunkingPolicy.from_dict({
            "chunk_size": self.rag["chunk_size"],
            "overlap": self.rag["chunk_overlap"],
        })

    def llm_config(self) -> LLMConfig:
        return LLMConfig(
            model=self.rag["chat_model"],
            embed_model=self.rag["embed_model"],
            base_url=self.server_url,
            token=self.config["token"] or None,
        )

    # =========================================================================
    # Builders
    # =========================================================================

    def build_store(self):
        """Create the configured document store."""
        from ..storage import create_document_store

        sqlserver = self.rag.get("sqlserver") or {}
        return create_document_store(
            backend=self.rag["backend"],
            db_path=self.knowledge_base_path,
            connection_string=sqlserver.get("connection_string") or None,
            schema=sqlserver.get("schema") or "rag",
        )

    def build_client(self):
        """Create the Ollama client for the configured server."""
        from ..providers.ollama_client import OllamaClient

        return OllamaClient(self.llm_config())

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Write the current configuration as a commented YAML file.

        Returns:
            The path written
        """
        path = Path(path) if path else self.config_path
        rag = self.rag
        sqlserver = rag.get("sqlserver") or {}

        content = CONFIG_TEMPLATE.format(
            host=self.config["host"],
            port=self.config["port"],
            token=json.dumps(self.config["token"] or ""),
            log_level=self.config["log_level"],
            knowledge_base=json.dumps(str(rag["knowledge_base"] or "")),
            backend=rag["backend"],
            embed_model=rag["embed_model"],
            chat_model=rag["chat_model"],
            chunk_size=rag["chunk_size"],
            chunk_overlap=rag["chunk_overlap"],
            top_k=rag["top_k"],
            allowed_files=yaml.safe_dump(rag["allowed_files"], default_flow_style=True).strip(),
            connection_string=json.dumps(sqlserver.get("connection_string") or ""),
            schema=sqlserver.get("schema") or "rag",
        )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            os.chmod(path, 0o600)
        except OSError as e:
            raise ConfigError(f"Failed to write config file {path}: {e}") from e

        logger.info(f"Wrote config to {path}")
        return path
