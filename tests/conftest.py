"""
Shared test fixtures and configuration for pytest.
"""

import hashlib
import logging
import os
import re
import sys
import uuid
from pathlib import Path
from typing import List, Optional

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rag.providers.ollama_client import EmbeddingResponse  # noqa: E402
from rag.storage import InMemoryDocumentStore, SqliteDocumentStore  # noqa: E402


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def sqlserver_connection_string() -> Optional[str]:
    """Build the SQL Server test connection string from the environment."""
    conn_str = os.environ.get("RAG_SQLSERVER_CONN_STR")
    if conn_str:
        return conn_str

    password = os.environ.get("RAG_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")
    if not password:
        return None

    host = os.environ.get("RAG_SQLSERVER_HOST", "localhost")
    port = int(os.environ.get("RAG_SQLSERVER_PORT", "1433"))
    database = os.environ.get("RAG_SQLSERVER_DATABASE",
                              os.environ.get("MSSQL_DATABASE", "master"))
    username = os.environ.get("RAG_SQLSERVER_USER", "sa")
    driver = os.environ.get("RAG_SQLSERVER_DRIVER", "ODBC Driver 18 for SQL Server")

    return (
        f"Driver={{{driver}}};"
        f"Server={host},{port};"
        f"Database={database};"
        f"UID={username};"
        f"PWD={password};"
        f"TrustServerCertificate=yes"
    )


def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    conn_str = sqlserver_connection_string()
    if not conn_str:
        return False

    try:
        import pyodbc

        conn = pyodbc.connect(conn_str, timeout=5)
        conn.close()
        return True

    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return

    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set RAG_SQLSERVER_CONN_STR or MSSQL_SA_PASSWORD)"
    )

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Fake embedding provider
# ============================================================================

EMBEDDING_DIMENSIONS = 64

WORD_PATTERN = re.compile(r"[a-z0-9]+")


def bag_of_words_embedding(text: str, dimensions: int = EMBEDDING_DIMENSIONS) -> List[float]:
    """
    Deterministic embedding: each lower-cased word adds 1.0 to a hashed bucket.

    Texts sharing words point in similar directions. Text with no words gets
    a constant vector so it still has a non-zero norm.
    """
    vector = [0.0] * dimensions
    words = WORD_PATTERN.findall(text.lower())
    for word in words:
        bucket = int(hashlib.sha256(word.encode("utf-8")).hexdigest(), 16) % dimensions
        vector[bucket] += 1.0
    if not words:
        vector = [1.0] * dimensions
    return vector


class FakeEmbedder:
    """
    Stand-in for OllamaClient.embed.

    Records every call. ``fail`` makes the next calls return an unsuccessful
    response; ``drop_last`` returns one vector fewer than requested.
    """

    def __init__(self, dimensions: int = EMBEDDING_DIMENSIONS):
        self.dimensions = dimensions
        self.calls = []
        self.fail = False
        self.drop_last = False
        self.raise_error: Optional[Exception] = None

    def embed(self, texts: List[str], model: Optional[str] = None) -> EmbeddingResponse:
        self.calls.append({"texts": list(texts), "model": model})

        if self.raise_error is not None:
            raise self.raise_error
        if self.fail:
            return EmbeddingResponse(success=False, error_message="embedding service down")

        embeddings = [bag_of_words_embedding(t, self.dimensions) for t in texts]
        if self.drop_last:
            embeddings = embeddings[:-1]
        return EmbeddingResponse(success=True, embeddings=embeddings, model=model)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    """Fixture providing a deterministic embedding provider."""
    return FakeEmbedder()


@pytest.fixture
def sqlite_store(tmp_path):
    """Fixture providing a SQLite document store in a temp directory."""
    store = SqliteDocumentStore(tmp_path / "knowledge.db")
    yield store
    store.close()


@pytest.fixture
def memory_store():
    """Fixture providing an in-memory document store."""
    store = InMemoryDocumentStore()
    yield store
    store.close()


@pytest.fixture(params=["sqlite", "memory"])
def document_store(request, tmp_path):
    """Fixture running a test once per local backend."""
    if request.param == "sqlite":
        store = SqliteDocumentStore(tmp_path / "knowledge.db")
    else:
        store = InMemoryDocumentStore()
    yield store
    store.close()


@pytest.fixture(scope="session")
def sqlserver_conn_str() -> Optional[str]:
    """Session-scoped fixture providing the SQL Server connection string."""
    return sqlserver_connection_string()


@pytest.fixture(scope="function")
def test_schema_name() -> str:
    """Fixture providing a unique test schema name."""
    return f"test_{uuid.uuid4().hex[:8]}"


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Fixture removing configuration environment variables."""
    for var in (
        "OLLAMA_RAG_CONFIG", "OLLAMA_HOST", "OLLAMA_PORT", "OLLAMA_TOKEN",
        "OLLAMA_LOG_LEVEL", "OLLAMA_EMBED_MODEL", "RAG_KNOWLEDGE_BASE",
        "RAG_BACKEND", "RAG_SQLSERVER_CONN_STR", "RAG_SQLSERVER_PASSWORD",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("OLLAMA_RAG_CONFIG", str(tmp_path / "config.yaml"))
    return tmp_path
