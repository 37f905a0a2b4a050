"""
Unit tests for the configuration loader.

Tests for:
- Defaults when no file exists
- YAML loading and deep merge
- Environment overrides
- Validation errors
- Builders and save()
"""

import pytest
import yaml

from rag.config.config_loader import CONFIG_DIR, CONFIG_TEMPLATE, RAGConfig, default_config_path
from rag.core.exceptions import ConfigError
from rag.providers.ollama_client import OllamaClient
from rag.retrieval.retriever import matches_any
from rag.storage import InMemoryDocumentStore, SqliteDocumentStore


def write_config(path, data) -> None:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


class TestDefaults:
    """Tests for default configuration."""

    def test_missing_file_uses_defaults(self, clean_env):
        """Test that a missing config file is not an error."""
        config = RAGConfig()

        assert config.config["host"] == "localhost"
        assert config.config["port"] == 11434
        assert config.rag["embed_model"] == "mxbai-embed-large"
        assert config.rag["chunk_size"] == 500
        assert config.rag["chunk_overlap"] == 50
        assert config.top_k == 3
        assert config.allowed_files == []

    def test_default_paths(self, clean_env, monkeypatch):
        """Test default config and knowledge base locations."""
        monkeypatch.delenv("OLLAMA_RAG_CONFIG")

        assert default_config_path() == CONFIG_DIR / "config.yaml"
        assert RAGConfig(clean_env / "none.yaml").knowledge_base_path == CONFIG_DIR / "knowledge.db"

    def test_config_path_from_environment(self, clean_env):
        """Test OLLAMA_RAG_CONFIG selects the file."""
        assert default_config_path() == clean_env / "config.yaml"

    def test_server_url(self, clean_env):
        """Test server_url is built from host and port."""
        assert RAGConfig().server_url == "http://localhost:11434"


class TestYamlLoading:
    """Tests for loading YAML files."""

    def test_file_values_merge_with_defaults(self, clean_env):
        """Test partial files keep the remaining defaults."""
        write_config(clean_env / "config.yaml", {
            "host": "gpu-box",
            "rag": {"chunk_size": 800, "allowed_files": ["*.md"]},
        })

        config = RAGConfig()

        assert config.server_url == "http://gpu-box:11434"
        assert config.rag["chunk_size"] == 800
        assert config.rag["chunk_overlap"] == 50
        assert config.allowed_files == ["*.md"]
        assert config.rag["sqlserver"]["schema"] == "rag"

    def test_empty_file(self, clean_env):
        """Test an empty file yields defaults."""
        (clean_env / "config.yaml").write_text("", encoding="utf-8")
        assert RAGConfig().top_k == 3

    def test_invalid_yaml(self, clean_env):
        """Test malformed YAML raises ConfigError."""
        (clean_env / "config.yaml").write_text("rag: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigError):
            RAGConfig()

    def test_non_mapping(self, clean_env):
        """Test a top-level list is rejected."""
        (clean_env / "config.yaml").write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="mapping"):
            RAGConfig()

    def test_host_with_scheme(self, clean_env):
        """Test a host given as a URL is used as-is."""
        write_config(clean_env / "config.yaml", {"host": "https://ollama.example.com/"})
        assert RAGConfig().server_url == "https://ollama.example.com"

    def test_get_dotted_key(self, clean_env):
        """Test dotted key access."""
        config = RAGConfig()
        assert config.get("rag.sqlserver.schema") == "rag"
        assert config.get("rag.missing", "fallback") == "fallback"


class TestEnvironmentOverrides:
    """Tests for environment variable overrides."""

    def test_overrides(self, clean_env, monkeypatch):
        """Test environment variables win over the file."""
        write_config(clean_env / "config.yaml", {"host": "from-file", "rag": {"backend": "sqlite"}})
        monkeypatch.setenv("OLLAMA_HOST", "from-env")
        monkeypatch.setenv("OLLAMA_PORT", "9999")
        monkeypatch.setenv("OLLAMA_TOKEN", "tok")
        monkeypatch.setenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")
        monkeypatch.setenv("RAG_BACKEND", "memory")
        monkeypatch.setenv("RAG_KNOWLEDGE_BASE", str(clean_env / "kb.db"))

        config = RAGConfig()

        assert config.server_url == "http://from-env:9999"
        assert config.config["token"] == "tok"
        assert config.rag["embed_model"] == "nomic-embed-text"
        assert config.rag["backend"] == "memory"
        assert config.knowledge_base_path == clean_env / "kb.db"

    def test_invalid_port(self, clean_env, monkeypatch):
        """Test a non-numeric port raises ConfigError."""
        monkeypatch.setenv("OLLAMA_PORT", "eleven")

        with pytest.raises(ConfigError, match="Invalid port"):
            RAGConfig()


class TestValidation:
    """Tests for configuration validation."""

    def test_non_positive_chunk_size(self, clean_env):
        """Test chunk_size must be positive."""
        write_config(clean_env / "config.yaml", {"rag": {"chunk_size": 0}})

        with pytest.raises(ConfigError, match="chunk_size"):
            RAGConfig()

    def test_negative_overlap(self, clean_env):
        """Test chunk_overlap must be non-negative."""
        write_config(clean_env / "config.yaml", {"rag": {"chunk_overlap": -1}})

        with pytest.raises(ConfigError, match="chunk_overlap"):
            RAGConfig()

    def test_unknown_backend(self, clean_env):
        """Test unknown backends are rejected at load time."""
        write_config(clean_env / "config.yaml", {"rag": {"backend": "postgres"}})

        with pytest.raises(ConfigError, match="backend"):
            RAGConfig()

    def test_null_sqlserver_section_with_env_connection_string(self, clean_env, monkeypatch):
        """Test an empty sqlserver section falls back to defaults before env overrides."""
        (clean_env / "config.yaml").write_text("rag:\n  sqlserver: null\n", encoding="utf-8")
        monkeypatch.setenv("RAG_SQLSERVER_CONN_STR", "DSN=kb")

        config = RAGConfig()

        assert config.get("rag.sqlserver.connection_string") == "DSN=kb"
        assert config.get("rag.sqlserver.schema") == "rag"

    def test_sqlserver_section_must_be_mapping(self, clean_env):
        """Test a scalar sqlserver section is rejected."""
        write_config(clean_env / "config.yaml", {"rag": {"sqlserver": "DSN=kb"}})

        with pytest.raises(ConfigError, match="rag.sqlserver"):
            RAGConfig()

    @pytest.mark.parametrize("host", [8080, None, ""])
    def test_invalid_host(self, clean_env, host):
        """Test a non-string or empty host raises ConfigError."""
        write_config(clean_env / "config.yaml", {"host": host})

        with pytest.raises(ConfigError, match="Invalid host"):
            RAGConfig()

    def test_template_allowed_files_example_matches_sources(self):
        """Test the documented allowed_files example uses a pattern that can match."""
        assert '"*/docs/*.md"' in CONFIG_TEMPLATE
        assert matches_any("/home/me/project/docs/intro.md", ["*/docs/*.md"])

    def test_allowed_files_must_be_list(self, clean_env):
        """Test allowed_files must be a list."""
        write_config(clean_env / "config.yaml", {"rag": {"allowed_files": "*.md"}})

        with pytest.raises(ConfigError, match="allowed_files"):
            RAGConfig()


class TestBuilders:
    """Tests for builders and save()."""

    def test_chunking_policy(self, clean_env):
        """Test the chunking policy reflects configuration."""
        write_config(clean_env / "config.yaml", {"rag": {"chunk_size": 300, "chunk_overlap": 30}})
        policy = RAGConfig().chunking_policy()

        assert policy.chunk_size == 300
        assert policy.overlap == 30

    def test_build_sqlite_store(self, clean_env, monkeypatch):
        """Test the sqlite store opens the configured file."""
        monkeypatch.setenv("RAG_KNOWLEDGE_BASE", str(clean_env / "kb.db"))

        with RAGConfig().build_store() as store:
            assert isinstance(store, SqliteDocumentStore)
        assert (clean_env / "kb.db").exists()

    def test_build_memory_store(self, clean_env, monkeypatch):
        """Test the memory backend."""
        monkeypatch.setenv("RAG_BACKEND", "memory")
        assert isinstance(RAGConfig().build_store(), InMemoryDocumentStore)

    def test_build_client(self, clean_env, monkeypatch):
        """Test the client points at the configured server."""
        monkeypatch.setenv("OLLAMA_HOST", "gpu-box")
        monkeypatch.setenv("OLLAMA_TOKEN", "tok")

        client = RAGConfig().build_client()

        assert isinstance(client, OllamaClient)
        assert client.base_url == "http://gpu-box:11434"
        assert client.embed_model == "mxbai-embed-large"
        assert client.config.token == "tok"

    def test_save_and_reload(self, clean_env):
        """Test save() writes a file that loads back to the same values."""
        write_config(clean_env / "config.yaml", {
            "port": 12000,
            "rag": {"top_k": 7, "allowed_files": ["*.go", "docs/*.md"]},
        })
        original = RAGConfig()
        target = clean_env / "saved" / "config.yaml"

        original.save(target)
        reloaded = RAGConfig(target)

        assert "# Ollama Server Configuration" in target.read_text(encoding="utf-8")
        assert reloaded.config["port"] == 12000
        assert reloaded.top_k == 7
        assert reloaded.allowed_files == ["*.go", "docs/*.md"]
        assert reloaded.rag["embed_model"] == original.rag["embed_model"]
