"""
Integration tests for the SQL Server document store.

These tests require a running SQL Server instance. They are skipped
automatically when RAG_SQLSERVER_CONN_STR / MSSQL_SA_PASSWORD is not set or
the server is unreachable.

Each test runs in its own schema, dropped afterwards.
"""

from datetime import datetime, timezone

import pytest

from rag.contracts.documents import Document
from rag.core.exceptions import DocumentNotFoundError, StorageError


pytestmark = pytest.mark.integration


def make_doc(doc_id: str, source: str = "/kb/a.txt", embedding=None) -> Document:
    return Document(
        id=doc_id,
        content=f"content of {doc_id}",
        source=source,
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
        metadata={"chunk_index": "0"},
        created_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )


@pytest.fixture
def sqlserver_store(sqlserver_conn_str, test_schema_name):
    """SQL Server store in a throwaway schema."""
    from rag.storage.sqlserver_store import SqlServerDocumentStore

    store = SqlServerDocumentStore(
        connection_string=sqlserver_conn_str,
        schema=test_schema_name,
    )
    yield store

    conn = store.conn
    if conn is None:
        return
    cursor = conn.cursor()
    cursor.execute(f"DROP TABLE IF EXISTS {store.table}")
    cursor.execute(f"DROP SCHEMA IF EXISTS [{test_schema_name}]")
    conn.commit()
    store.close()


class TestSqlServerDocumentStore:
    """Tests against a live SQL Server."""

    def test_round_trip(self, sqlserver_store):
        """Test a document reads back unchanged."""
        doc = make_doc("doc1", embedding=[0.25, -1.5, 3.0])
        sqlserver_store.add_document(doc)

        loaded = sqlserver_store.get_document("doc1")

        assert loaded.content == doc.content
        assert loaded.embedding == [0.25, -1.5, 3.0]
        assert loaded.metadata == {"chunk_index": "0"}
        assert loaded.created_at == doc.created_at

    def test_upsert(self, sqlserver_store):
        """Test writing an existing id replaces it."""
        sqlserver_store.add_document(make_doc("doc1"))
        updated = make_doc("doc1")
        updated.content = "new"
        sqlserver_store.add_document(updated)

        assert sqlserver_store.get_document("doc1").content == "new"
        assert sqlserver_store.count() == 1

    def test_failed_batch_writes_nothing(self, sqlserver_store):
        """Test a bad document rolls back the batch."""
        with pytest.raises(StorageError):
            sqlserver_store.add_documents([
                make_doc("doc1"),
                make_doc("doc2", embedding=["bad"]),
            ])

        assert sqlserver_store.count() == 0

    def test_search_order(self, sqlserver_store):
        """Test search ranks by similarity, then id."""
        sqlserver_store.add_documents([
            make_doc("b", embedding=[1.0, 0.0, 0.0]),
            make_doc("a", embedding=[2.0, 0.0, 0.0]),
            make_doc("y", embedding=[0.0, 1.0, 0.0]),
        ])

        results = sqlserver_store.search([1.0, 0.0, 0.0], 3)

        assert [r.document.id for r in results] == ["a", "b", "y"]

    def test_delete_by_source(self, sqlserver_store):
        """Test deleting by source removes only that source."""
        sqlserver_store.add_documents([
            make_doc("a0", source="/kb/a.txt"),
            make_doc("a1", source="/kb/a.txt"),
            make_doc("b0", source="/kb/b.txt"),
        ])

        assert sqlserver_store.delete_by_source("/kb/a.txt") == 2
        assert sqlserver_store.list_sources() == [("/kb/b.txt", 1)]

    def test_not_found(self, sqlserver_store):
        """Test missing ids raise DocumentNotFoundError."""
        with pytest.raises(DocumentNotFoundError):
            sqlserver_store.get_document("missing")
        with pytest.raises(DocumentNotFoundError):
            sqlserver_store.delete_document("missing")
