"""Storage modules for PhishGuard."""

from .documents import DocumentStore, JsonDocumentStore, MemoryDocumentStore, SqliteDocumentStore

__all__ = ["DocumentStore", "JsonDocumentStore", "MemoryDocumentStore", "SqliteDocumentStore"]
