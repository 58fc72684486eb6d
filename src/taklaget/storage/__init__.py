"""Document storage backends."""

from taklaget.storage.store import (
    Document,
    DocumentStore,
    InMemoryDocumentStore,
    generate_document_id,
)

__all__ = ["Document", "DocumentStore", "InMemoryDocumentStore", "generate_document_id"]
