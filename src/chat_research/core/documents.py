"""Document persistence for finished research reports.

The pipeline hands the final report to a :class:`DocumentStore`; the host
application supplies the real implementation (database, object storage,
chat artifact table). :class:`InMemoryDocumentStore` backs the CLI and the
tests.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, runtime_checkable

from chat_research.core.errors.storage import DocumentStoreError

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentStore(Protocol):
    """Persists a text document and returns its identifier.

    Implementations raise ``DocumentStoreError`` on failure.
    """

    async def create_text_document(self, title: str, content: str, *, message_id: str) -> str: ...


@dataclass
class StoredDocument:
    """A document held by :class:`InMemoryDocumentStore`."""

    id: str
    title: str
    content: str
    message_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryDocumentStore:
    """Process-local document store keyed by generated ids."""

    def __init__(self) -> None:
        self._documents: Dict[str, StoredDocument] = {}
        self._lock = asyncio.Lock()

    async def create_text_document(self, title: str, content: str, *, message_id: str) -> str:
        if not title.strip():
            raise DocumentStoreError("Document title must be non-empty")
        document_id = uuid.uuid4().hex
        async with self._lock:
            self._documents[document_id] = StoredDocument(
                id=document_id,
                title=title,
                content=content,
                message_id=message_id,
            )
        logger.debug("Stored document %s (%d chars) for message %s", document_id, len(content), message_id)
        return document_id

    def get(self, document_id: str) -> Optional[StoredDocument]:
        return self._documents.get(document_id)

    def list_documents(self) -> List[StoredDocument]:
        return list(self._documents.values())
