"""
Access to the full text of stored documents.
"""
import logging
from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class FetchedDocument(BaseModel):
    """Full text of one stored document, reassembled from its chunks."""
    document_id: str
    title: str = ""
    text: str = ""
    chunk_count: int = 0


class DocumentFetchError(BaseModel):
    """A document that could not be read."""
    document_id: str
    message: str


class DocumentFetchResult(BaseModel):
    """Outcome of a full-text fetch; partial failures are reported, not raised."""
    documents: List[FetchedDocument] = Field(default_factory=list)
    errors: List[DocumentFetchError] = Field(default_factory=list)

    @property
    def combined_text(self) -> str:
        parts = []
        for document in self.documents:
            if not document.text:
                continue
            if document.title:
                parts.append(f"### {document.title}\n{document.text}")
            else:
                parts.append(document.text)
        return "\n\n".join(parts)


class DocumentStore(Protocol):
    """Full-text document access scoped to a user."""

    async def fetch_full_texts(self, user_id: Optional[str], document_ids: List[str]) -> DocumentFetchResult:
        ...


class InMemoryDocumentStore:
    """Chunked document store kept in process memory."""

    def __init__(self):
        logger.info("Initializing in-memory document store")
        # user_id -> document_id -> {"title": ..., "chunks": [...]}
        self._documents: Dict[str, Dict[str, Dict]] = {}

    def add_document(self, user_id: str, document_id: str, chunks: List[str], title: str = ""):
        """Store a document as an ordered list of chunks."""
        self._documents.setdefault(user_id, {})[document_id] = {"title": title, "chunks": list(chunks)}
        logger.debug(f"Stored document {document_id} for user {user_id} ({len(chunks)} chunks)")

    async def fetch_full_texts(self, user_id: Optional[str], document_ids: List[str]) -> DocumentFetchResult:
        """
        Reassemble the full text of each requested document.

        Args:
            user_id: Owner of the documents; other users' documents are not visible
            document_ids: Documents to fetch

        Returns:
            DocumentFetchResult with one entry per readable document and
            one error per missing one
        """
        result = DocumentFetchResult()
        user_documents = self._documents.get(user_id or "", {})
        for document_id in document_ids:
            stored = user_documents.get(document_id)
            if stored is None:
                logger.warning(f"Document {document_id} not found for user {user_id}")
                result.errors.append(DocumentFetchError(document_id=document_id, message="not found"))
                continue
            result.documents.append(FetchedDocument(
                document_id=document_id,
                title=stored["title"],
                text="\n".join(stored["chunks"]),
                chunk_count=len(stored["chunks"]),
            ))
        return result
