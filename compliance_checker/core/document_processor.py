"""
Document Processor for extracted financial statements.

This module turns the page texts of a document into its stored chunk
corpus: it chunks the pages, embeds the chunks when an embedding
provider is configured, stores them in one batch and marks the
document as processed.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, List, Optional, Sequence

from pydantic import BaseModel, Field

from ..models.document import Chunk, PageContent, TextChunk
from ..storage.base import ChunkStore, DocumentStore
from ..utils.config import ComplianceConfig
from ..utils.exceptions import DocumentNotFoundError, ProviderError
from .chunker import DocumentChunker
from .providers import EmbeddingProvider

logger = logging.getLogger(__name__)


class ProcessingSummary(BaseModel):
    """Outcome of processing one document."""

    document_id: str = Field(..., description="Processed document")
    page_count: int = Field(0, description="Number of extracted pages")
    chunk_count: int = Field(0, description="Number of stored chunks")
    embedded: bool = Field(False, description="Whether the chunks carry embeddings")
    already_processed: bool = Field(False, description="Whether the document had been processed before")


class DocumentProcessor:
    """
    Processor for extracted documents.

    Text extraction itself happens outside the pipeline; this class
    receives page texts and builds the retrieval corpus from them.
    """

    def __init__(self, document_store: DocumentStore, chunk_store: ChunkStore,
                 embedding_provider: Optional[EmbeddingProvider] = None,
                 config: Optional[ComplianceConfig] = None):
        """Initialize the document processor."""
        self.document_store = document_store
        self.chunk_store = chunk_store
        self.embedding_provider = embedding_provider
        self.config = config or ComplianceConfig()
        self.logger = logging.getLogger(__name__)
        self.chunker = DocumentChunker(self.config)

    async def process_extracted(self, document_id: str,
                                extraction: Awaitable[Sequence[PageContent]]) -> ProcessingSummary:
        """
        Await a text extraction under the extraction timeout, then process its pages.

        Raises:
            ProviderError: If extraction does not finish in time
        """
        timeout = self.config.jobs.extraction_timeout_seconds
        try:
            pages = await asyncio.wait_for(extraction, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Text extraction timed out after {timeout:.0f}s") from e
        return await self.process_document(document_id, pages)

    async def process_document(self, document_id: str, pages: Sequence[PageContent]) -> ProcessingSummary:
        """
        Build and store the chunk corpus of a document.

        Args:
            document_id: Document to process
            pages: Extracted page texts in document order

        Returns:
            ProcessingSummary describing the stored corpus
        """
        self.logger.info(f"Processing document {document_id} ({len(pages)} pages)")

        document = await self.document_store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document not found: {document_id}")

        if document.processed:
            self.logger.info(f"Document already processed: {document_id}")
            existing = await self.chunk_store.list_chunks(document_id)
            return ProcessingSummary(
                document_id=document_id,
                page_count=document.page_count,
                chunk_count=len(existing),
                embedded=any(chunk.has_embedding for chunk in existing),
                already_processed=True,
            )

        text_chunks = self.chunker.chunk_pages(pages)
        embeddings = await self._embed_chunks(text_chunks)

        chunks = [
            Chunk(
                id=str(uuid.uuid4()),
                document_id=document_id,
                page_number=text_chunk.page_number,
                chunk_index=text_chunk.chunk_index,
                content=text_chunk.content,
                embedding=embeddings[i] if embeddings else None,
            )
            for i, text_chunk in enumerate(text_chunks)
        ]

        stored = await self.chunk_store.replace_chunks(document_id, chunks)
        await self.document_store.update_document(document_id, page_count=len(pages), processed=True)

        self.logger.info(f"Document processed successfully: {document_id} ({stored} chunks)")
        return ProcessingSummary(
            document_id=document_id,
            page_count=len(pages),
            chunk_count=stored,
            embedded=embeddings is not None,
        )

    async def _embed_chunks(self, text_chunks: List[TextChunk]) -> Optional[List[List[float]]]:
        """Embed chunk texts, or None when embeddings are unavailable."""
        if self.embedding_provider is None:
            self.logger.info("No embedding provider configured, storing chunks without embeddings")
            return None

        if not text_chunks:
            return None

        timeout = self.config.jobs.embedding_timeout_seconds
        try:
            embeddings = await asyncio.wait_for(
                self.embedding_provider.embed([chunk.content for chunk in text_chunks]),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            self.logger.error(f"Embedding generation timed out after {timeout:.0f}s, storing chunks without embeddings")
            return None
        except ProviderError as e:
            self.logger.error(f"Embedding error, storing chunks without embeddings: {e}")
            return None

        if len(embeddings) != len(text_chunks):
            self.logger.error(
                f"Embedding provider returned {len(embeddings)} vectors for {len(text_chunks)} chunks, "
                "storing chunks without embeddings"
            )
            return None

        return embeddings
