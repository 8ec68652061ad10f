"""
Data models for documents and their retrieval units.

This module defines the structures produced by text extraction and
chunking, and the chunks handed from the retriever to the evaluator.
"""

from typing import List, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Document(BaseModel):
    """A scanned financial document, as known to the document store."""

    id: str = Field(..., description="Unique identifier for the document")
    filename: Optional[str] = Field(None, description="Original file name")
    page_count: int = Field(0, ge=0, description="Total number of pages")
    processed: bool = Field(False, description="Whether the document has been chunked")
    created_at: datetime = Field(default_factory=datetime.now, description="When the document was registered")


class PageContent(BaseModel):
    """Plain text of a single page, as produced by text extraction."""

    page_number: int = Field(..., ge=1, description="1-based page number")
    text: str = Field("", description="Extracted page text")


class TextChunk(BaseModel):
    """A chunk emitted by the chunker, before it is stored."""

    content: str = Field(..., description="Chunk text")
    page_number: int = Field(..., ge=1, description="Page the chunk was cut from")
    chunk_index: int = Field(..., ge=0, description="Global 0-based chunk position within the document")


class Chunk(BaseModel):
    """A stored, page-traceable retrieval unit of a document."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique identifier for the chunk")
    document_id: str = Field(..., description="Owning document")
    page_number: int = Field(..., ge=1, description="1-based page number")
    chunk_index: int = Field(..., ge=0, description="0-based sequence index, unique per document")
    content: str = Field(..., description="Chunk text")
    embedding: Optional[List[float]] = Field(None, description="Embedding vector, when a provider was configured")

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


class RetrievedChunk(BaseModel):
    """A chunk selected for a query, with its relevance score."""

    id: str = Field(..., description="Chunk identifier")
    content: str = Field(..., description="Chunk text")
    page_number: int = Field(..., ge=1, description="1-based page number")
    similarity: float = Field(0.0, description="Cosine similarity or normalized keyword score")
