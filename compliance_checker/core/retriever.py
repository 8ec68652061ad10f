"""
Chunk retrieval for checklist evaluation.

This module finds the chunks of a document most relevant to a checklist
criterion. It ranks by cosine similarity when the corpus carries
embeddings and by deterministic keyword overlap otherwise.
"""

import logging
import time
from typing import List, Dict, Any, Optional, Sequence

import numpy as np

from ..models.document import Chunk, RetrievedChunk
from ..storage.base import ChunkStore
from ..utils.config import ComplianceConfig
from ..utils.exceptions import DimensionMismatchError
from .providers import EmbeddingProvider

logger = logging.getLogger(__name__)

# Query words of this length or shorter are ignored by keyword matching
MIN_KEYWORD_LENGTH = 3


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity dot(a, b) / (|a| * |b|); 0.0 when either vector is zero."""
    if len(a) != len(b):
        raise DimensionMismatchError(f"Vectors must have the same length ({len(a)} != {len(b)})")

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def extract_keywords(query: str) -> List[str]:
    """Lower-cased query words longer than three characters."""
    return [word for word in query.lower().split() if len(word) > MIN_KEYWORD_LENGTH]


def rank_by_keywords(chunks: Sequence[Chunk], query: str, top_k: int) -> List[RetrievedChunk]:
    """Rank chunks by how many query keywords they contain."""
    keywords = extract_keywords(query)
    scored = []
    for chunk in chunks:
        content = chunk.content.lower()
        score = sum(1 for word in keywords if word in content)
        scored.append((score, chunk))

    # sorted() is stable, so equal scores keep chunk order
    ranked = sorted(scored, key=lambda pair: pair[0], reverse=True)[:top_k]
    word_count = max(len(keywords), 1)

    return [
        RetrievedChunk(id=chunk.id, content=chunk.content, page_number=chunk.page_number,
                       similarity=score / word_count)
        for score, chunk in ranked
    ]


def rank_by_similarity(chunks: Sequence[Chunk], query_embedding: Sequence[float], top_k: int) -> List[RetrievedChunk]:
    """Rank embedded chunks by cosine similarity to the query embedding."""
    scored = [
        (cosine_similarity(query_embedding, chunk.embedding), chunk)
        for chunk in chunks
        if chunk.has_embedding
    ]
    ranked = sorted(scored, key=lambda pair: pair[0], reverse=True)[:top_k]

    return [
        RetrievedChunk(id=chunk.id, content=chunk.content, page_number=chunk.page_number, similarity=similarity)
        for similarity, chunk in ranked
    ]


def format_context(chunks: Sequence[RetrievedChunk]) -> str:
    """Tag each chunk with its position and page for the evaluation prompt."""
    parts = [
        f"[Document Fragment {i}, Page {chunk.page_number}]\n{chunk.content}"
        for i, chunk in enumerate(chunks, 1)
    ]
    return "\n\n---\n\n".join(parts)


class ChunkRetriever:
    """
    Retriever over the stored chunk corpus of a document.

    Vector mode is used when an embedding provider is configured and the
    corpus has embeddings; the keyword fallback keeps retrieval working
    without a provider.
    """

    def __init__(self, chunk_store: ChunkStore,
                 embedding_provider: Optional[EmbeddingProvider] = None,
                 config: Optional[ComplianceConfig] = None):
        """Initialize the retriever."""
        self.chunk_store = chunk_store
        self.embedding_provider = embedding_provider
        self.config = config or ComplianceConfig()
        self.logger = logging.getLogger(__name__)

        # Performance tracking
        self.retrieval_times: List[float] = []
        self.mode_counts: Dict[str, int] = {"vector": 0, "keyword": 0}

    async def retrieve(self, document_id: str, query: str, top_k: Optional[int] = None) -> List[RetrievedChunk]:
        """
        Retrieve the chunks most relevant to a query.

        Args:
            document_id: Document whose chunks are searched
            query: Checklist item text
            top_k: Number of chunks to return (overrides config)

        Returns:
            Up to top_k chunks, best first; empty when the document has no chunks

        Raises:
            ProviderError: If the query cannot be embedded
        """
        if top_k is None:
            top_k = self.config.retrieval.top_k

        start_time = time.time()
        chunks = await self.chunk_store.list_chunks(document_id)

        if not chunks:
            self.logger.info(f"Document {document_id} has no chunks")
            return []

        embedded = [chunk for chunk in chunks if chunk.has_embedding]

        if self.embedding_provider is not None and embedded:
            query_embedding = await self.embedding_provider.embed_query(query)
            results = rank_by_similarity(embedded, query_embedding, top_k)
            mode = "vector"
        else:
            results = rank_by_keywords(chunks, query, top_k)
            mode = "keyword"

        retrieval_time = time.time() - start_time
        self.retrieval_times.append(retrieval_time)
        self.mode_counts[mode] += 1

        self.logger.debug(f"Retrieved {len(results)} chunks in {mode} mode in {retrieval_time:.2f} seconds")
        return results

    def get_retrieval_statistics(self) -> Dict[str, Any]:
        """Get statistics about retrieval performance."""
        stats = {
            "total_retrievals": len(self.retrieval_times),
            "average_retrieval_time": 0.0,
            "vector_retrievals": self.mode_counts["vector"],
            "keyword_retrievals": self.mode_counts["keyword"],
            "retrieval_top_k": self.config.retrieval.top_k,
        }

        if self.retrieval_times:
            stats["average_retrieval_time"] = sum(self.retrieval_times) / len(self.retrieval_times)

        return stats
