"""
Chunker for extracted document text.

This module splits page-indexed text into bounded retrieval units that
keep the page they were cut from, so evidence can be cited by page.
"""

import logging
from typing import List, Optional, Sequence

from ..models.document import PageContent, TextChunk
from ..utils.config import ComplianceConfig

logger = logging.getLogger(__name__)

# Characters a chunk prefers to end on
BOUNDARY_CHARACTERS = (".", "\n")


def _find_boundary(window: str) -> int:
    """Index of the last boundary character in the window, or -1."""
    return max(window.rfind(char) for char in BOUNDARY_CHARACTERS)


def chunk_page_content(pages: Sequence[PageContent],
                       chunk_size: int = 2000,
                       overlap: int = 300,
                       max_chunks: int = 500) -> List[TextChunk]:
    """
    Split pages into overlapping chunks.

    Args:
        pages: Extracted pages in document order
        chunk_size: Maximum characters per chunk
        overlap: Characters shared by consecutive chunks of one page
        max_chunks: Global cap; chunking stops once it is reached

    Returns:
        Chunks with their page number and a global chunk index
    """
    chunks: List[TextChunk] = []
    chunk_index = 0

    for page in pages:
        text = page.text
        if not text:
            continue

        if len(text) <= chunk_size:
            chunks.append(TextChunk(content=text, page_number=page.page_number, chunk_index=chunk_index))
            chunk_index += 1
            if len(chunks) >= max_chunks:
                logger.info(f"Reached max chunks limit ({max_chunks}), stopping chunking")
                return chunks
            continue

        start = 0
        while start < len(text):
            end = min(start + chunk_size, len(text))
            chunk_text = text[start:end]

            # Prefer to end on a sentence or line boundary
            if end < len(text):
                boundary = _find_boundary(chunk_text)
                if boundary > chunk_size * 0.5:
                    chunk_text = chunk_text[:boundary + 1]

            window = chunk_text
            chunk_text = chunk_text.strip()
            if chunk_text:
                chunks.append(TextChunk(content=chunk_text, page_number=page.page_number, chunk_index=chunk_index))
                chunk_index += 1

                if len(chunks) >= max_chunks:
                    logger.info(f"Reached max chunks limit ({max_chunks}), stopping chunking")
                    return chunks

            # The window reached the end of the page
            if end >= len(text):
                break

            # Advance by the unstripped window; always move forward
            start += max(1, len(window) - overlap)

    return chunks


class DocumentChunker:
    """
    Chunker configured from the compliance configuration.

    This class applies the configured chunk size, overlap and chunk cap
    to the pages of one document.
    """

    def __init__(self, config: Optional[ComplianceConfig] = None):
        """Initialize the chunker."""
        self.config = config or ComplianceConfig()
        self.logger = logging.getLogger(__name__)

    def chunk_pages(self, pages: Sequence[PageContent]) -> List[TextChunk]:
        """Split the pages of one document into chunks."""
        settings = self.config.chunking
        chunks = chunk_page_content(
            pages,
            chunk_size=settings.chunk_size,
            overlap=settings.chunk_overlap,
            max_chunks=settings.max_chunks,
        )
        self.logger.info(f"Created {len(chunks)} chunks from {len(pages)} pages")
        return chunks
