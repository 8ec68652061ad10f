"""
Compliance Checker Module

An asynchronous pipeline that checks scanned financial statements against
a checklist of textual compliance criteria, built on LangChain.

This module provides:
- Page-traceable chunking of extracted document text
- Chunk retrieval by embedding similarity, with a keyword fallback
- LLM evaluation of each criterion with grounded evidence citations
- Background check runs with progress tracking and cooperative cancellation
"""

from .core.checklist_parser import ChecklistParser, get_sheet, seed_checklist
from .core.chunker import DocumentChunker, chunk_page_content
from .core.compliance_assessor import ComplianceAssessor
from .core.document_processor import DocumentProcessor, ProcessingSummary
from .core.evaluator import ChecklistEvaluator
from .core.job_manager import CancellationToken, JobManager
from .core.providers import (
    CompletionProvider,
    EmbeddingProvider,
    create_completion_provider,
    create_embedding_provider,
)
from .core.retriever import ChunkRetriever, cosine_similarity
from .models.check_result import (
    CheckResult,
    CheckRun,
    CheckStatus,
    CheckVerdict,
    CheckRunReport,
    ChecklistSummary,
    Evidence,
    JobProgress,
    RunStatus,
)
from .models.checklist_item import ChecklistItem, ChecklistSheet
from .models.document import Chunk, Document, PageContent, RetrievedChunk
from .storage.memory import InMemoryStore
from .utils.config import ComplianceConfig

__version__ = "0.1.0"

__all__ = [
    "ChecklistParser",
    "get_sheet",
    "seed_checklist",
    "DocumentChunker",
    "chunk_page_content",
    "ComplianceAssessor",
    "DocumentProcessor",
    "ProcessingSummary",
    "ChecklistEvaluator",
    "CancellationToken",
    "JobManager",
    "CompletionProvider",
    "EmbeddingProvider",
    "create_completion_provider",
    "create_embedding_provider",
    "ChunkRetriever",
    "cosine_similarity",
    "CheckResult",
    "CheckRun",
    "CheckStatus",
    "CheckVerdict",
    "CheckRunReport",
    "ChecklistSummary",
    "Evidence",
    "JobProgress",
    "RunStatus",
    "ChecklistItem",
    "ChecklistSheet",
    "Chunk",
    "Document",
    "PageContent",
    "RetrievedChunk",
    "InMemoryStore",
    "ComplianceConfig",
]
