"""Pytest configuration and shared fixtures."""

import re
from typing import Any, Dict, List, Optional

import pytest

from compliance_checker.core.evaluator import ChecklistEvaluator
from compliance_checker.core.job_manager import JobManager
from compliance_checker.core.providers import CompletionProvider, EmbeddingProvider
from compliance_checker.core.retriever import ChunkRetriever
from compliance_checker.models.checklist_item import ChecklistItem
from compliance_checker.models.document import Chunk, Document, PageContent, RetrievedChunk
from compliance_checker.storage.memory import InMemoryStore
from compliance_checker.utils.config import ComplianceConfig, JobConfig, ModelConfig

SHEET = "Balans"

BALANCE_SHEET_TEXT = (
    "The balance sheet presents the assets and liabilities as at the balance sheet date. "
    "Fixed assets are divided into intangible, tangible and financial fixed assets. "
    "Equity is shown separately with a statement of changes in reserves."
)

PROVISIONS_TEXT = (
    "Provisions are stated separately, with an explanation of their nature and amount. "
    "Current assets comprise inventories, receivables, securities and cash."
)


class FakeCompletionProvider(CompletionProvider):
    """Completion provider answering a fixed response."""

    model_name = "fake-llm"

    def __init__(self, response: Optional[Any] = None, error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: List[Dict[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        self.calls.append({"system": system_prompt, "user": user_prompt})
        if self.error is not None:
            raise self.error
        return self.response


class BagOfWordsEmbeddingProvider(EmbeddingProvider):
    """Deterministic embedding provider counting vocabulary words."""

    model_name = "bag-of-words"

    def __init__(self, vocabulary: List[str]):
        self.vocabulary = vocabulary
        self.calls = 0

    def _vector(self, text: str) -> List[float]:
        words = re.findall(r"\w+", text.lower())
        return [float(words.count(term)) for term in self.vocabulary]

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [self._vector(text) for text in texts]


def make_items(count: int, sheet_name: str = SHEET) -> List[ChecklistItem]:
    """Checklist items BAL-001 .. BAL-<count> in order."""
    return [
        ChecklistItem(
            id=f"item-{i}",
            sheet_name=sheet_name,
            check_id=f"BAL-{i:03d}",
            check_text=f"The balance sheet presents the assets and liabilities (criterion {i}).",
            applicable_types=["i+d"],
            order=i,
        )
        for i in range(1, count + 1)
    ]


def make_chunk(index: int, content: str, page: int = 1, document_id: str = "doc-1",
               embedding: Optional[List[float]] = None) -> Chunk:
    return Chunk(
        id=f"chunk-{index}",
        document_id=document_id,
        page_number=page,
        chunk_index=index,
        content=content,
        embedding=embedding,
    )


def make_retrieved(content: str, page: int = 1, chunk_id: str = "chunk-0") -> RetrievedChunk:
    return RetrievedChunk(id=chunk_id, content=content, page_number=page, similarity=1.0)


@pytest.fixture
def config() -> ComplianceConfig:
    """Configuration without an API key and without batch delays."""
    return ComplianceConfig(
        models=ModelConfig(openai_api_key=""),
        jobs=JobConfig(batch_delay_seconds=0.0, concurrency=3),
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sample_pages() -> List[PageContent]:
    return [
        PageContent(page_number=1, text=BALANCE_SHEET_TEXT),
        PageContent(page_number=2, text=""),
        PageContent(page_number=3, text=PROVISIONS_TEXT),
    ]


@pytest.fixture
def sample_chunks() -> List[Chunk]:
    return [
        make_chunk(0, BALANCE_SHEET_TEXT, page=1),
        make_chunk(1, PROVISIONS_TEXT, page=3),
    ]


@pytest.fixture
def passing_response() -> Dict[str, Any]:
    return {
        "status": "PASS",
        "reasoning": "The balance sheet presents assets and liabilities.",
        "evidence": [{"page": 1, "quote": "The balance sheet presents the assets and liabilities"}],
        "confidence": 0.9,
    }


@pytest.fixture
def processed_document() -> Document:
    return Document(id="doc-1", filename="annual-report.pdf", page_count=3, processed=True)


@pytest.fixture
def make_manager(store, config):
    """Build a job manager over the shared store with the given completion provider."""

    def _make(completion_provider: Optional[CompletionProvider] = None,
              embedding_provider: Optional[EmbeddingProvider] = None,
              job_config: Optional[ComplianceConfig] = None) -> JobManager:
        cfg = job_config or config
        retriever = ChunkRetriever(store, embedding_provider, cfg)
        evaluator = ChecklistEvaluator(completion_provider, cfg)
        return JobManager(store, store, retriever, evaluator, document_store=store, config=cfg)

    return _make
