"""
Storage contracts used by the compliance check pipeline.

Persistence of documents, chunks, checklist items and results belongs
to the host application; the pipeline only talks to these interfaces.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..models.check_result import CheckResult, CheckRun, CheckVerdict
from ..models.checklist_item import ChecklistItem
from ..models.document import Chunk, Document


class DocumentStore(ABC):
    """Read and update documents."""

    @abstractmethod
    async def add_document(self, document: Document) -> Document:
        ...

    @abstractmethod
    async def get_document(self, document_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def update_document(self, document_id: str, page_count: int, processed: bool) -> Document:
        """Record extraction results. Raises DocumentNotFoundError for unknown ids."""


class ChunkStore(ABC):
    """Persist the chunk corpus of a document."""

    @abstractmethod
    async def replace_chunks(self, document_id: str, chunks: Sequence[Chunk]) -> int:
        """Atomically replace all chunks of a document; returns the number stored."""

    @abstractmethod
    async def list_chunks(self, document_id: str) -> List[Chunk]:
        """Chunks of a document ordered by chunk index."""


class ChecklistStore(ABC):
    """Read checklist criteria."""

    @abstractmethod
    async def add_items(self, items: Sequence[ChecklistItem]) -> int:
        """Insert new items; an id that is already stored is rejected."""

    @abstractmethod
    async def list_items(self, sheet_name: str, applicable_type: Optional[str] = None) -> List[ChecklistItem]:
        """Items of a sheet in checklist order, filtered by applicability."""

    @abstractmethod
    async def count_items(self, sheet_name: str) -> int:
        ...

    @abstractmethod
    async def list_sheets(self) -> List[str]:
        ...


class ResultStore(ABC):
    """Persist check runs and their per-item results."""

    @abstractmethod
    async def create_run(self, document_id: str, sheet_name: str, total_items: int = 0) -> CheckRun:
        ...

    @abstractmethod
    async def get_run(self, run_id: str) -> Optional[CheckRun]:
        ...

    @abstractmethod
    async def update_run(self, run_id: str, **patch) -> CheckRun:
        """Apply a partial update. Raises RunNotFoundError for unknown ids."""

    @abstractmethod
    async def upsert_result(self, run_id: str, item_id: str, verdict: CheckVerdict,
                            processing_time_ms: int = 0) -> CheckResult:
        """Create or overwrite the result keyed by (run_id, item_id), atomically."""

    @abstractmethod
    async def count_results(self, run_id: str) -> int:
        ...

    @abstractmethod
    async def list_results(self, run_id: str) -> List[CheckResult]:
        ...
