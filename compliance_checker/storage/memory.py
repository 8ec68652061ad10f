"""
In-memory implementation of the storage contracts.

All four stores share one asyncio lock, so every operation, including
the result upsert, is atomic with respect to other coroutines.
"""

import asyncio
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from ..models.check_result import CheckResult, CheckRun, CheckVerdict
from ..models.checklist_item import ChecklistItem
from ..models.document import Chunk, Document
from ..utils.exceptions import DocumentNotFoundError, RunNotFoundError
from .base import ChecklistStore, ChunkStore, DocumentStore, ResultStore


class InMemoryStore(DocumentStore, ChunkStore, ChecklistStore, ResultStore):
    """Process-local store for documents, chunks, checklist items, runs and results."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self.documents: Dict[str, Document] = {}
        self.chunks: Dict[str, List[Chunk]] = {}
        self.items: Dict[str, ChecklistItem] = {}
        self.runs: Dict[str, CheckRun] = {}
        self.results: Dict[Tuple[str, str], CheckResult] = {}

    # Documents

    async def add_document(self, document: Document) -> Document:
        async with self._lock:
            self.documents[document.id] = document
            return document

    async def get_document(self, document_id: str) -> Optional[Document]:
        async with self._lock:
            return self.documents.get(document_id)

    async def update_document(self, document_id: str, page_count: int, processed: bool) -> Document:
        async with self._lock:
            document = self.documents.get(document_id)
            if document is None:
                raise DocumentNotFoundError(f"Document not found: {document_id}")
            document = document.model_copy(update={"page_count": page_count, "processed": processed})
            self.documents[document_id] = document
            return document

    # Chunks

    async def replace_chunks(self, document_id: str, chunks: Sequence[Chunk]) -> int:
        ordered = sorted(chunks, key=lambda chunk: chunk.chunk_index)
        indexes = [chunk.chunk_index for chunk in ordered]
        if len(set(indexes)) != len(indexes):
            raise ValueError(f"Duplicate chunk index for document {document_id}")
        if any(chunk.document_id != document_id for chunk in ordered):
            raise ValueError(f"Chunk does not belong to document {document_id}")

        async with self._lock:
            self.chunks[document_id] = ordered
            return len(ordered)

    async def list_chunks(self, document_id: str) -> List[Chunk]:
        async with self._lock:
            return list(self.chunks.get(document_id, []))

    # Checklist items

    async def add_items(self, items: Sequence[ChecklistItem]) -> int:
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise ValueError("Duplicate checklist item id in batch")

        async with self._lock:
            existing = [item_id for item_id in ids if item_id in self.items]
            if existing:
                raise ValueError(f"Checklist item already stored: {existing[0]}")
            for item in items:
                self.items[item.id] = item
            return len(items)

    async def list_items(self, sheet_name: str, applicable_type: Optional[str] = None) -> List[ChecklistItem]:
        async with self._lock:
            items = [
                item for item in self.items.values()
                if item.sheet_name == sheet_name and item.applies_to(applicable_type)
            ]
        return sorted(items, key=lambda item: item.order)

    async def count_items(self, sheet_name: str) -> int:
        async with self._lock:
            return sum(1 for item in self.items.values() if item.sheet_name == sheet_name)

    async def list_sheets(self) -> List[str]:
        async with self._lock:
            first_order: Dict[str, int] = {}
            for item in self.items.values():
                first_order[item.sheet_name] = min(item.order, first_order.get(item.sheet_name, item.order))
        return sorted(first_order, key=first_order.get)

    # Runs and results

    async def create_run(self, document_id: str, sheet_name: str, total_items: int = 0) -> CheckRun:
        run = CheckRun(id=str(uuid.uuid4()), document_id=document_id, sheet_name=sheet_name, total_items=total_items)
        async with self._lock:
            self.runs[run.id] = run
        return run

    async def get_run(self, run_id: str) -> Optional[CheckRun]:
        async with self._lock:
            return self.runs.get(run_id)

    async def update_run(self, run_id: str, **patch) -> CheckRun:
        unknown_fields = set(patch) - set(CheckRun.model_fields)
        if unknown_fields:
            raise ValueError(f"Unknown check run fields: {sorted(unknown_fields)}")

        async with self._lock:
            run = self.runs.get(run_id)
            if run is None:
                raise RunNotFoundError(f"Check run not found: {run_id}")
            run = CheckRun.model_validate({**run.model_dump(), **patch})
            self.runs[run_id] = run
            return run

    async def upsert_result(self, run_id: str, item_id: str, verdict: CheckVerdict,
                            processing_time_ms: int = 0) -> CheckResult:
        result = CheckResult.from_verdict(run_id, item_id, verdict, processing_time_ms)
        async with self._lock:
            if run_id not in self.runs:
                raise RunNotFoundError(f"Check run not found: {run_id}")
            self.results[result.key] = result
            return result

    async def count_results(self, run_id: str) -> int:
        async with self._lock:
            return sum(1 for key in self.results if key[0] == run_id)

    async def list_results(self, run_id: str) -> List[CheckResult]:
        async with self._lock:
            results = [result for key, result in self.results.items() if key[0] == run_id]
            order = {item_id: item.order for item_id, item in self.items.items()}
        return sorted(results, key=lambda result: order.get(result.checklist_item_id, 0))
