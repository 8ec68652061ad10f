"""
Main Compliance Assessor for checklist compliance checks.

This module provides the ComplianceAssessor class that wires the
pipeline together: checklist loading, document processing, retrieval,
evaluation and the background job manager, all sharing one
configuration and one set of stores.
"""

import logging
import time
from pathlib import Path
from typing import List, Dict, Any, Optional, Sequence

from ..models.check_result import CheckRun, CheckRunReport, ChecklistSummary
from ..models.checklist_item import ChecklistSheet
from ..models.document import Document, PageContent
from ..storage.memory import InMemoryStore
from ..utils.config import ComplianceConfig
from ..utils.exceptions import RunNotFoundError
from .checklist_parser import ChecklistParser, seed_checklist
from .document_processor import DocumentProcessor, ProcessingSummary
from .evaluator import ChecklistEvaluator
from .job_manager import JobManager
from .providers import (
    CompletionProvider,
    EmbeddingProvider,
    create_completion_provider,
    create_embedding_provider,
)
from .retriever import ChunkRetriever

logger = logging.getLogger(__name__)


class ComplianceAssessor:
    """
    Main compliance assessor.

    Providers default to the OpenAI implementations when an API key is
    configured; without a key retrieval falls back to keyword matching
    and every item is evaluated as UNKNOWN. The store defaults to a
    process-local InMemoryStore.
    """

    def __init__(self, config: Optional[ComplianceConfig] = None,
                 store: Optional[InMemoryStore] = None,
                 embedding_provider: Optional[EmbeddingProvider] = None,
                 completion_provider: Optional[CompletionProvider] = None):
        """Initialize the compliance assessor."""
        self.config = config or ComplianceConfig()
        self.logger = logging.getLogger(__name__)

        for issue in self.config.validate_configuration():
            self.logger.warning(f"Configuration issue: {issue}")

        if embedding_provider is None:
            embedding_provider = create_embedding_provider(self.config)
        if completion_provider is None:
            completion_provider = create_completion_provider(self.config)

        # Initialize components
        self.store = store or InMemoryStore()
        self.checklist_parser = ChecklistParser(self.config.jobs.applicable_type or "i+d")
        self.document_processor = DocumentProcessor(self.store, self.store, embedding_provider, self.config)
        self.retriever = ChunkRetriever(self.store, embedding_provider, self.config)
        self.evaluator = ChecklistEvaluator(completion_provider, self.config)
        self.job_manager = JobManager(
            self.store, self.store, self.retriever, self.evaluator,
            document_store=self.store, config=self.config,
        )

        # Assessment tracking
        self.assessment_history: List[Dict[str, Any]] = []

    async def load_checklist(self, file_path: str) -> List[ChecklistSheet]:
        """
        Load a checklist file and seed sheets that are not stored yet.

        JSON exports and Excel workbooks are supported.
        """
        suffix = Path(file_path).suffix.lower()
        if suffix == ".json":
            sheets = self.checklist_parser.load_json(file_path)
        elif suffix in (".xlsx", ".xls"):
            sheets = self.checklist_parser.parse_excel(file_path)
        else:
            raise ValueError(f"Unsupported checklist file format: {suffix}")

        seeded = await seed_checklist(self.store, sheets)
        self.logger.info(f"Checklist loaded: {len(sheets)} sheets, {seeded} new items")
        return sheets

    async def register_document(self, document_id: str, filename: Optional[str] = None) -> Document:
        return await self.store.add_document(Document(id=document_id, filename=filename))

    async def process_document(self, document_id: str, pages: Sequence[PageContent]) -> ProcessingSummary:
        return await self.document_processor.process_document(document_id, pages)

    async def start_check(self, document_id: str, sheet_name: str) -> CheckRun:
        """Create a check run and start it in the background."""
        return await self.job_manager.submit_check(document_id, sheet_name)

    async def get_report(self, run_id: str) -> CheckRunReport:
        """Build the report of a check run from its stored results."""
        run = await self.store.get_run(run_id)
        if run is None:
            raise RunNotFoundError(f"Check run not found: {run_id}")

        results = await self.store.list_results(run_id)
        return CheckRunReport(run=run, results=results, summary=ChecklistSummary.from_results(results))

    async def assess_compliance(self, document_id: str, sheet_name: str) -> CheckRunReport:
        """
        Run a checklist sheet against a processed document and wait for it.

        Args:
            document_id: Processed document to check
            sheet_name: Checklist sheet to apply

        Returns:
            CheckRunReport with the final run state and all results
        """
        self.logger.info(f"Starting compliance check of document {document_id} against sheet {sheet_name}")
        start_time = time.time()

        run = await self.start_check(document_id, sheet_name)
        await self.job_manager.wait(run.id)
        report = await self.get_report(run.id)

        total_time = time.time() - start_time
        self.assessment_history.append({
            "run_id": run.id,
            "document_id": document_id,
            "sheet_name": sheet_name,
            "status": report.run.status.value,
            "processing_time": total_time,
        })
        self.logger.info(f"Compliance check {run.id} finished as {report.run.status.value} in {total_time:.2f} seconds")

        return report

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        await self.job_manager.shutdown(timeout)

    def get_assessment_statistics(self) -> Dict[str, Any]:
        """Get statistics about the assessment process."""
        return {
            "total_assessments": len(self.assessment_history),
            "active_runs": self.job_manager.active_run_ids(),
            "retrieval_statistics": self.retriever.get_retrieval_statistics(),
            "model_configuration": self.config.get_model_config(),
            "last_assessment": self.assessment_history[-1] if self.assessment_history else None,
        }
