"""
Check run job manager.

This module runs a checklist sheet against a document as a background
job: every checklist item is retrieved, evaluated and persisted, while
progress is tracked on the check run. The JobManager owns the registry
of active runs, so each run id executes at most once at a time, and
runs can be stopped cooperatively between item batches.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..models.check_result import CheckRun, CheckVerdict, JobProgress, RunStatus
from ..models.checklist_item import ChecklistItem
from ..storage.base import ChecklistStore, DocumentStore, ResultStore
from ..utils.config import ComplianceConfig
from ..utils.exceptions import (
    CancellationError,
    DocumentNotFoundError,
    DocumentNotProcessedError,
    InvalidRunStateError,
    RunNotFoundError,
    RunSetupError,
)
from .evaluator import ChecklistEvaluator
from .retriever import ChunkRetriever

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative stop signal for one check run."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError()

    async def sleep(self, delay: float) -> None:
        """Sleep for delay seconds, returning early when cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


@dataclass
class ActiveJob:
    """Registry entry of a running check run."""

    run_id: str
    task: asyncio.Task
    token: CancellationToken


class JobManager:
    """
    Manager for check run jobs.

    Create one manager per process and call shutdown() when the process
    stops. Runs of different ids proceed independently; a run id that is
    already active is never started twice.
    """

    def __init__(self, result_store: ResultStore,
                 checklist_store: ChecklistStore,
                 retriever: ChunkRetriever,
                 evaluator: ChecklistEvaluator,
                 document_store: Optional[DocumentStore] = None,
                 config: Optional[ComplianceConfig] = None):
        """Initialize the job manager."""
        self.result_store = result_store
        self.checklist_store = checklist_store
        self.document_store = document_store
        self.retriever = retriever
        self.evaluator = evaluator
        self.config = config or ComplianceConfig()
        self.logger = logging.getLogger(__name__)

        self._active_jobs: Dict[str, ActiveJob] = {}
        self._lock = asyncio.Lock()

    async def start_job(self, run_id: str) -> bool:
        """
        Launch a check run in the background.

        Args:
            run_id: Check run to execute

        Returns:
            True if the run was launched, False if it was already active

        Raises:
            RunNotFoundError: If the run does not exist
            InvalidRunStateError: If the run already completed or failed
        """
        async with self._lock:
            if run_id in self._active_jobs:
                self.logger.info(f"Job {run_id} is already running")
                return False

            run = await self.result_store.get_run(run_id)
            if run is None:
                raise RunNotFoundError(f"Check run not found: {run_id}")
            if run.status.is_terminal:
                raise InvalidRunStateError(f"Check run {run_id} is already {run.status.value}; create a new run")
            if run.status == RunStatus.PROCESSING:
                self.logger.warning(f"Resuming check run {run_id} left in processing state")

            token = CancellationToken()
            task = asyncio.create_task(self._run_job(run_id, token), name=f"check-run-{run_id}")
            self._active_jobs[run_id] = ActiveJob(run_id=run_id, task=task, token=token)

        self.logger.info(f"Started job {run_id}")
        return True

    async def stop_job(self, run_id: str) -> bool:
        """
        Request cooperative cancellation of a run.

        The run stops before its next item batch; results already
        persisted are kept. Returns False when the run is not active.
        """
        job = self._active_jobs.get(run_id)
        if job is None:
            return False

        job.token.cancel()
        self.logger.info(f"Cancellation requested for job {run_id}")
        return True

    def is_active(self, run_id: str) -> bool:
        return run_id in self._active_jobs

    def active_run_ids(self) -> List[str]:
        return list(self._active_jobs)

    async def get_progress(self, run_id: str) -> Optional[JobProgress]:
        """Get the progress snapshot of a run, or None if it does not exist."""
        run = await self.result_store.get_run(run_id)
        if run is None:
            return None

        return JobProgress(
            status=run.status,
            progress=run.progress,
            total_items=run.total_items,
            completed_items=await self.result_store.count_results(run_id),
            error=run.error,
        )

    async def wait(self, run_id: str) -> None:
        """Wait until a run is no longer active."""
        job = self._active_jobs.get(run_id)
        if job is not None:
            await asyncio.shield(job.task)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop all active runs and wait for them to exit.

        Runs still active after timeout seconds are cancelled outright
        and marked failed.
        """
        jobs = list(self._active_jobs.values())
        for job in jobs:
            job.token.cancel()

        if not jobs:
            return

        done, pending = await asyncio.wait([job.task for job in jobs], timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self.logger.info(f"Job manager shut down ({len(done)} stopped, {len(pending)} cancelled)")

    async def submit_check(self, document_id: str, sheet_name: str) -> CheckRun:
        """
        Create a check run for a processed document and start it.

        Raises:
            DocumentNotFoundError: If the document does not exist
            DocumentNotProcessedError: If the document has not been chunked
            RunSetupError: If the sheet has no applicable checklist items
        """
        if self.document_store is not None:
            document = await self.document_store.get_document(document_id)
            if document is None:
                raise DocumentNotFoundError(f"Document not found: {document_id}")
            if not document.processed:
                raise DocumentNotProcessedError("Document must be processed before running checks")

        items = await self.checklist_store.list_items(sheet_name, self.config.jobs.applicable_type)
        if not items:
            raise RunSetupError(f"Checklist sheet not found or empty: {sheet_name}")

        run = await self.result_store.create_run(document_id, sheet_name, total_items=len(items))
        await self.start_job(run.id)
        return run

    async def _run_job(self, run_id: str, token: CancellationToken) -> None:
        """Execute one check run; every outcome is persisted on the run."""
        start_time = time.time()
        try:
            run = await self.result_store.update_run(
                run_id, status=RunStatus.PROCESSING, started_at=datetime.now(), error=None
            )

            items = await self.checklist_store.list_items(run.sheet_name, self.config.jobs.applicable_type)
            if not items:
                raise RunSetupError("No checklist items found for this sheet")

            run = await self.result_store.update_run(run_id, total_items=len(items))
            await self._process_items(run, items, token)

            await self.result_store.update_run(
                run_id, status=RunStatus.COMPLETED, progress=100, completed_at=datetime.now()
            )
            self.logger.info(f"Job {run_id} completed {len(items)} items in {time.time() - start_time:.2f} seconds")

        except CancellationError as e:
            self.logger.info(f"Job {run_id} was cancelled")
            await self._fail_run(run_id, str(e))
        except asyncio.CancelledError:
            self.logger.warning(f"Job {run_id} was interrupted")
            await self._fail_run(run_id, str(CancellationError()))
            raise
        except Exception as e:
            self.logger.error(f"Job {run_id} failed: {e}")
            await self._fail_run(run_id, str(e))
        finally:
            self._active_jobs.pop(run_id, None)

    async def _process_items(self, run: CheckRun, items: List[ChecklistItem], token: CancellationToken) -> None:
        """Evaluate items in concurrent batches and persist them in checklist order."""
        concurrency = self.config.jobs.concurrency
        total = len(items)
        progress = run.progress

        for start in range(0, total, concurrency):
            token.raise_if_cancelled()

            batch = items[start:start + concurrency]
            outcomes = await asyncio.gather(*(self._evaluate_item(run, item) for item in batch))

            for item, (verdict, elapsed_ms) in zip(batch, outcomes):
                await self.result_store.upsert_result(run.id, item.id, verdict, processing_time_ms=elapsed_ms)

                completed = await self.result_store.count_results(run.id)
                progress = max(progress, min(100, round(completed / total * 100)))
                await self.result_store.update_run(run.id, progress=progress)

            self.logger.debug(f"Job {run.id}: {min(start + concurrency, total)}/{total} items processed")

            if start + concurrency < total:
                await token.sleep(self.config.jobs.batch_delay_seconds)

    async def _evaluate_item(self, run: CheckRun, item: ChecklistItem) -> Tuple[CheckVerdict, int]:
        """Retrieve and evaluate one item; failures become an UNKNOWN verdict."""
        start_time = time.time()
        try:
            chunks = await self.retriever.retrieve(run.document_id, item.check_text)
            verdict = await self.evaluator.evaluate(item.check_text, chunks)
        except Exception as e:
            self.logger.error(f"Error processing item {item.check_id} of job {run.id}: {e}")
            verdict = CheckVerdict.unknown(f"Processing error: {e}")

        return verdict, int((time.time() - start_time) * 1000)

    async def _fail_run(self, run_id: str, message: str) -> None:
        try:
            await self.result_store.update_run(run_id, status=RunStatus.FAILED, error=message)
        except Exception:
            self.logger.exception(f"Could not record failure of job {run_id}: {message}")
