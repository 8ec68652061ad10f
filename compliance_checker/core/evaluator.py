"""
Checklist item evaluator.

This module asks the completion provider for a PASS/FAIL/UNKNOWN verdict
on a single criterion, given the retrieved chunks, and validates the
answer before it is accepted: the status is normalized, every quote must
be found in the chunks, and the confidence is clamped.
"""

import asyncio
import logging
from typing import List, Any, Optional, Sequence, Callable, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..models.check_result import CheckStatus, CheckVerdict, Evidence
from ..models.document import RetrievedChunk
from ..utils.config import ComplianceConfig
from ..utils.exceptions import EvidenceValidationError, ProviderError
from .providers import CompletionProvider
from .retriever import format_context

logger = logging.getLogger(__name__)

NOT_CONFIGURED_REASONING = (
    "Completion provider is not configured. Set OPENAI_API_KEY to enable checklist evaluation."
)
NO_CONTENT_REASONING = "No relevant document content found for this criterion."
NO_REASONING = "No explanation provided."

MIN_QUOTE_LENGTH = 10
QUOTE_MATCH_WINDOW = 50
QUOTE_MATCH_PREFIX = 30
MAX_QUOTE_LENGTH = 300
MAX_EVIDENCE = 3
DEFAULT_CONFIDENCE = 0.5

SYSTEM_PROMPT = """You are an expert accountant reviewing annual financial statements against compliance checklist criteria.

Your task is to decide whether a specific criterion is PASS (satisfied), FAIL (not satisfied) or UNKNOWN (insufficient information), based on the document fragments provided.

IMPORTANT RULES:
1. Base your assessment ONLY on the document fragments provided
2. If the information is insufficient to reach a conclusion, answer UNKNOWN
3. Quote text EXACTLY from the fragments as evidence - NEVER invent quotes
4. Give a short, factual explanation for your assessment
5. Be conservative: when in doubt, choose UNKNOWN

Answer ONLY in the following JSON format:
{
  "status": "PASS" | "FAIL" | "UNKNOWN",
  "reasoning": "short explanation (max 2 sentences)",
  "evidence": [
    {"page": <page number>, "quote": "<exact quote from the document>"}
  ],
  "confidence": <0.0-1.0>
}"""

USER_PROMPT_TEMPLATE = """CRITERION TO CHECK:
{check_text}

DOCUMENT FRAGMENTS:
{context}

Assess whether this criterion is satisfied in the financial statements. Answer in JSON format."""


class RawVerdict(BaseModel):
    """Untrusted verdict as answered by the model; every field is optional."""

    model_config = ConfigDict(extra="ignore")

    status: Any = Field(None, description="Status literal as answered")
    reasoning: Any = Field(None, description="Explanation as answered")
    evidence: Any = Field(None, description="Evidence entries as answered")
    confidence: Any = Field(None, description="Confidence as answered")


def normalize_status(status: Any) -> CheckStatus:
    """Map an answered status literal to PASS, FAIL or UNKNOWN."""
    normalized = str(status).strip().upper() if status is not None else ""
    if normalized == CheckStatus.PASS.value:
        return CheckStatus.PASS
    if normalized == CheckStatus.FAIL.value:
        return CheckStatus.FAIL
    return CheckStatus.UNKNOWN


def clamp_confidence(confidence: Any) -> float:
    """Coerce the answered confidence into [0, 1]."""
    if confidence is None or isinstance(confidence, bool):
        return DEFAULT_CONFIDENCE
    try:
        value = float(confidence)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if value != value:  # NaN
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, value))


def _page_number(page: Any) -> int:
    try:
        page = int(page)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def verify_quote(quote: Any, corpus: str) -> str:
    """
    Check that a quote is grounded in the lower-cased chunk corpus.

    Returns:
        The quote, truncated to the maximum quote length

    Raises:
        EvidenceValidationError: If the quote is too short or not found
    """
    if not isinstance(quote, str) or len(quote) < MIN_QUOTE_LENGTH:
        raise EvidenceValidationError("Quote is missing or too short")

    prefix = quote.lower()[:QUOTE_MATCH_WINDOW][:QUOTE_MATCH_PREFIX]
    if prefix not in corpus:
        raise EvidenceValidationError(f"Quote not found in document fragments: {prefix!r}")

    return quote[:MAX_QUOTE_LENGTH]


def ground_evidence(evidence: Any, chunks: Sequence[RetrievedChunk]) -> List[Evidence]:
    """Keep only evidence entries whose quote appears in the chunks."""
    if not isinstance(evidence, list):
        return []

    corpus = " ".join(chunk.content.lower() for chunk in chunks)
    grounded: List[Evidence] = []

    for entry in evidence:
        if not isinstance(entry, dict):
            continue
        try:
            quote = verify_quote(entry.get("quote"), corpus)
        except EvidenceValidationError as e:
            logger.debug(f"Dropping evidence: {e}")
            continue

        grounded.append(Evidence(page=_page_number(entry.get("page")), quote=quote))
        if len(grounded) >= MAX_EVIDENCE:
            break

    return grounded


def validate_verdict(raw: Any, chunks: Sequence[RetrievedChunk]) -> CheckVerdict:
    """
    Turn an untrusted model answer into a verdict.

    Raises:
        ProviderError: If the answer is not a JSON object
    """
    try:
        parsed = RawVerdict.model_validate(raw)
    except ValidationError as e:
        raise ProviderError(f"Malformed evaluation response: {e}") from e

    reasoning = parsed.reasoning if isinstance(parsed.reasoning, str) and parsed.reasoning.strip() else NO_REASONING

    return CheckVerdict(
        status=normalize_status(parsed.status),
        reasoning=reasoning,
        evidence=ground_evidence(parsed.evidence, chunks),
        confidence=clamp_confidence(parsed.confidence),
    )


class ChecklistEvaluator:
    """
    Evaluator for single checklist criteria.

    A missing completion provider or an empty chunk list yields a fixed
    UNKNOWN verdict; provider failures yield an UNKNOWN verdict carrying
    the error text. evaluate() never raises for provider problems.
    """

    def __init__(self, completion_provider: Optional[CompletionProvider] = None,
                 config: Optional[ComplianceConfig] = None):
        """Initialize the evaluator."""
        self.completion_provider = completion_provider
        self.config = config or ComplianceConfig()
        self.logger = logging.getLogger(__name__)

    def build_user_prompt(self, check_text: str, chunks: Sequence[RetrievedChunk]) -> str:
        return USER_PROMPT_TEMPLATE.format(check_text=check_text, context=format_context(chunks))

    async def evaluate(self, check_text: str, chunks: Sequence[RetrievedChunk]) -> CheckVerdict:
        """
        Evaluate one criterion against its retrieved chunks.

        Args:
            check_text: Text of the checklist criterion
            chunks: Chunks returned by the retriever for the criterion

        Returns:
            Validated verdict
        """
        if self.completion_provider is None:
            return CheckVerdict.unknown(NOT_CONFIGURED_REASONING)

        if not chunks:
            return CheckVerdict.unknown(NO_CONTENT_REASONING)

        try:
            raw = await self.completion_provider.complete(SYSTEM_PROMPT, self.build_user_prompt(check_text, chunks))
            return validate_verdict(raw, chunks)
        except Exception as e:
            self.logger.error(f"Error evaluating checklist item: {e}")
            return CheckVerdict.unknown(f"Error during evaluation: {e}")

    async def evaluate_batch(self, items: Sequence[Tuple[str, Sequence[RetrievedChunk]]],
                             concurrency: Optional[int] = None,
                             on_progress: Optional[Callable[[int, int], None]] = None) -> List[CheckVerdict]:
        """
        Evaluate several criteria in bounded concurrent batches.

        Args:
            items: (check_text, chunks) pairs
            concurrency: Items evaluated at once (overrides config)
            on_progress: Called with (completed, total) after each batch

        Returns:
            Verdicts in input order
        """
        concurrency = concurrency or self.config.jobs.concurrency
        verdicts: List[CheckVerdict] = []

        for start in range(0, len(items), concurrency):
            batch = items[start:start + concurrency]
            verdicts.extend(await asyncio.gather(
                *(self.evaluate(check_text, chunks) for check_text, chunks in batch)
            ))

            if on_progress:
                on_progress(min(start + concurrency, len(items)), len(items))

            if start + concurrency < len(items):
                await asyncio.sleep(self.config.jobs.batch_delay_seconds)

        return verdicts
