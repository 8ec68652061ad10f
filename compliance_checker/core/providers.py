"""
Embedding and completion providers.

This module defines the provider contracts the pipeline depends on and
their OpenAI implementations built on LangChain. Provider failures are
reported as ProviderError; a missing API key means no provider at all.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional

from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from ..utils.config import ComplianceConfig
from ..utils.exceptions import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Turns texts into fixed-length vectors."""

    model_name: str = "unknown"

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a list of texts, preserving order."""

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single query text."""
        vectors = await self.embed([text])
        if not vectors:
            raise ProviderError("Embedding provider returned no vector for the query")
        return vectors[0]


class CompletionProvider(ABC):
    """Produces a structured JSON answer for a system/user prompt pair."""

    model_name: str = "unknown"

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        """Return the decoded JSON object answered by the model."""


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider backed by OpenAI embeddings.

    Texts are sent in batches of at most ``embedding_batch_size`` with a
    short pause between batches to stay within rate limits.
    """

    def __init__(self, config: Optional[ComplianceConfig] = None, embeddings: Optional[OpenAIEmbeddings] = None):
        """Initialize the embedding provider."""
        self.config = config or ComplianceConfig()
        if embeddings is None and not self.config.has_openai_key:
            raise ConfigurationError("OpenAI API key is not configured for embeddings")
        self.logger = logging.getLogger(__name__)
        self.model_name = self.config.models.embedding_model
        self.embeddings = embeddings or self._initialize_embeddings()

    def _initialize_embeddings(self) -> OpenAIEmbeddings:
        """Initialize the embedding model."""
        models = self.config.models
        embeddings = OpenAIEmbeddings(
            model=models.embedding_model,
            dimensions=models.embedding_dimensions,
            api_key=models.openai_api_key,
            max_retries=self.config.jobs.max_provider_retries,
        )
        self.logger.info(f"Initialized embeddings with model: {models.embedding_model}")
        return embeddings

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Embed texts in batches.

        Args:
            texts: Texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            ProviderError: If any batch fails; vectors of earlier batches
                are discarded together with the failed one
        """
        models = self.config.models
        batch_size = models.embedding_batch_size
        total_batches = (len(texts) + batch_size - 1) // batch_size
        vectors: List[List[float]] = []

        self.logger.info(f"Generating embeddings for {len(texts)} texts in {total_batches} batches")

        for batch_number, start in enumerate(range(0, len(texts), batch_size), 1):
            batch = [text[:models.embedding_max_input_chars] for text in texts[start:start + batch_size]]
            self.logger.debug(f"Processing embedding batch {batch_number}/{total_batches} ({len(batch)} texts)")

            try:
                batch_vectors = await self.embeddings.aembed_documents(batch)
            except Exception as e:
                raise ProviderError(f"Embedding batch {batch_number}/{total_batches} failed: {e}") from e

            if len(batch_vectors) != len(batch):
                raise ProviderError(
                    f"Embedding batch {batch_number}/{total_batches} returned "
                    f"{len(batch_vectors)} vectors for {len(batch)} texts"
                )
            vectors.extend(batch_vectors)

            if start + batch_size < len(texts):
                await asyncio.sleep(models.embedding_batch_delay_seconds)

        self.logger.info(f"Generated {len(vectors)} embeddings successfully")
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        try:
            return await self.embeddings.aembed_query(text[:self.config.models.embedding_max_input_chars])
        except Exception as e:
            raise ProviderError(f"Query embedding failed: {e}") from e


class OpenAICompletionProvider(CompletionProvider):
    """
    Completion provider backed by an OpenAI chat model in JSON mode.

    The chain is ``prompt | llm | JsonOutputParser`` and every call is
    bounded by the configured completion timeout.
    """

    def __init__(self, config: Optional[ComplianceConfig] = None, llm: Optional[ChatOpenAI] = None):
        """Initialize the completion provider."""
        self.config = config or ComplianceConfig()
        if llm is None and not self.config.has_openai_key:
            raise ConfigurationError("OpenAI API key is not configured for completions")
        self.logger = logging.getLogger(__name__)
        self.model_name = self.config.models.openai_model

        self.llm = llm or self._initialize_llm()
        self.prompt = ChatPromptTemplate.from_messages([
            ("system", "{system_prompt}"),
            ("human", "{user_prompt}"),
        ])
        self.chain = (
            self.prompt
            | self.llm.bind(response_format={"type": "json_object"})
            | JsonOutputParser()
        )

    def _initialize_llm(self) -> ChatOpenAI:
        """Initialize the chat model."""
        models = self.config.models
        llm = ChatOpenAI(
            model=models.openai_model,
            temperature=models.openai_temperature,
            max_tokens=models.openai_max_tokens,
            api_key=models.openai_api_key,
            timeout=self.config.jobs.completion_timeout_seconds,
            max_retries=self.config.jobs.max_provider_retries,
        )
        self.logger.info(f"Initialized LLM: {models.openai_model}")
        return llm

    async def complete(self, system_prompt: str, user_prompt: str) -> Dict[str, Any]:
        timeout = self.config.jobs.completion_timeout_seconds
        try:
            result = await asyncio.wait_for(
                self.chain.ainvoke({"system_prompt": system_prompt, "user_prompt": user_prompt}),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Completion timed out after {timeout:.0f}s") from e
        except Exception as e:
            raise ProviderError(f"Completion failed: {e}") from e

        if not isinstance(result, dict):
            raise ProviderError(f"Completion returned {type(result).__name__} instead of a JSON object")
        return result


def create_embedding_provider(config: Optional[ComplianceConfig] = None) -> Optional[EmbeddingProvider]:
    """Create the embedding provider, or None when no API key is configured."""
    config = config or ComplianceConfig()
    try:
        return OpenAIEmbeddingProvider(config)
    except ConfigurationError as e:
        logger.warning(f"{e}; chunks are stored without embeddings")
        return None


def create_completion_provider(config: Optional[ComplianceConfig] = None) -> Optional[CompletionProvider]:
    """Create the completion provider, or None when no API key is configured."""
    config = config or ComplianceConfig()
    try:
        return OpenAICompletionProvider(config)
    except ConfigurationError as e:
        logger.warning(f"{e}; checklist items will be evaluated as UNKNOWN")
        return None
