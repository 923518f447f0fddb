"""Enrich, measure and hand conversation content to an export destination"""

import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Union

from .destinations import DestinationKind, FileDestination, LinkedAppDestination
from ..exceptions import (
    BudgetExceeded,
    DeliveryFailed,
    EmptyContent,
    EnrichmentTimeout,
    SummarizationFailed,
)
from ..utils.race import race

logger = logging.getLogger(__name__)

ENRICHMENT_TIMEOUT_SECONDS = 5.0
SUMMARY_MAX_LENGTH = 1000

Destination = Union[LinkedAppDestination, FileDestination]
Enricher = Callable[[str], Awaitable[str]]
Summarizer = Callable[[str, int], Awaitable[str]]


@dataclass(frozen=True)
class ExportArtifact:
    """
    The outcome of one export run; never modified after creation.

    encoded_length is measured the way the destination counts: percent-encoded
    characters for the linked app, UTF-8 bytes for a file. After fallback()
    over_budget still records that the content did not fit the linked app,
    while budget is None and encoded_length is the file size.
    """
    raw_content: str
    enriched_content: str
    content: str
    encoded_length: int
    budget: Optional[int]
    over_budget: bool
    summarized: bool
    destination_kind: DestinationKind

    @property
    def enriched(self) -> bool:
        return self.enriched_content != self.raw_content


class ExportPipeline:
    """
    Prepares an ExportArtifact for a destination.

    Enrichment runs at most once per prepare() and never over a summary.
    When the result does not fit a size-limited destination the caller
    chooses: summarize() it, or fallback() to an unconstrained destination.
    Nothing is ever truncated.
    """

    def __init__(
        self,
        enricher: Enricher,
        summarizer: Summarizer,
        enrichment_timeout: float = ENRICHMENT_TIMEOUT_SECONDS,
        summary_max_length: int = SUMMARY_MAX_LENGTH,
    ):
        self._enrich = enricher
        self._summarize = summarizer
        self.enrichment_timeout = enrichment_timeout
        self.summary_max_length = summary_max_length

    async def prepare(self, content: str, destination: Destination) -> ExportArtifact:
        """
        Enrich content and measure it against the destination budget.

        Raises:
            EmptyContent: content is empty or whitespace only

        Returns:
            ExportArtifact; over_budget=True means the caller must choose
            between summarize() and fallback()
        """
        if not content or not content.strip():
            raise EmptyContent("Nothing to export")

        enriched = await self._enrich_bounded(content)
        encoded_length = destination.encoded_length(enriched)
        budget = destination.budget
        over_budget = budget is not None and encoded_length > budget

        if over_budget:
            logger.warning(
                f"Content too long for {destination.kind.value} "
                f"({encoded_length} > {budget} encoded characters)"
            )

        return ExportArtifact(
            raw_content=content,
            enriched_content=enriched,
            content=enriched,
            encoded_length=encoded_length,
            budget=budget,
            over_budget=over_budget,
            summarized=False,
            destination_kind=destination.kind,
        )

    async def _enrich_bounded(self, content: str) -> str:
        """Enrichment result, or content unchanged on timeout or failure"""
        try:
            operation = self._enrich(content)
        except Exception as e:
            logger.info(f"Skipping enrichment, using original content: {e}")
            return content

        outcome = await race(operation, self.enrichment_timeout)

        if outcome.timed_out:
            error = EnrichmentTimeout(f"No enrichment after {self.enrichment_timeout:.1f}s")
            logger.info(f"Skipping enrichment, using original content: {error}")
            return content

        if outcome.error is not None:
            logger.info(f"Skipping enrichment, using original content: {outcome.error}")
            return content

        if not isinstance(outcome.value, str) or not outcome.value.strip():
            logger.info("Enrichment returned nothing usable, using original content")
            return content

        logger.debug(f"Enriched content in {outcome.elapsed * 1000:.0f}ms")
        return outcome.value

    async def summarize(self, artifact: ExportArtifact, destination: Destination) -> ExportArtifact:
        """
        Replace the artifact's content with a model-written summary.

        The summary is measured again for reporting only; it is not enriched.

        Raises:
            SummarizationFailed: the summarizer failed or returned nothing
        """
        if artifact.summarized:
            return artifact

        try:
            summary = await self._summarize(artifact.raw_content, self.summary_max_length)
        except SummarizationFailed:
            raise
        except Exception as e:
            raise SummarizationFailed(f"Summarization failed: {e}") from e

        if not summary or not summary.strip():
            raise SummarizationFailed("Summarization returned no content")

        encoded_length = destination.encoded_length(summary)
        budget = destination.budget
        over_budget = budget is not None and encoded_length > budget
        logger.info(
            f"Summarized {len(artifact.raw_content)} -> {len(summary)} characters "
            f"(encoded {encoded_length}, budget {budget})"
        )

        return replace(
            artifact,
            content=summary,
            encoded_length=encoded_length,
            budget=budget,
            over_budget=over_budget,
            summarized=True,
            destination_kind=destination.kind,
        )

    def fallback(self, artifact: ExportArtifact, destination: FileDestination) -> ExportArtifact:
        """Re-target the enriched, untruncated content at an unconstrained destination"""
        if destination.budget is not None:
            raise ValueError("Fallback destination must be unconstrained")
        return replace(
            artifact,
            content=artifact.enriched_content,
            encoded_length=destination.encoded_length(artifact.enriched_content),
            budget=None,
            summarized=False,
            destination_kind=destination.kind,
        )

    def deliver(self, artifact: ExportArtifact, destination: Destination, sink) -> object:
        """
        Hand a confirmed artifact to the sink.

        Raises:
            BudgetExceeded: the destination is size limited and the artifact
                does not fit; the caller must use an unconstrained destination
            DeliveryFailed: the sink failed
        """
        budget = destination.budget
        if budget is not None:
            encoded_length = destination.encoded_length(artifact.content)
            if artifact.over_budget or encoded_length > budget:
                raise BudgetExceeded(artifact)

        try:
            return sink.deliver(artifact, destination)
        except DeliveryFailed:
            raise
        except Exception as e:
            raise DeliveryFailed(f"Could not deliver to {destination.kind.value}: {e}") from e
