import asyncio
import time
from dataclasses import FrozenInstanceError

import pytest

from idea_capture.exceptions import (
    BudgetExceeded,
    DeliveryFailed,
    EmptyContent,
    SummarizationFailed,
)
from idea_capture.export.destinations import (
    DestinationKind,
    FileDestination,
    LinkedAppDestination,
    encode_uri_component,
)
from idea_capture.export.pipeline import ExportPipeline


class FakeEnricher:
    def __init__(self, transform=lambda text: text, delay=0.0, error=None, never=False):
        self.transform = transform
        self.delay = delay
        self.error = error
        self.never = never
        self.calls = []

    async def __call__(self, text):
        self.calls.append(text)
        if self.never:
            await asyncio.Event().wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.transform(text)


class FakeSummarizer:
    def __init__(self, summary="## Overview\n[[Idea]] in short", error=None):
        self.summary = summary
        self.error = error
        self.calls = []

    async def __call__(self, text, max_length):
        self.calls.append((text, max_length))
        if self.error:
            raise self.error
        return self.summary


class FakeSink:
    def __init__(self, error=None):
        self.error = error
        self.delivered = []

    def deliver(self, artifact, destination):
        if self.error:
            raise self.error
        self.delivered.append((artifact, destination))
        return "ok"


def linked_app(budget: int) -> LinkedAppDestination:
    base = LinkedAppDestination("Vault", "idea-2024-01-15.md")
    return LinkedAppDestination(
        "Vault",
        "idea-2024-01-15.md",
        max_uri_length=len(base.base_uri) + base.safety_margin + budget,
    )


@pytest.fixture
def file_destination(tmp_path):
    return FileDestination(tmp_path, "idea-2024-01-15.md")


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
def test_empty_content_rejected_without_enrichment(content):
    enricher = FakeEnricher()
    pipeline = ExportPipeline(enricher, FakeSummarizer())

    with pytest.raises(EmptyContent):
        asyncio.run(pipeline.prepare(content, linked_app(100)))
    assert enricher.calls == []


def test_under_budget_artifact_uses_enriched_content():
    enricher = FakeEnricher(transform=lambda t: t.replace("SaaS", "[[SaaS]]"))
    pipeline = ExportPipeline(enricher, FakeSummarizer())

    artifact = asyncio.run(pipeline.prepare("A SaaS idea", linked_app(500)))

    assert artifact.raw_content == "A SaaS idea"
    assert artifact.enriched_content == "A [[SaaS]] idea"
    assert artifact.content == artifact.enriched_content
    assert artifact.encoded_length == len(encode_uri_component("A [[SaaS]] idea"))
    assert artifact.over_budget is False
    assert artifact.summarized is False
    assert artifact.destination_kind is DestinationKind.LINKED_APP


def test_already_linked_content_passes_through_unchanged():
    enricher = FakeEnricher()
    pipeline = ExportPipeline(enricher, FakeSummarizer())

    artifact = asyncio.run(pipeline.prepare("hello [[world]]", linked_app(500)))

    assert artifact.enriched_content == "hello [[world]]"
    assert artifact.encoded_length == len("hello%20%5B%5Bworld%5D%5D")
    assert enricher.calls == ["hello [[world]]"]


def test_hanging_enrichment_times_out_to_raw_content():
    pipeline = ExportPipeline(FakeEnricher(never=True), FakeSummarizer(), enrichment_timeout=0.05)

    started = time.monotonic()
    artifact = asyncio.run(pipeline.prepare("an idea", linked_app(500)))
    elapsed = time.monotonic() - started

    assert artifact.enriched_content == artifact.raw_content == "an idea"
    assert elapsed < 1.0


def test_failed_enrichment_degrades_to_raw_content():
    pipeline = ExportPipeline(FakeEnricher(error=RuntimeError("rate limited")), FakeSummarizer())

    artifact = asyncio.run(pipeline.prepare("an idea", linked_app(500)))

    assert artifact.enriched_content == "an idea"
    assert artifact.over_budget is False


def test_blank_enrichment_result_is_ignored():
    pipeline = ExportPipeline(FakeEnricher(transform=lambda t: "  "), FakeSummarizer())

    artifact = asyncio.run(pipeline.prepare("an idea", linked_app(500)))

    assert artifact.enriched_content == "an idea"


def test_late_enrichment_result_is_not_applied():
    enricher = FakeEnricher(transform=lambda t: "LATE " + t, delay=0.1)
    pipeline = ExportPipeline(enricher, FakeSummarizer(), enrichment_timeout=0.02)

    async def scenario():
        artifact = await pipeline.prepare("an idea", linked_app(500))
        await asyncio.sleep(0.2)
        return artifact

    artifact = asyncio.run(scenario())

    assert artifact.enriched_content == "an idea"
    assert artifact.content == "an idea"


def test_budget_boundary_is_inclusive():
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())
    destination = linked_app(10)

    at_budget = asyncio.run(pipeline.prepare("a" * 10, destination))
    one_over = asyncio.run(pipeline.prepare("a" * 11, destination))

    assert destination.budget == 10
    assert at_budget.encoded_length == 10
    assert at_budget.over_budget is False
    assert one_over.encoded_length == 11
    assert one_over.over_budget is True


def test_over_budget_is_not_truncated():
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())
    content = "word " * 100

    artifact = asyncio.run(pipeline.prepare(content, linked_app(50)))

    assert artifact.over_budget is True
    assert artifact.content == content
    assert artifact.budget == 50


def test_summarize_never_reenriches():
    enricher = FakeEnricher(transform=lambda t: t + " [[linked]]")
    summarizer = FakeSummarizer(summary="short [[summary]]")
    pipeline = ExportPipeline(enricher, summarizer, summary_max_length=1000)
    destination = linked_app(60)

    async def scenario():
        artifact = await pipeline.prepare("long " * 50, destination)
        return artifact, await pipeline.summarize(artifact, destination)

    artifact, summarized = asyncio.run(scenario())

    assert artifact.over_budget is True
    assert summarized.summarized is True
    assert summarized.content == "short [[summary]]"
    assert summarized.encoded_length == len(encode_uri_component("short [[summary]]"))
    assert summarized.over_budget is False
    assert summarized.raw_content == artifact.raw_content
    assert len(enricher.calls) == 1
    assert summarizer.calls == [(artifact.raw_content, 1000)]


def test_summarizing_a_summary_is_a_noop():
    summarizer = FakeSummarizer(summary="tiny")
    pipeline = ExportPipeline(FakeEnricher(), summarizer)
    destination = linked_app(20)

    async def scenario():
        artifact = await pipeline.prepare("long " * 50, destination)
        once = await pipeline.summarize(artifact, destination)
        return once, await pipeline.summarize(once, destination)

    once, twice = asyncio.run(scenario())

    assert twice is once
    assert len(summarizer.calls) == 1


@pytest.mark.parametrize("summarizer", [
    FakeSummarizer(error=RuntimeError("API down")),
    FakeSummarizer(error=SummarizationFailed("quota")),
    FakeSummarizer(summary="   "),
])
def test_summarization_failure_is_surfaced(summarizer):
    pipeline = ExportPipeline(FakeEnricher(), summarizer)
    destination = linked_app(20)

    async def scenario():
        artifact = await pipeline.prepare("long " * 50, destination)
        await pipeline.summarize(artifact, destination)

    with pytest.raises(SummarizationFailed):
        asyncio.run(scenario())


def test_primary_delivery_refused_when_summary_still_too_long():
    sink = FakeSink()
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer(summary="still long " * 20))
    destination = linked_app(20)

    async def scenario():
        artifact = await pipeline.prepare("long " * 50, destination)
        return await pipeline.summarize(artifact, destination)

    summarized = asyncio.run(scenario())

    assert summarized.over_budget is True
    with pytest.raises(BudgetExceeded) as excinfo:
        pipeline.deliver(summarized, destination, sink)
    assert excinfo.value.artifact is summarized
    assert sink.delivered == []


def test_fallback_delivers_untruncated_enriched_content(file_destination):
    sink = FakeSink()
    enricher = FakeEnricher(transform=lambda t: t.upper())
    pipeline = ExportPipeline(enricher, FakeSummarizer())
    content = "long " * 50

    artifact = asyncio.run(pipeline.prepare(content, linked_app(20)))
    fallback = pipeline.fallback(artifact, file_destination)
    result = pipeline.deliver(fallback, file_destination, sink)

    assert result == "ok"
    assert fallback.content == content.upper()
    assert fallback.over_budget is True
    assert fallback.budget is None
    assert fallback.encoded_length == len(content.upper().encode("utf-8"))
    assert fallback.destination_kind is DestinationKind.FILE
    assert sink.delivered == [(fallback, file_destination)]
    assert len(enricher.calls) == 1


def test_fallback_requires_unconstrained_destination():
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())
    artifact = asyncio.run(pipeline.prepare("long " * 50, linked_app(20)))

    with pytest.raises(ValueError):
        pipeline.fallback(artifact, linked_app(20))


def test_file_destination_is_never_over_budget(file_destination):
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())

    artifact = asyncio.run(pipeline.prepare("x" * 10000, file_destination))

    assert artifact.over_budget is False
    assert artifact.budget is None
    assert artifact.encoded_length == 10000


def test_deliver_under_budget_calls_sink_once():
    sink = FakeSink()
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())
    destination = linked_app(500)

    artifact = asyncio.run(pipeline.prepare("an idea", destination))
    pipeline.deliver(artifact, destination, sink)

    assert sink.delivered == [(artifact, destination)]


def test_sink_errors_become_delivery_failed(file_destination):
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())
    artifact = asyncio.run(pipeline.prepare("an idea", file_destination))

    with pytest.raises(DeliveryFailed):
        pipeline.deliver(artifact, file_destination, FakeSink(error=OSError("disk full")))


def test_artifact_is_immutable():
    pipeline = ExportPipeline(FakeEnricher(), FakeSummarizer())
    artifact = asyncio.run(pipeline.prepare("an idea", linked_app(500)))

    with pytest.raises(FrozenInstanceError):
        artifact.content = "changed"
