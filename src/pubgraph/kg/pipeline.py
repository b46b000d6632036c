"""Per-record extraction and ingestion pipeline."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from cli.model_client import ExtractionClient, ExtractionClientError, ModelOptions
from cli.telemetry import PipelineMetrics, get_metrics
from pubgraph.db.ingest import GraphIngestor
from pubgraph.sources import PublicationRecord

from .parser import parse_triples
from .prompts import build_prompt

logger = structlog.get_logger(__name__)


class RecordState(str, Enum):
    """Lifecycle of one record; ``INGESTED`` and ``SKIPPED`` are terminal."""

    PENDING = "pending"
    PROMPTED = "prompted"
    EXTRACTED = "extracted"
    PARSED = "parsed"
    INGESTED = "ingested"
    SKIPPED = "skipped"


@dataclass
class RecordOutcome:
    """What happened to a single record."""

    index: int
    title: str
    state: RecordState = RecordState.PENDING
    triples_parsed: int = 0
    triples_ingested: int = 0
    triples_failed: int = 0
    skip_reason: str | None = None
    error_kind: str | None = None


@dataclass
class PipelineSummary:
    """Aggregated counters for a pipeline run."""

    records_processed: int = 0
    records_ingested: int = 0
    records_skipped: int = 0
    triples_parsed: int = 0
    triples_ingested: int = 0
    triples_failed: int = 0
    cancelled: bool = False
    outcomes: list[RecordOutcome] = field(default_factory=list)

    def add(self, outcome: RecordOutcome) -> None:
        self.outcomes.append(outcome)
        self.records_processed += 1
        if outcome.state is RecordState.INGESTED:
            self.records_ingested += 1
        else:
            self.records_skipped += 1
        self.triples_parsed += outcome.triples_parsed
        self.triples_ingested += outcome.triples_ingested
        self.triples_failed += outcome.triples_failed

    def as_dict(self, *, include_outcomes: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if include_outcomes:
            data["outcomes"] = [
                {**asdict(outcome), "state": outcome.state.value} for outcome in self.outcomes
            ]
        else:
            data.pop("outcomes")
        return data


@dataclass(frozen=True)
class PipelineOptions:
    """Knobs for a pipeline run."""

    model_options: Optional[ModelOptions] = None
    max_records: Optional[int] = None
    title_snippet_length: int = 80


def process_record(
    record: PublicationRecord,
    client: ExtractionClient,
    ingestor: GraphIngestor,
    *,
    model_options: Optional[ModelOptions] = None,
    metrics: Optional[PipelineMetrics] = None,
    title_snippet_length: int = 80,
) -> RecordOutcome:
    """Drive one record from ``PENDING`` to ``INGESTED`` or ``SKIPPED``.

    Extraction failures are isolated to the record: they are logged and the
    record is skipped instead of aborting the run.
    """

    title = record.title_snippet(title_snippet_length)
    outcome = RecordOutcome(index=record.index, title=title)
    log = logger.bind(record_index=record.index, title=title)

    prompt = build_prompt(record.title, record.abstract)
    outcome.state = RecordState.PROMPTED

    try:
        raw_text = client.invoke(prompt, model_options)
    except ExtractionClientError as exc:
        outcome.state = RecordState.SKIPPED
        outcome.skip_reason = "extraction_failed"
        outcome.error_kind = exc.kind.value
        log.error(
            "pipeline.record_extraction_failed",
            kind=exc.kind.value,
            error=str(exc),
            remediation=exc.remediation,
        )
        return outcome
    outcome.state = RecordState.EXTRACTED

    triples = parse_triples(raw_text, metrics=metrics)
    outcome.state = RecordState.PARSED
    outcome.triples_parsed = len(triples)

    if not triples:
        outcome.state = RecordState.SKIPPED
        outcome.skip_reason = "no_triples"
        log.warning("pipeline.record_no_triples")
        return outcome

    result = ingestor.ingest(triples)
    outcome.triples_ingested = result.ingested
    outcome.triples_failed = result.failed
    outcome.state = RecordState.INGESTED
    log.info(
        "pipeline.record_ingested",
        triples_parsed=outcome.triples_parsed,
        triples_ingested=result.ingested,
        triples_failed=result.failed,
    )
    return outcome


def run_pipeline(
    records: Iterable[PublicationRecord],
    client: ExtractionClient,
    ingestor: GraphIngestor,
    *,
    options: Optional[PipelineOptions] = None,
    metrics: Optional[PipelineMetrics] = None,
    cancel_event: Optional[threading.Event] = None,
    on_record: Optional[Callable[[RecordOutcome], None]] = None,
) -> PipelineSummary:
    """Process ``records`` strictly one at a time, in source order.

    ``cancel_event`` is checked between records; once set, no further records
    are started and the summary is marked cancelled.
    """

    opts = options or PipelineOptions()
    metrics = metrics or get_metrics()
    summary = PipelineSummary()

    logger.info(
        "pipeline.started",
        model=client.model_id,
        provider=client.provider,
        max_records=opts.max_records,
    )
    for record in records:
        if cancel_event is not None and cancel_event.is_set():
            summary.cancelled = True
            logger.warning("pipeline.cancelled", records_processed=summary.records_processed)
            break
        if opts.max_records is not None and summary.records_processed >= opts.max_records:
            logger.info("pipeline.max_records_reached", max_records=opts.max_records)
            break

        # Parser and ingestor warnings inherit the record context.
        with structlog.contextvars.bound_contextvars(
            record_index=record.index,
            title=record.title_snippet(opts.title_snippet_length),
        ):
            logger.info("pipeline.record_started")
            outcome = process_record(
                record,
                client,
                ingestor,
                model_options=opts.model_options,
                metrics=metrics,
                title_snippet_length=opts.title_snippet_length,
            )
        metrics.observe_record(state=outcome.state.value)
        summary.add(outcome)
        if on_record is not None:
            on_record(outcome)

    logger.info("pipeline.completed", **summary.as_dict())
    return summary


__all__ = [
    "PipelineOptions",
    "PipelineSummary",
    "RecordOutcome",
    "RecordState",
    "process_record",
    "run_pipeline",
]
