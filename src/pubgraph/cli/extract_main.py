#!/usr/bin/env python
"""Extract relationship triples from a CSV of publications into Neo4j."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from cli.model_client import ModelOptions, build_extraction_client
from cli.sanitizer import mask_uri, scrub_object
from cli.telemetry import get_metrics
from config.settings import PubGraphSettings
from pubgraph.db import GraphIngestor, InMemoryGraphStore, Neo4jGraphStore
from pubgraph.db.ingest import DEFAULT_SOURCE_TAG
from pubgraph.kg.pipeline import PipelineOptions, run_pipeline
from pubgraph.logging_setup import configure_logging
from pubgraph.sources import DEFAULT_ABSTRACT_COLUMN, DEFAULT_TITLE_COLUMN, CsvRecordSource
from pubgraph.utils import PROJECT_ROOT, ensure_directory, relative_to_repo

logger = structlog.get_logger(__name__)

DEFAULT_SOURCE = PROJECT_ROOT / "data" / "publications.csv"
DEFAULT_LOG_PATH = Path("artifacts/pubgraph/extract_run.json")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments for the extraction CLI.

    Parameters:
        argv (Sequence[str] | None): Optional list of argument strings to parse; when None the process's command-line (sys.argv) is used.

    Returns:
        argparse.Namespace: Parsed options including the CSV path, column names, model selection (--provider, --model-id), generation options, Neo4j target (--database), output paths (--log-path, --metrics-path) and the --dry-run flag.
    """
    parser = argparse.ArgumentParser(
        description="Extract subject-relationship-object triples from publication abstracts with a hosted language model and merge them into Neo4j.",
    )
    parser.add_argument(
        "csv_path",
        nargs="?",
        default=str(DEFAULT_SOURCE),
        help="CSV file with publication titles and abstracts (default: %(default)s)",
    )
    parser.add_argument(
        "--title-column",
        default=DEFAULT_TITLE_COLUMN,
        help="Column holding the publication title (default: %(default)s)",
    )
    parser.add_argument(
        "--abstract-column",
        default=DEFAULT_ABSTRACT_COLUMN,
        help="Column holding the abstract (default: %(default)s)",
    )
    parser.add_argument(
        "--provider",
        choices=("bedrock", "openai"),
        default=None,
        help="Model provider; overrides PUBGRAPH_PROVIDER.",
    )
    parser.add_argument(
        "--model-id",
        default=None,
        help="Model identifier; overrides BEDROCK_MODEL_ID / OPENAI_MODEL.",
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=None,
        help="Cap on generated tokens per record (default: settings value).",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        default=None,
        help="Sampling temperature in [0, 1] (default: settings value).",
    )
    parser.add_argument(
        "--max-records",
        type=int,
        default=None,
        help="Stop after processing this many records.",
    )
    parser.add_argument(
        "--database",
        default=None,
        help="Optional Neo4j database name (defaults to NEO4J_DATABASE or the server default)",
    )
    parser.add_argument(
        "--source-tag",
        default=DEFAULT_SOURCE_TAG,
        help="Provenance tag stored on created relationships (default: %(default)s)",
    )
    parser.add_argument(
        "--log-path",
        default=str(DEFAULT_LOG_PATH),
        help="Location for the structured JSON run log (default: %(default)s)",
    )
    parser.add_argument(
        "--metrics-path",
        default=None,
        help="Optional file receiving Prometheus text metrics after the run.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write triples to an in-memory graph instead of Neo4j.",
    )
    parser.add_argument(
        "--log-level",
        choices=_LOG_LEVELS,
        default="INFO",
        help="Logging verbosity (default: %(default)s)",
    )
    return parser.parse_args(argv)


def _ensure_positive(value: int | None, *, name: str) -> int | None:
    if value is not None and value <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return value


def run(argv: Sequence[str] | None = None, *, cancel_event: threading.Event | None = None) -> dict[str, Any]:
    """
    Execute one extraction run and return the sanitized run log.

    Raises:
        FileNotFoundError: the CSV path does not exist.
        RecordSourceError: the CSV cannot be read.
        GraphStoreError: Neo4j is unreachable at startup.
        ValueError: configuration or arguments are invalid.
    """
    args = _parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    max_records = _ensure_positive(args.max_records, name="max_records")
    _ensure_positive(args.max_tokens, name="max_tokens")

    csv_path = Path(args.csv_path).expanduser()
    if not csv_path.is_file():
        raise FileNotFoundError(f"record source not found: {csv_path}")
    source = CsvRecordSource(
        csv_path,
        title_column=args.title_column,
        abstract_column=args.abstract_column,
    )
    total_records = source.count()

    settings = PubGraphSettings.load(
        require_neo4j=not args.dry_run,
        provider=args.provider,
        model_id=args.model_id,
    )
    extraction_settings = settings.extraction
    model_options = ModelOptions(
        max_tokens=args.max_tokens or extraction_settings.max_tokens,
        temperature=(
            args.temperature if args.temperature is not None else extraction_settings.temperature
        ),
    )

    metrics = get_metrics()
    client = build_extraction_client(extraction_settings, metrics=metrics)
    model_info = client.model_info()

    neo4j_settings = settings.neo4j
    if neo4j_settings is not None and args.database:
        neo4j_settings = neo4j_settings.model_copy(update={"database": args.database})

    logger.info(
        "extract.started",
        source=str(csv_path),
        total_records=total_records,
        provider=model_info.provider,
        model=model_info.model_id,
        dry_run=bool(args.dry_run),
    )

    start = time.perf_counter()
    if args.dry_run or neo4j_settings is None:
        store: InMemoryGraphStore | Neo4jGraphStore = InMemoryGraphStore()
    else:
        store = Neo4jGraphStore.connect(neo4j_settings)

    with store:
        if isinstance(store, Neo4jGraphStore):
            store.ensure_schema()
        ingestor = GraphIngestor(store, source_tag=args.source_tag, metrics=metrics)
        summary = run_pipeline(
            source,
            client,
            ingestor,
            options=PipelineOptions(model_options=model_options, max_records=max_records),
            metrics=metrics,
            cancel_event=cancel_event,
        )
        counts = store.counts()

    duration_ms = int((time.perf_counter() - start) * 1000)
    log: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "operation": "extract_triples",
        "status": "cancelled" if summary.cancelled else "success",
        "duration_ms": duration_ms,
        "source": relative_to_repo(csv_path),
        "total_records": total_records,
        "dry_run": bool(args.dry_run),
        "model": {
            "provider": model_info.provider,
            "model_id": model_info.model_id,
            "family": model_info.family.value,
            "region": model_info.region,
            "max_tokens": model_options.max_tokens,
            "temperature": model_options.temperature,
        },
        "graph": {
            "uri": mask_uri(neo4j_settings.uri) if neo4j_settings and not args.dry_run else None,
            "database": neo4j_settings.database if neo4j_settings else None,
            "counts": counts,
        },
        "summary": summary.as_dict(),
        "records": summary.as_dict(include_outcomes=True)["outcomes"],
    }

    log_path = Path(args.log_path)
    ensure_directory(log_path)
    sanitized = scrub_object(log)
    log_path.write_text(json.dumps(sanitized, indent=2), encoding="utf-8")
    if args.metrics_path:
        metrics_path = Path(args.metrics_path)
        ensure_directory(metrics_path)
        metrics_path.write_text(metrics.export(), encoding="utf-8")
    print(json.dumps(sanitized))
    logger.info(
        "extract.completed",
        records_processed=summary.records_processed,
        records_ingested=summary.records_ingested,
        records_skipped=summary.records_skipped,
        triples_ingested=summary.triples_ingested,
        duration_ms=duration_ms,
    )
    return sanitized


def main(argv: Sequence[str] | None = None) -> int:
    """
    Run the extraction CLI and return a process-style exit code.

    Returns:
        exit_code (int): 0 when the batch completed (per-record skips included), 1 if the run aborted, 130 on interrupt.
    """
    try:
        run(argv)
        return 0
    except KeyboardInterrupt:
        print("error: interrupted", file=sys.stderr)
        logger.warning("extract.interrupted")
        return 130
    except (RuntimeError, FileNotFoundError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        logger.error("extract.error", error=str(exc))
        return 1
    except Exception as exc:  # pragma: no cover - final guard
        print(f"error: {exc}", file=sys.stderr)
        logger.exception("extract.failed", error=str(exc))
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
