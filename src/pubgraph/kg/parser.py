"""Parse line-delimited JSON model output into triples."""

from __future__ import annotations

import json
from typing import Optional

import structlog
from pydantic import ValidationError

from cli.telemetry import PipelineMetrics

from .triples import Triple

logger = structlog.get_logger(__name__)


def parse_triples(raw_text: str, *, metrics: Optional[PipelineMetrics] = None) -> list[Triple]:
    """Decode each non-blank line of ``raw_text`` as one Triple.

    Lines that are not JSON, not a JSON object, or lack a required field are
    logged at warning level and discarded; parsing continues with the next
    line. The returned list preserves input order and may be empty.
    """

    triples: list[Triple] = []
    discarded = 0
    for line_number, raw_line in enumerate(raw_text.splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except (ValueError, RecursionError) as exc:
            discarded += 1
            logger.warning(
                "triple_parser.malformed_line",
                line_number=line_number,
                line=line,
                error=str(exc),
            )
            continue
        if not isinstance(payload, dict):
            discarded += 1
            logger.warning(
                "triple_parser.invalid_triple",
                line_number=line_number,
                line=line,
                errors=[f"expected a JSON object, got {type(payload).__name__}"],
            )
            continue
        try:
            triples.append(Triple.model_validate(payload))
        except ValidationError as exc:
            discarded += 1
            logger.warning(
                "triple_parser.invalid_triple",
                line_number=line_number,
                line=line,
                errors=[
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in exc.errors()
                ],
            )

    if metrics is not None:
        metrics.observe_triples(outcome="parsed", count=len(triples))
        metrics.observe_triples(outcome="discarded", count=discarded)
    return triples


__all__ = ["parse_triples"]
