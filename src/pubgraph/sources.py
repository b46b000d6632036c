"""Publication record source backed by a CSV file."""

from __future__ import annotations

import csv
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_TITLE_COLUMN = "PublicationTitle"
DEFAULT_ABSTRACT_COLUMN = "Abstract"


class RecordSourceError(RuntimeError):
    """Raised when the tabular input cannot be opened or decoded."""


@dataclass(frozen=True)
class PublicationRecord:
    """A single publication row; ``index`` is its 1-based position among non-empty rows."""

    index: int
    title: str
    abstract: str

    def title_snippet(self, limit: int = 80) -> str:
        if len(self.title) <= limit:
            return self.title
        return f"{self.title[:limit]}..."


class CsvRecordSource:
    """Iterate publication records from a CSV file with a header row.

    Rows are read lazily; iteration order is file order. Missing columns and
    empty cells default to ``""``; rows with no content at all are skipped.
    """

    def __init__(
        self,
        path: Path,
        *,
        title_column: str = DEFAULT_TITLE_COLUMN,
        abstract_column: str = DEFAULT_ABSTRACT_COLUMN,
        encoding: str = "utf-8-sig",
    ) -> None:
        self.path = Path(path)
        self.title_column = title_column
        self.abstract_column = abstract_column
        self.encoding = encoding

    def __iter__(self) -> Iterator[PublicationRecord]:
        try:
            handle = self.path.open("r", encoding=self.encoding, newline="")
        except OSError as exc:
            raise RecordSourceError(f"Unable to open record source {self.path}: {exc}") from exc

        with handle:
            reader = csv.DictReader(handle)
            try:
                fieldnames = reader.fieldnames
                if fieldnames is None:
                    logger.warning("records.empty_source", path=str(self.path))
                    return
                missing = {self.title_column, self.abstract_column} - set(fieldnames)
                if missing:
                    logger.warning(
                        "records.missing_columns",
                        path=str(self.path),
                        missing=sorted(missing),
                        available=list(fieldnames),
                    )
                index = 0
                for row in reader:
                    if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
                        continue
                    index += 1
                    yield PublicationRecord(
                        index=index,
                        title=(row.get(self.title_column) or "").strip(),
                        abstract=(row.get(self.abstract_column) or "").strip(),
                    )
            except (csv.Error, UnicodeDecodeError) as exc:
                raise RecordSourceError(
                    f"Malformed record source {self.path} near line {reader.line_num}: {exc}"
                ) from exc

    def count(self) -> int:
        """Return the number of records without retaining them."""

        return sum(1 for _ in self)


__all__ = [
    "CsvRecordSource",
    "DEFAULT_ABSTRACT_COLUMN",
    "DEFAULT_TITLE_COLUMN",
    "PublicationRecord",
    "RecordSourceError",
]
