"""Canonical triple shape emitted by the extraction model."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, StrictStr

Qualifier = Union[list[StrictStr], None]
StatementQualifier = Union[list[StrictStr], StrictStr, None]


class Triple(BaseModel):
    """One extracted (subject, relationship, object) fact with optional qualifiers.

    Qualifiers keep the JSON distinction between an explicit ``null`` and an
    absent key: both read back as ``None``, and ``model_fields_set`` records
    which keys the model actually emitted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    subject: StrictStr
    subject_type: StrictStr | None = None
    subject_qualifier: Qualifier = None
    object: StrictStr
    object_type: StrictStr | None = None
    object_qualifier: Qualifier = None
    relationship: StrictStr
    statement_qualifier: StatementQualifier = None

    def describe(self) -> dict[str, Any]:
        """Compact identity used in log context."""

        return {
            "subject": self.subject,
            "relationship": self.relationship,
            "object": self.object,
        }


__all__ = ["Qualifier", "StatementQualifier", "Triple"]
