"""Prompt construction for biomedical triple extraction."""

from __future__ import annotations

ENTITY_TYPES: tuple[str, ...] = (
    "organism",
    "event",
    "procedure",
    "device",
    "chemical",
    "treatment",
    "food",
    "biological process",
    "gene",
    "protein",
    "sequence variant",
    "mutation",
    "disease",
    "phenotype",
    "anatomical entity",
    "cell",
    "cohort",
    "pathway",
    "physiological process",
    "behavior",
    "location",
    "other",
)

OUTPUT_EXAMPLES: tuple[str, ...] = (
    '{"subject":"Adolescents", "subject_type":"Other", "subject_qualifier":["post-molar extraction", '
    '"Adolescents = 15", "Age (years) = 15-17"], "object":"Opioid", "object_type":"Chemical", '
    '"object_qualifier":null, "relationship":"taken", "statement_qualifier":["two days post extraction"]}',
    '{"subject":"interventions", "subject_type":"Other", "subject_qualifier":["non-pharmacological"], '
    '"object":"symptoms", "object_type":"Disease", "object_qualifier":["pain related", "psychological"], '
    '"relationship":"useful in treating", "statement_qualifier":["may","cancer patients"]}',
)

_PROMPT_TEMPLATE = """
You are a medical researcher. Complete the following tasks.

First, read the title and abstract from a scientific journal below and report a short summary of the main findings of the paper.
Title: {title}
Abstract: {abstract}


Return core triples from the title and abstract you read in. Select the subjects and objects for these core triples from the entities you listed.
Write each triple as one JSON object per line with the keys subject, subject_type, subject_qualifier, object, object_type, object_qualifier, relationship and statement_qualifier.
If additional information is needed for context, add that information in the qualifiers. If there are no qualifiers, write null instead; never omit a qualifier key.
For sequence variants or mutations, the related gene should be added to the qualifier.

Here is an example of the expected output format:
{examples}

The allowed values for subject_type and object_type are: [{entity_types}]

Return ONLY the triple JSON lines without any extra text or formatting."""


def build_prompt(title: str, abstract: str) -> str:
    """Return the extraction instruction for one publication."""

    return _PROMPT_TEMPLATE.format(
        title=title,
        abstract=abstract,
        examples="\n".join(OUTPUT_EXAMPLES),
        entity_types=", ".join(ENTITY_TYPES),
    )


__all__ = ["ENTITY_TYPES", "OUTPUT_EXAMPLES", "build_prompt"]
