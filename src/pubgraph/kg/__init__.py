"""Prompting and parsing for LLM triple extraction."""

from .parser import parse_triples
from .prompts import ENTITY_TYPES, build_prompt
from .triples import Triple

__all__ = [
    "ENTITY_TYPES",
    "Triple",
    "build_prompt",
    "parse_triples",
]
