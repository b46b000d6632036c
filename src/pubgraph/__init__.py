"""Extract biomedical relationship triples from abstracts into a property graph."""

__version__ = "0.1.0"

__all__ = ["__version__"]
