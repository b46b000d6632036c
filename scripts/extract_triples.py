#!/usr/bin/env python
"""CLI wrapper delegating to pubgraph.cli.extract_main."""

from __future__ import annotations

from pubgraph.cli.extract_main import main


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
