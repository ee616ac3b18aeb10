"""
Shared utilities for the proposal exporter.

Usage:
    from budget_export.utils import configure_utf8, save_csv, save_json, output_path
"""

import json
import os
import sys
from pathlib import Path
from typing import Any

import polars as pl

from .exceptions import ExportError


def configure_utf8() -> None:
    """Force UTF-8 stdout on Windows to avoid cp1252 encoding errors.

    Label values are Chinese, so call this before printing anything.
    Safe to call multiple times.
    """
    if sys.stdout.encoding and sys.stdout.encoding.lower() != "utf-8":
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")


def output_path(root: Path, name: str) -> Path:
    """Join ``name`` onto ``root``, refusing names that are not a plain file in ``root``.

    Year values come from the remote API and are used verbatim in file names,
    so a value like ``../x`` or ``x/../y`` must not reach the filesystem.
    """
    if any(sep and sep in name for sep in (os.sep, os.altsep)):
        raise ExportError(f"Refusing to write {name!r}: file name contains a path separator")
    root = root.resolve()
    path = (root / name).resolve()
    if path.parent != root:
        raise ExportError(f"Refusing to write {name!r} outside {root}")
    return path


def save_csv(rows: list[dict], path: Path, columns: list[str]) -> int:
    """Write ``rows`` as UTF-8 CSV with a header, using exactly ``columns`` in order.

    Keys a row does not define are written as empty cells; extra keys are
    ignored. Empty strings are written unquoted, same as missing values.

    Returns
    -------
    int
        Number of data rows written.
    """
    schema = {col: pl.String for col in columns}
    df = pl.from_dicts(rows, schema=schema) if rows else pl.DataFrame(schema=schema)
    # Polars quotes "" but leaves nulls bare
    df = df.with_columns(
        [pl.when(pl.col(col) == "").then(None).otherwise(pl.col(col)).alias(col) for col in columns]
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    df.write_csv(path)
    return len(df)


def save_json(payload: Any, path: Path) -> Path:
    """Write ``payload`` as indented UTF-8 JSON, keeping non-ASCII text as-is."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return path
