"""
Export budget proposals from the Keystone GraphQL API into per-year files.

Queries used:
  ProposalCount  -- proposalsCount(where)         → total available
  ProposalBatch  -- proposals(take, skip, where)  → one page, ordered by id

Strategy:
  - Count first, only to report the target (min(total, max_records)).
  - Page with take=batch_size, skip advancing by the full page length.
    Stop on an empty page, a short page, or once max_records rows are used.
    Rows past the cap on the last page are dropped.
  - Bucket rows by proposal year ("unknown" when absent), keeping arrival order.
  - Nothing is written until every page has been fetched; a failure mid-run
    leaves no partial output.
  - Output, per year:
      proposals_year_<year>.csv   all 26 columns, fixed order
      proposals_year_<year>.json  rows without last_synced_at or blank fields
      metadata_year_<year>.json   year, yearId, generatedAt, recordCount
    and once per run proposals_metadata.json (skipped when nothing matched).

Usage:
    budget-export                         # settings from env / .env
    budget-export --max-records 500 --batch-size 100
    budget-export --where '{"publishStatus": {"equals": "draft"}}'
"""

import argparse
import dataclasses
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Protocol

from dotenv import load_dotenv

from .config import ExportConfig, load_config, parse_positive_int, parse_where, resolve_output_dir
from .gql_client import KeystoneClient
from .transforms import (
    CSV_COLUMNS,
    flatten_proposal,
    prune_empty_fields,
    year_key,
)
from .utils import configure_utf8, output_path, save_csv, save_json

configure_utf8()


class ProposalSource(Protocol):
    def count_proposals(self, where: dict) -> int: ...

    def fetch_proposals(self, where: dict, take: int, skip: int) -> list[dict]: ...


def _utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def iter_proposal_pages(
    client: ProposalSource,
    where: dict,
    batch_size: int,
    max_records: int,
    *,
    target: int | None = None,
) -> Iterator[list[dict]]:
    """
    Yield the usable part of each fetched page, in server order.

    Parameters
    ----------
    client : ProposalSource
        Anything with ``fetch_proposals(where, take, skip)``.
    batch_size : int
        ``take`` for every request; a shorter page ends the loop.
    max_records : int
        Total rows to yield across all pages. Nothing is requested when
        this is 0 or negative.
    target : int, optional
        Shown in progress lines only.
    """
    skip = 0
    processed = 0
    remaining = max_records

    while remaining > 0:
        batch = client.fetch_proposals(where, take=batch_size, skip=skip)
        if not batch:
            break

        usable = batch[:remaining]
        processed += len(usable)
        remaining -= len(usable)
        # Offset follows what the server returned, not what was kept
        skip += len(batch)
        print(f"  ...processed {processed}/{target if target is not None else '?'} proposals")

        yield usable

        if len(batch) < batch_size:
            break


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------


def add_to_buckets(buckets: dict[str, dict], proposals: list[dict], last_synced_at: str) -> None:
    """Flatten ``proposals`` and append each row to its year bucket, in order."""
    for rec in proposals:
        key = year_key(rec)
        bucket = buckets.get(key)
        if bucket is None:
            # yearId is taken from the first proposal seen for the year
            year = rec.get("year") or {}
            bucket = {"year": key, "year_id": str(year.get("id") or ""), "rows": []}
            buckets[key] = bucket
        bucket["rows"].append(flatten_proposal(rec, last_synced_at))


def collect_buckets(
    client: ProposalSource,
    config: ExportConfig,
    last_synced_at: str,
) -> dict[str, dict]:
    """Count, page through and bucket every usable proposal."""
    total = client.count_proposals(config.proposal_where)
    target = min(total, config.max_records)
    print(
        f"Exporting {target}/{total} proposals"
        f" (batch={config.batch_size}, limit={config.max_records})..."
    )

    buckets: dict[str, dict] = {}
    for usable in iter_proposal_pages(
        client,
        config.proposal_where,
        config.batch_size,
        config.max_records,
        target=target,
    ):
        add_to_buckets(buckets, usable, last_synced_at)
    return buckets


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


def bucket_paths(bucket: dict, config: ExportConfig) -> dict[str, Path]:
    """Resolve the CSV, JSON and metadata targets for one year bucket."""
    year = bucket["year"]
    root = config.output_root
    return {
        "csv":  output_path(root, f"proposals_year_{year}.csv"),
        "json": output_path(root, f"proposals_year_{year}.json"),
        "meta": output_path(root, f"metadata_year_{year}.json"),
    }


def write_bucket(bucket: dict, paths: dict[str, Path], generated_at: str) -> int:
    """Write the CSV, pruned JSON and metadata files for one year bucket."""
    year = bucket["year"]
    rows = bucket["rows"]

    save_csv(rows, paths["csv"], CSV_COLUMNS)

    pruned = [prune_empty_fields(row) for row in rows]
    save_json(
        {
            "generatedAt": generated_at,
            "recordCount": len(pruned),
            "year":        year,
            "proposals":   pruned,
        },
        paths["json"],
    )
    save_json(
        {
            "year":        year,
            "yearId":      bucket["year_id"],
            "generatedAt": generated_at,
            "recordCount": len(rows),
        },
        paths["meta"],
    )
    print(f"  {len(rows)} proposals for {year} → {paths['csv'].name}, {paths['json'].name}")
    return len(rows)


def write_root_metadata(
    config: ExportConfig,
    path: Path,
    generated_at: str,
    total_years: int,
    total_records: int,
) -> None:
    save_json(
        {
            "generatedAt":  generated_at,
            "totalYears":   total_years,
            "totalRecords": total_records,
            "maxRecords":   config.max_records,
            "batchSize":    config.batch_size,
            "where":        config.proposal_where,
        },
        path,
    )
    print(f"  run metadata → {path}")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def extract_all(
    config: ExportConfig,
    client: ProposalSource | None = None,
    *,
    last_synced_at: str | None = None,
) -> dict:
    """
    Run one export and return its summary.

    Parameters
    ----------
    config : ExportConfig
        Endpoint, paging limits, filter and output directory.
    client : ProposalSource, optional
        Defaults to a ``KeystoneClient`` built from ``config`` and closed
        afterwards.
    last_synced_at : str, optional
        Run timestamp; defaults to now (UTC).

    Returns
    -------
    dict
        ``{"last_synced_at", "total_years", "total_records"}``.
    """
    if client is None:
        with KeystoneClient(config) as owned:
            return extract_all(config, owned, last_synced_at=last_synced_at)

    if last_synced_at is None:
        last_synced_at = _utc_timestamp()

    config.output_root.mkdir(parents=True, exist_ok=True)

    buckets = collect_buckets(client, config, last_synced_at)

    if not buckets:
        # No root metadata either: an empty run leaves the directory untouched
        print("No proposals found; check whether the filter is too strict.")
        return {"last_synced_at": last_synced_at, "total_years": 0, "total_records": 0}

    # Resolve every target first so a rejected year leaves no partial output
    planned = [(bucket, bucket_paths(bucket, config)) for bucket in buckets.values()]
    root_path = output_path(config.output_root, config.metadata_file_name)

    total_records = 0
    for bucket, paths in planned:
        total_records += write_bucket(bucket, paths, last_synced_at)

    write_root_metadata(config, root_path, last_synced_at, len(buckets), total_records)

    return {
        "last_synced_at": last_synced_at,
        "total_years":    len(buckets),
        "total_records":  total_records,
    }


def _apply_overrides(config: ExportConfig, args: argparse.Namespace) -> ExportConfig:
    changes: dict = {}
    if args.max_records is not None:
        changes["max_records"] = parse_positive_int(args.max_records, config.max_records)
    if args.batch_size is not None:
        changes["batch_size"] = parse_positive_int(args.batch_size, config.batch_size)
    if args.output_dir is not None:
        changes["output_root"] = resolve_output_dir(args.output_dir)
    if args.where is not None:
        changes["proposal_where"] = parse_where(args.where, "--where")
    return dataclasses.replace(config, **changes) if changes else config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Export budget proposals into per-year CSV and JSON files",
    )
    parser.add_argument(
        "--max-records",
        type=int,
        default=None,
        help="Cap on proposals exported (default: MAX_RECORDS or 10)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Proposals per GraphQL page (default: BATCH_SIZE or 1000)",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for the output files (default: OUTPUT_DIR or parent of cwd)",
    )
    parser.add_argument(
        "--where",
        default=None,
        metavar="JSON",
        help="ProposalWhereInput filter as JSON (default: PROPOSAL_WHERE_JSON or published only)",
    )
    parser.add_argument(
        "--env",
        default=".env",
        help="Path to a .env file to load (default: ./.env)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(args.env)

    try:
        config = _apply_overrides(load_config(), args)
        summary = extract_all(config)
    except Exception as exc:
        print(f"FAILED: {exc}")
        return 1

    print(
        f"Export complete: {summary['total_records']} proposals,"
        f" {summary['total_years']} years ({summary['last_synced_at']})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
