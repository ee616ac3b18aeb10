import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .exceptions import ConfigurationError

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_RECORDS = 10
METADATA_FILE_NAME = "proposals_metadata.json"


def _default_where() -> dict[str, Any]:
    return {"publishStatus": {"equals": "published"}}


@dataclass(frozen=True)
class ExportConfig:
    """Settings for one export run, built once and passed explicitly."""

    endpoint: str
    token: str = ""
    batch_size: int = DEFAULT_BATCH_SIZE
    max_records: int = DEFAULT_MAX_RECORDS
    output_root: Path = field(default_factory=lambda: Path.cwd().parent.resolve())
    proposal_where: dict[str, Any] = field(default_factory=_default_where)
    metadata_file_name: str = METADATA_FILE_NAME

    @property
    def graphql_url(self) -> str:
        return f"{self.endpoint}/api/graphql"


def parse_positive_int(raw: str | int | None, default: int) -> int:
    """Parse a positive integer; blank, unparsable or non-positive gives ``default``."""
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def parse_where(payload: str | None, name: str = "PROPOSAL_WHERE_JSON") -> dict[str, Any]:
    """Decode the proposal filter; unset or blank gives the published-only filter."""
    if not payload:
        return _default_where()
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{name} is not valid JSON: {exc}") from exc


def resolve_output_dir(raw: str | None) -> Path:
    if raw:
        return Path(raw).resolve()
    return Path.cwd().parent.resolve()


def load_config(environ: Mapping[str, str] | None = None) -> ExportConfig:
    """
    Build an ``ExportConfig`` from environment variables.

    Recognised keys: ``KEYSTONE_URL`` (required), ``KEYSTONE_TOKEN``,
    ``BATCH_SIZE``, ``MAX_RECORDS``, ``OUTPUT_DIR``, ``PROPOSAL_WHERE_JSON``.

    Raises
    ------
    ConfigurationError
        If ``KEYSTONE_URL`` is missing or the filter JSON is malformed.
    """
    env = os.environ if environ is None else environ

    endpoint = (env.get("KEYSTONE_URL") or "").strip()
    if not endpoint:
        raise ConfigurationError("Missing required environment variable: KEYSTONE_URL")
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]

    return ExportConfig(
        endpoint=endpoint,
        token=(env.get("KEYSTONE_TOKEN") or "").strip(),
        batch_size=parse_positive_int(env.get("BATCH_SIZE"), DEFAULT_BATCH_SIZE),
        max_records=parse_positive_int(env.get("MAX_RECORDS"), DEFAULT_MAX_RECORDS),
        output_root=resolve_output_dir(env.get("OUTPUT_DIR")),
        proposal_where=parse_where(env.get("PROPOSAL_WHERE_JSON")),
    )
