"""
Keystone GraphQL API client for budget proposals.

Endpoint: ``<KEYSTONE_URL>/api/graphql`` (POST, JSON body ``{query, variables}``).

Key differences from a plain REST client:
  - Every call is a POST carrying a GraphQL document.
  - A 200 response may still carry an ``errors`` array; that is raised as
    ApplicationError rather than returned.
  - Pagination is offset based (``take`` / ``skip``); the driver lives in
    extract_proposals.py, this client only fetches one page at a time.

Usage example:
    with KeystoneClient(config) as client:
        total = client.count_proposals(config.proposal_where)
        page = client.fetch_proposals(config.proposal_where, take=100, skip=0)
"""

import json
from typing import Any

import httpx

from .config import ExportConfig
from .exceptions import ApplicationError, TransportError
from .queries import OPERATION_NAME, PROPOSAL_BATCH_QUERY, PROPOSAL_COUNT_QUERY


class KeystoneClient:
    """
    Thin wrapper around httpx for the Keystone GraphQL endpoint.

    Parameters
    ----------
    config : ExportConfig
        Supplies the endpoint base URL and the optional bearer token.
    timeout : float
        HTTP request timeout in seconds.
    transport : httpx.BaseTransport, optional
        Custom transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        config: ExportConfig,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {
            "Content-Type": "application/json",
            "x-apollo-operation-name": OPERATION_NAME,
        }
        if config.token:
            headers["Authorization"] = f"Bearer {config.token}"

        self._url = config.graphql_url
        self._client = httpx.Client(
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def count_proposals(self, where: dict[str, Any]) -> int:
        """Return how many proposals match ``where`` (0 when the field is absent)."""
        data = self.execute(PROPOSAL_COUNT_QUERY, {"where": where})
        count = (data or {}).get("proposalsCount")
        return count if count is not None else 0

    def fetch_proposals(
        self,
        where: dict[str, Any],
        take: int,
        skip: int,
    ) -> list[dict]:
        """
        Fetch one page of proposals ordered by id.

        Returns an empty list when the ``proposals`` field is absent or null.
        """
        data = self.execute(
            PROPOSAL_BATCH_QUERY,
            {"take": take, "skip": skip, "where": where},
        )
        return (data or {}).get("proposals") or []

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> Any:
        """
        POST one GraphQL document and return its ``data`` payload.

        Raises
        ------
        TransportError
            Connection failure, non-2xx status, or a body that is not JSON.
        ApplicationError
            The response envelope carries a non-empty ``errors`` list.
        """
        try:
            resp = self._client.post(
                self._url,
                json={"query": query, "variables": variables or {}},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"GraphQL request to {self._url} failed: {exc}") from exc

        if not resp.is_success:
            text = _safe_read_text(resp)
            raise TransportError(
                f"GraphQL HTTP {resp.status_code}: {text}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise TransportError(
                f"GraphQL response is not valid JSON: {exc}",
                status_code=resp.status_code,
            ) from exc

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            raise ApplicationError(
                f"GraphQL errors: {json.dumps(errors, ensure_ascii=False)}",
                errors,
            )
        return payload.get("data") if isinstance(payload, dict) else None

    def close(self) -> None:
        self._client.close()

    # context-manager support
    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()


def _safe_read_text(resp: httpx.Response) -> str:
    try:
        return resp.text
    except (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError, LookupError) as exc:
        return f"<unable to read response body: {exc}>"
