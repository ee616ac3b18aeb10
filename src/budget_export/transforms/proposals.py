"""Flatten function for Keystone budget proposals.

Every proposal becomes exactly one row with the same 26 string columns
(CSV_COLUMNS). Missing nested objects never fail the flattening; they only
leave empty strings behind.

Key quirks:
  - Amounts arrive as numbers or decimal strings; both are stored as text so
    CSV and JSON carry the same representation.
  - ``historicalParentProposals`` / ``mergedParentProposals`` are logically
    single-valued but the API returns a list.
  - Budget name/category/amount may live on the nested ``budget`` object or
    be mirrored on the proposal itself; the nested value wins.
"""

from typing import Any

CSV_COLUMNS = [
    "proposal_id",
    "proposal_types",
    "result",
    "reduction_amount",
    "freeze_amount",
    "reason",
    "description",
    "budget_image_url",
    "historical_proposals",
    "historical_parent_proposal",
    "merged_proposals",
    "merged_parent_proposal",
    "year",
    "government_name",
    "government_category",
    "meetings",
    "proposers",
    "co_signers",
    "budget_id",
    "budget_project_name",
    "budget_project_description",
    "budget_major_category",
    "budget_medium_category",
    "budget_minor_category",
    "budget_amount",
    "last_synced_at",
]

PROPOSAL_TYPE_LABELS = {
    "freeze": "凍結",
    "reduce": "減列",
    "other":  "主決議",
}

RESULT_LABELS = {
    "passed":    "通過",
    "reserved":  "保留",
    "withdrawn": "撤案",
}

UNKNOWN_YEAR = "unknown"


def _text(val: Any) -> str:
    if val is None:
        return ""
    return val if isinstance(val, str) else str(val)


def _number(val: Any) -> str:
    """Decimal text for an amount; integral floats lose their ``.0``."""
    if val is None:
        return ""
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val)


def year_value(rec: dict) -> str:
    """Year of the proposal as text, or "" when the year object or value is absent."""
    year = rec.get("year") or {}
    return _number(year.get("year"))


def year_key(rec: dict) -> str:
    """Bucket key: the year text, or ``"unknown"``."""
    return year_value(rec) or UNKNOWN_YEAR


def format_proposal_types(types: list | None) -> str:
    if not isinstance(types, list) or not types:
        return ""
    labels = [PROPOSAL_TYPE_LABELS.get(t, t) for t in types if t]
    return "、".join(_text(label) for label in labels)


def format_result(value: str | None) -> str:
    if not value:
        return ""
    return RESULT_LABELS.get(value, value)


def format_label_list(nodes: list | None, label_key: str = "name") -> str:
    """Join each node's label with ``|``, skipping missing or blank labels."""
    if not nodes:
        return ""
    labels = [(node or {}).get(label_key) for node in nodes]
    return "|".join(lbl for lbl in labels if isinstance(lbl, str) and lbl.strip())


def format_id_list(nodes: list | None) -> str:
    if not nodes:
        return ""
    return "|".join(_text((node or {}).get("id") or "") for node in nodes)


def format_single_relation_id(node: list | dict | None) -> str:
    """First non-empty id of a list, or the id of a single node."""
    if not node:
        return ""
    if isinstance(node, list):
        first = next((item for item in node if item and item.get("id")), None)
        return _text(first["id"]) if first else ""
    return _text(node.get("id") or "")


def flatten_proposal(rec: dict, last_synced_at: str) -> dict:
    """Flatten one proposal from the ProposalBatch query into a CSV_COLUMNS row."""
    government = rec.get("government") or {}
    budget = rec.get("budget") or {}
    budget_amount = budget.get("budgetAmount")
    if budget_amount is None:
        budget_amount = rec.get("budgetAmount")

    return {
        "proposal_id":                _text(rec.get("id")),
        "proposal_types":             format_proposal_types(rec.get("proposalTypes")),
        "result":                     format_result(rec.get("result")),
        "reduction_amount":           _number(rec.get("reductionAmount")),
        "freeze_amount":              _number(rec.get("freezeAmount")),
        "reason":                     _text(rec.get("reason")),
        "description":                _text(rec.get("description")),
        "budget_image_url":           _text(rec.get("budgetImageUrl")),
        "historical_proposals":       format_id_list(rec.get("historicalProposals")),
        "historical_parent_proposal": format_single_relation_id(rec.get("historicalParentProposals")),
        "merged_proposals":           format_id_list(rec.get("mergedProposals")),
        "merged_parent_proposal":     format_single_relation_id(rec.get("mergedParentProposals")),
        "year":                       year_value(rec),
        "government_name":            _text(government.get("name")),
        "government_category":        _text(government.get("category")),
        "meetings":                   format_label_list(rec.get("meetings"), "displayName"),
        "proposers":                  format_label_list(rec.get("proposers"), "name"),
        "co_signers":                 format_label_list(rec.get("coSigners"), "name"),
        "budget_id":                  _text(budget.get("id")),
        # Nested budget first, then the scalar mirrored on the proposal
        "budget_project_name":        _text(budget.get("projectName") or rec.get("budgetProjectName")),
        "budget_project_description": _text(budget.get("projectDescription")),
        "budget_major_category":      _text(budget.get("majorCategory") or rec.get("budgetMajorCategory")),
        "budget_medium_category":     _text(budget.get("mediumCategory") or rec.get("budgetMediumCategory")),
        "budget_minor_category":      _text(budget.get("minorCategory") or rec.get("budgetMinorCategory")),
        "budget_amount":              _number(budget_amount),
        "last_synced_at":             last_synced_at,
    }


def prune_empty_fields(row: dict) -> dict:
    """Copy of ``row`` without ``last_synced_at`` and without blank values."""
    return {
        key: val
        for key, val in row.items()
        if key != "last_synced_at" and val not in ("", None)
    }
