"""
Flatten functions for budget proposal data.

Re-exports every public flatten helper so callers can import from the
package without knowing which submodule a function lives in:

    from budget_export.transforms import flatten_proposal, prune_empty_fields

Each submodule contains only pure dict-in / dict-out transformation
functions, with no I/O and no API calls.
"""

from .proposals import (
    CSV_COLUMNS,
    PROPOSAL_TYPE_LABELS,
    RESULT_LABELS,
    UNKNOWN_YEAR,
    flatten_proposal,
    format_id_list,
    format_label_list,
    format_proposal_types,
    format_result,
    format_single_relation_id,
    prune_empty_fields,
    year_key,
    year_value,
)

__all__ = [
    "CSV_COLUMNS",
    "PROPOSAL_TYPE_LABELS",
    "RESULT_LABELS",
    "UNKNOWN_YEAR",
    "flatten_proposal",
    "format_id_list",
    "format_label_list",
    "format_proposal_types",
    "format_result",
    "format_single_relation_id",
    "prune_empty_fields",
    "year_key",
    "year_value",
]
