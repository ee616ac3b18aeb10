"""Tests for the pure proposal flatten helpers."""

import pytest

from budget_export.transforms import (
    CSV_COLUMNS,
    flatten_proposal,
    format_id_list,
    format_label_list,
    format_proposal_types,
    format_result,
    format_single_relation_id,
    prune_empty_fields,
    year_key,
)

SYNCED = "2024-05-01T12:00:00.000Z"


def _full_record() -> dict:
    return {
        "id": "101",
        "proposalTypes": ["freeze", "reduce"],
        "result": "passed",
        "reductionAmount": 1500000,
        "freezeAmount": 2000.5,
        "reason": "經費過高",
        "description": "說明",
        "budgetImageUrl": "https://example.org/b.png",
        "budgetProjectName": "mirrored name",
        "budgetAmount": 999,
        "year": {"id": "y1", "year": 2024},
        "government": {"id": "g1", "name": "交通部", "category": "部會"},
        "meetings": [{"id": "m1", "displayName": "第一次會議"}, {"id": "m2", "displayName": "  "}],
        "proposers": [{"id": "p1", "name": "王小明"}, {"id": "p2", "name": None}],
        "coSigners": [{"id": "c1", "name": "李大華"}, {"id": "c2", "name": "陳美麗"}],
        "budget": {
            "id": "b1",
            "projectName": "道路養護",
            "projectDescription": "年度養護",
            "majorCategory": "經常門",
            "mediumCategory": "業務費",
            "minorCategory": "",
            "budgetAmount": "123456789.01",
        },
        "historicalProposals": [{"id": "90"}, {"id": "91"}],
        "mergedProposals": [{"id": "80"}],
        "historicalParentProposals": [{"id": ""}, {"id": "70"}],
        "mergedParentProposals": [],
    }


def test_flatten_full_record():
    """A fully populated proposal maps onto every column."""
    rec = _full_record()
    rec["budgetMinorCategory"] = "fallback minor"
    row = flatten_proposal(rec, SYNCED)

    assert list(row) == CSV_COLUMNS
    assert row["proposal_id"] == "101"
    assert row["proposal_types"] == "凍結、減列"
    assert row["result"] == "通過"
    assert row["reduction_amount"] == "1500000"
    assert row["freeze_amount"] == "2000.5"
    assert row["historical_proposals"] == "90|91"
    assert row["historical_parent_proposal"] == "70"
    assert row["merged_proposals"] == "80"
    assert row["merged_parent_proposal"] == ""
    assert row["year"] == "2024"
    assert row["government_name"] == "交通部"
    assert row["meetings"] == "第一次會議"
    assert row["proposers"] == "王小明"
    assert row["co_signers"] == "李大華|陳美麗"
    assert row["budget_id"] == "b1"
    assert row["budget_project_name"] == "道路養護"
    assert row["budget_minor_category"] == "fallback minor"
    assert row["budget_amount"] == "123456789.01"
    assert row["last_synced_at"] == SYNCED


@pytest.mark.parametrize("rec", [{}, {"id": None, "year": None, "budget": None, "government": None}])
def test_flatten_empty_record_gives_all_empty_strings(rec):
    """Absent nested objects never fail, every column is still a string."""
    row = flatten_proposal(rec, SYNCED)
    assert list(row) == CSV_COLUMNS
    assert all(isinstance(v, str) for v in row.values())
    assert all(v == "" for k, v in row.items() if k != "last_synced_at")


def test_budget_fallbacks_to_proposal_scalars():
    """Budget name, categories and amount fall back to the proposal's own fields."""
    rec = {
        "budgetProjectName": "專案",
        "budgetMajorCategory": "大",
        "budgetMediumCategory": "中",
        "budgetMinorCategory": "小",
        "budgetAmount": 42,
        "budget": {"id": "b9", "projectName": "", "budgetAmount": None},
    }
    row = flatten_proposal(rec, SYNCED)
    assert row["budget_project_name"] == "專案"
    assert row["budget_major_category"] == "大"
    assert row["budget_medium_category"] == "中"
    assert row["budget_minor_category"] == "小"
    assert row["budget_amount"] == "42"


def test_budget_amount_zero_does_not_fall_back():
    """Only a missing nested amount falls back; zero is a real value."""
    row = flatten_proposal({"budgetAmount": 5, "budget": {"budgetAmount": 0}}, SYNCED)
    assert row["budget_amount"] == "0"


def test_integral_float_amount_has_no_fraction():
    row = flatten_proposal({"reductionAmount": 1000.0}, SYNCED)
    assert row["reduction_amount"] == "1000"


def test_proposal_types_labels_and_passthrough():
    assert format_proposal_types(["freeze", "reduce"]) == "凍結、減列"
    assert format_proposal_types(["other", "custom"]) == "主決議、custom"
    assert format_proposal_types(["", None, "freeze"]) == "凍結"
    assert format_proposal_types([]) == ""
    assert format_proposal_types(None) == ""


def test_result_labels_and_passthrough():
    assert format_result("reserved") == "保留"
    assert format_result("withdrawn") == "撤案"
    assert format_result("pending") == "pending"
    assert format_result(None) == ""


def test_label_list_skips_blank_labels():
    nodes = [{"name": "甲"}, {"name": ""}, {"name": "  "}, {}, None, {"name": "乙"}]
    assert format_label_list(nodes) == "甲|乙"
    assert format_label_list(None) == ""


def test_id_list_keeps_slots_for_missing_ids():
    assert format_id_list([{"id": "1"}, {}, {"id": "3"}]) == "1||3"
    assert format_id_list([]) == ""


@pytest.mark.parametrize(
    "node, expected",
    [
        ([{"id": "5"}, {"id": "6"}], "5"),
        ([None, {"id": ""}, {"id": "7"}], "7"),
        ([{"id": ""}], ""),
        ([], ""),
        (None, ""),
        ({"id": "8"}, "8"),
        ({}, ""),
    ],
)
def test_single_relation_id(node, expected):
    """Parent relations resolve to the first non-empty id."""
    assert format_single_relation_id(node) == expected


def test_year_key_sentinel():
    assert year_key({"year": {"id": "y", "year": 2023}}) == "2023"
    assert year_key({"year": {"id": "y", "year": None}}) == "unknown"
    assert year_key({"year": None}) == "unknown"
    assert year_key({}) == "unknown"


def test_prune_drops_timestamp_and_blank_fields():
    """Pruned rows never carry last_synced_at or an empty-string value."""
    row = flatten_proposal({"id": "1", "reason": "", "year": {"year": 2024}}, SYNCED)
    pruned = prune_empty_fields(row)
    assert pruned == {"proposal_id": "1", "year": "2024"}
    assert "last_synced_at" in row
