from datetime import datetime

from compliance.core.categories import (
    UNCATEGORISED,
    calculate_contractor_heatmap,
    calculate_contractor_performance_scores,
    calculate_detailed_progress_by_contractor,
    calculate_milestone_progress,
    get_category_progress,
)
from compliance.core.schema import KpiSummary

from tests.factories import make_row


def _rows():
    return [
        make_row(category="Legal", required_count=5, approved_count=5),
        make_row(category="Safety", required_count=6, approved_count=2),
        make_row(category="Technical", required_count=5, approved_count=4),
        make_row(contractor_id="C002", contractor_name="Bolt", category="Safety", required_count=4, approved_count=1),
    ]


def test_lowest_completion_category_first():
    progress = get_category_progress(_rows())
    assert [item.category for item in progress] == ["Safety", "Technical", "Legal"]
    safety = progress[0]
    assert (safety.approved, safety.required, safety.completion) == (3, 10, 30)


def test_zero_required_and_missing_category():
    rows = [
        make_row(category=None, required_count=0, approved_count=0),
        make_row(category="Legal", required_count=2, approved_count=2),
    ]
    progress = get_category_progress(rows)
    assert [(item.category, item.completion) for item in progress] == [(UNCATEGORISED, 0), ("Legal", 100)]


def test_ties_keep_first_seen_order():
    rows = [
        make_row(category="Technical", required_count=2, approved_count=1),
        make_row(category="Legal", required_count=4, approved_count=2),
    ]
    assert [item.category for item in get_category_progress(rows)] == ["Technical", "Legal"]


def test_empty_input():
    assert get_category_progress([]) == []
    assert calculate_detailed_progress_by_contractor([]) == []


def test_contractor_by_category():
    detail = calculate_detailed_progress_by_contractor(_rows())
    assert [(item.contractor_name, item.category_name) for item in detail] == [
        ("Acme Builders", "Legal"),
        ("Acme Builders", "Safety"),
        ("Acme Builders", "Technical"),
        ("Bolt", "Safety"),
    ]
    assert detail[1].completion_percentage == 33


def test_milestones(tz):
    rows = [
        make_row(doc_type_id="late", planned_due_date="2025-02-01", required_count=2, approved_count=3),
        make_row(doc_type_id="undated"),
        make_row(
            doc_type_id="early",
            planned_due_date="2025-01-10",
            first_started_at="2025-01-02",
            first_approved_at="2025-01-09",
        ),
    ]
    milestones = calculate_milestone_progress(rows, tz)
    assert [item.doc_type_id for item in milestones] == ["early", "late"]
    early, late = milestones
    assert early.start_date == datetime(2025, 1, 2)
    assert early.end_date == datetime(2025, 1, 9)
    assert late.completion_percentage == 100
    assert late.start_date == late.end_date == datetime(2025, 2, 1)
    assert late.id == "C001-late"


def test_performance_scores_are_weighted_and_ranked():
    summaries = [
        KpiSummary(contractor_id="C001", contractor_name="Acme", completion_ratio=0.8, red_items=1, avg_approval_days=3),
        KpiSummary(contractor_id="C002", contractor_name="Bolt", completion_ratio=0.5, quality_score=90),
    ]
    rows = [
        make_row(required_count=2),
        make_row(doc_type_id="ppe", required_count=2),
        make_row(doc_type_id="insurance", is_critical=False, required_count=6),
    ]
    bolt, acme = calculate_contractor_performance_scores(summaries, rows)

    # one red item out of four required critical documents
    assert (acme.completion, acme.quality, acme.speed, acme.compliance) == (80, 80, 25, 75)
    assert (acme.weighted_score, acme.rank) == (68, 2)
    assert (bolt.quality, bolt.speed, bolt.compliance) == (90, 100, 100)
    assert (bolt.weighted_score, bolt.rank) == (83, 1)


def test_performance_compliance_without_rows_is_full():
    summaries = [KpiSummary(contractor_id="C001", contractor_name="Acme", completion_ratio=0.8, red_items=3)]
    (score,) = calculate_contractor_performance_scores(summaries)
    assert score.compliance == 100
    assert score.rank == 1


def test_heatmap_sums_per_contractor_and_document_type():
    rows = [
        make_row(doc_type_id="permit", doc_type_name="Permit", required_count=2, approved_count=1),
        make_row(doc_type_id="ppe", doc_type_name="PPE", required_count=5, approved_count=4),
        make_row(doc_type_id="permit", doc_type_name="Permit", required_count=1, approved_count=1),
        make_row(contractor_id="C002", contractor_name="Bolt", doc_type_id="permit", required_count=0),
    ]
    cells = calculate_contractor_heatmap(rows)
    assert [(cell.contractor_id, cell.doc_type_id) for cell in cells] == [
        ("C001", "permit"),
        ("C001", "ppe"),
        ("C002", "permit"),
    ]
    assert [(cell.approved, cell.required, cell.value, cell.status) for cell in cells] == [
        (2, 3, 67, "average"),
        (4, 5, 80, "good"),
        (0, 0, 0, "poor"),
    ]

    only_bolt = calculate_contractor_heatmap(rows, contractor_ids=["C002"])
    assert [cell.contractor_name for cell in only_bolt] == ["Bolt"]
    assert calculate_contractor_heatmap([]) == []
