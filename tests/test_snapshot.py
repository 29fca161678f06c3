from compliance.core.snapshot import get_process_snapshot, rank_snapshot

from tests.factories import make_row


def _rows():
    return [
        make_row(doc_type_id="purple", status_color="purple"),
        make_row(doc_type_id="green-full", status_color="green", approved_count=1),
        make_row(doc_type_id="red-3", status_color="red", planned_due_date="2025-01-12"),
        make_row(doc_type_id="amber-5", status_color="amber", planned_due_date="2025-01-20"),
        make_row(doc_type_id="amber-undated", status_color="amber"),
        make_row(doc_type_id="red-10", status_color="red", planned_due_date="2025-01-05"),
        make_row(doc_type_id="amber-1", status_color="amber", planned_due_date="2025-01-16"),
        make_row(doc_type_id="green-half", status_color="green", required_count=2, approved_count=1),
    ]


def test_full_ranking(now, tz):
    ranked = rank_snapshot(_rows(), now, tz)
    assert [item.doc_type_id for item in ranked] == [
        "red-10",
        "red-3",
        "amber-1",
        "amber-5",
        "amber-undated",
        "green-half",
        "green-full",
        "purple",
    ]
    assert [item.severity_rank for item in ranked][-1] == 0


def test_more_overdue_red_comes_first(now, tz):
    rows = [
        make_row(doc_type_id="three", status_color="red", planned_due_date="2025-01-12"),
        make_row(doc_type_id="ten", status_color="red", planned_due_date="2025-01-05"),
    ]
    assert [item.overdue_days for item in get_process_snapshot(rows, now, tz)] == [10, 3]


def test_limit_and_empty_limit(now, tz):
    assert len(get_process_snapshot(_rows(), now, tz)) == 5
    assert len(get_process_snapshot(_rows(), now, tz, limit=2)) == 2
    assert get_process_snapshot(_rows(), now, tz, limit=0) == []
    assert get_process_snapshot(_rows(), now, tz, limit=-1) == []


def test_progress_defaults_to_complete_when_nothing_required(now, tz):
    rows = [
        make_row(doc_type_id="none-required", required_count=0),
        make_row(doc_type_id="half", required_count=2, approved_count=1),
    ]
    items = get_process_snapshot(rows, now, tz)
    assert [item.doc_type_id for item in items] == ["half", "none-required"]
    assert items[1].progress_percent == 100


def test_ranking_is_deterministic(now, tz):
    rows = _rows()
    first = [item.doc_type_id for item in get_process_snapshot(rows, now, tz, limit=10)]
    again = [item.doc_type_id for item in get_process_snapshot(rows, now, tz, limit=10)]
    reversed_input = [item.doc_type_id for item in get_process_snapshot(list(reversed(rows)), now, tz, limit=10)]
    assert first == again == reversed_input


def test_equal_rows_break_ties_on_ids(now, tz):
    rows = [
        make_row(contractor_id="C002", status_color="green"),
        make_row(contractor_id="C001", status_color="green"),
    ]
    assert [item.contractor_id for item in get_process_snapshot(rows, now, tz)] == ["C001", "C002"]
