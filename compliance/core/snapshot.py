"""Cross-severity prioritised worklist."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Iterable

from compliance.core.rounding import progress_percent
from compliance.core.schema import ProgressRecord, SnapshotItem, severity_rank
from compliance.core.timeutils import due_in_days, overdue_days, zone_sort_value

RED_RANK = 3
AMBER_RANK = 2

_NO_DATE = float("inf")


def to_snapshot_item(item: ProgressRecord, now: datetime, tz: tzinfo) -> SnapshotItem:
    return SnapshotItem(
        **item.model_dump(),
        overdue_days=overdue_days(item.planned_due_date, now, tz),
        due_in_days=due_in_days(item.planned_due_date, now, tz),
        progress_percent=progress_percent(item.approved_count, item.required_count, empty=100),
        severity_rank=severity_rank(item.status_color),
    )


def snapshot_sort_key(item: SnapshotItem, tz: tzinfo) -> tuple:
    """Total order: severity, lateness (red), closeness (amber), progress, due date.

    Ranks are compared first, so the red and amber keys only ever compare rows of
    the same rank. Contractor and document ids settle rows that are otherwise equal.
    """

    rank = item.severity_rank
    lateness = -item.overdue_days if rank == RED_RANK else 0
    if rank == AMBER_RANK:
        closeness = _NO_DATE if item.due_in_days is None else item.due_in_days
    else:
        closeness = 0
    due_value = _NO_DATE if item.planned_due_date is None else zone_sort_value(item.planned_due_date, tz)
    return (
        -rank,
        lateness,
        closeness,
        item.progress_percent,
        due_value,
        item.contractor_id,
        item.doc_type_id,
    )


def rank_snapshot(rows: Iterable[ProgressRecord], now: datetime, tz: tzinfo) -> list[SnapshotItem]:
    items = [to_snapshot_item(item, now, tz) for item in rows]
    return sorted(items, key=lambda item: snapshot_sort_key(item, tz))


def get_process_snapshot(
    rows: Iterable[ProgressRecord],
    now: datetime,
    tz: tzinfo,
    limit: int = 5,
) -> list[SnapshotItem]:
    return rank_snapshot(rows, now, tz)[: max(limit, 0)]
