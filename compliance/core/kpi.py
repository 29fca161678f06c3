from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Iterable, Sequence

import pandas as pd

from compliance.core.filters import ALL, filter_records
from compliance.core.rounding import ratio_percent, round_half_up, round_int
from compliance.core.schema import (
    ApprovalTimeComparison,
    BottleneckAnalysis,
    DocumentTotals,
    DocumentTypeProcessingTime,
    FilterState,
    KpiSet,
    KpiSummary,
    ProcessingTimeStats,
    ProgressRecord,
    RedCardSummary,
)
from compliance.core.timeutils import days_between, overdue_days, to_zone


def _summary_for(filters: FilterState, summaries: Iterable[KpiSummary]) -> KpiSummary | None:
    for summary in summaries:
        if summary.contractor_id == filters.contractor:
            return summary
    return None


def _average_days(spans: list[int]) -> int:
    if not spans:
        return 0
    return round_int(Decimal(sum(spans)) / len(spans))


def calculate_overall_completion(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    summaries: Sequence[KpiSummary],
) -> int:
    if filters.contractor != ALL:
        summary = _summary_for(filters, summaries)
        return round_int(summary.completion_ratio * 100) if summary else 0

    totals = calculate_total_documents(rows, filters)
    return ratio_percent(totals.approved, totals.required)


def calculate_must_have_ready(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    summaries: Sequence[KpiSummary],
) -> int:
    if filters.contractor != ALL:
        summary = _summary_for(filters, summaries)
        return round_int(summary.must_have_ready_ratio * 100) if summary else 0

    # critical rows with nothing required are neither ready nor missing
    eligible = [item for item in filter_records(rows, filters) if item.is_critical and item.required_count > 0]
    ready = [item for item in eligible if item.approved_count >= item.required_count]
    return ratio_percent(len(ready), len(eligible))


def calculate_overdue_must_haves(rows: Sequence[ProgressRecord], filters: FilterState) -> int:
    return sum(1 for item in filter_records(rows, filters) if item.is_critical and item.status_color == "red")


def calculate_avg_prep_time(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    summaries: Sequence[KpiSummary],
    tz: tzinfo,
) -> int:
    if filters.contractor != ALL:
        summary = _summary_for(filters, summaries)
        return round_int(summary.avg_prep_days) if summary else 0

    spans = [
        days_between(item.first_started_at, item.first_submitted_at, tz)
        for item in filter_records(rows, filters)
        if item.first_started_at and item.first_submitted_at
    ]
    return _average_days(spans)


def calculate_avg_approval_time(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    summaries: Sequence[KpiSummary],
    tz: tzinfo,
) -> int:
    if filters.contractor != ALL:
        summary = _summary_for(filters, summaries)
        return round_int(summary.avg_approval_days) if summary else 0

    spans = [
        days_between(item.first_submitted_at, item.first_approved_at, tz)
        for item in filter_records(rows, filters)
        if item.first_submitted_at and item.first_approved_at
    ]
    return _average_days(spans)


def calculate_kpis(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    summaries: Sequence[KpiSummary],
    tz: tzinfo,
) -> KpiSet:
    return KpiSet(
        overall_completion=calculate_overall_completion(rows, filters, summaries),
        must_have_ready=calculate_must_have_ready(rows, filters, summaries),
        overdue_must_haves=calculate_overdue_must_haves(rows, filters),
        avg_prep_days=calculate_avg_prep_time(rows, filters, summaries, tz),
        avg_approval_days=calculate_avg_approval_time(rows, filters, summaries, tz),
    )


def calculate_total_documents(rows: Sequence[ProgressRecord], filters: FilterState) -> DocumentTotals:
    filtered = filter_records(rows, filters)
    return DocumentTotals(
        approved=sum(item.approved_count for item in filtered),
        required=sum(item.required_count for item in filtered),
    )


def calculate_processing_times(rows: Sequence[ProgressRecord], tz: tzinfo) -> list[ProcessingTimeStats]:
    """Per-contractor prep and approval durations, in first-seen contractor order."""

    grouped: dict[str, dict] = {}
    for item in rows:
        bucket = grouped.setdefault(
            item.contractor_id,
            {"name": item.contractor_name, "prep": [], "approval": []},
        )
        if item.first_started_at and item.first_submitted_at:
            bucket["prep"].append(max(0, days_between(item.first_started_at, item.first_submitted_at, tz)))
        if item.first_submitted_at and item.first_approved_at:
            bucket["approval"].append(max(0, days_between(item.first_submitted_at, item.first_approved_at, tz)))

    def _average(values: list[int]) -> float | None:
        if not values:
            return None
        return float(round_half_up(Decimal(sum(values)) / len(values), places=1))

    return [
        ProcessingTimeStats(
            contractor_id=contractor_id,
            contractor_name=bucket["name"],
            average_prep_days=_average(bucket["prep"]),
            longest_prep_days=max(bucket["prep"], default=None),
            average_approval_days=_average(bucket["approval"]),
            longest_approval_days=max(bucket["approval"], default=None),
        )
        for contractor_id, bucket in grouped.items()
    ]


def calculate_red_cards_summary(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    now: datetime,
    tz: tzinfo,
) -> RedCardSummary:
    critical = [item for item in filter_records(rows, filters) if item.is_critical]
    outstanding = [item for item in critical if item.required_count > 0 and item.approved_count < item.required_count]

    missing = sum(1 for item in critical if item.required_count > 0 and item.approved_count == 0)
    overdue = sum(
        1
        for item in critical
        if item.planned_due_date is not None
        and item.approved_count < item.required_count
        and overdue_days(item.planned_due_date, now, tz) > 0
    )
    return RedCardSummary(
        total=missing + overdue,
        missing=missing,
        overdue=overdue,
        contractors_cant_start=len({item.contractor_id for item in outstanding}),
    )


def _approved_between(item: ProgressRecord, start: datetime, end: datetime | None, tz: tzinfo) -> bool:
    if not (item.first_submitted_at and item.first_approved_at):
        return False
    approved_at = to_zone(item.first_approved_at, tz)
    if approved_at < to_zone(start, tz):
        return False
    return end is None or approved_at < to_zone(end, tz)


def calculate_approval_time_comparison(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    now: datetime,
    tz: tzinfo,
) -> ApprovalTimeComparison:
    """Average approval days for approvals in the last week versus the week before."""

    filtered = filter_records(rows, filters)
    one_week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    def _average(items: list[ProgressRecord]) -> int:
        spans = [max(0, days_between(item.first_submitted_at, item.first_approved_at, tz)) for item in items]
        return _average_days(spans)

    current = [item for item in filtered if _approved_between(item, one_week_ago, None, tz)]
    previous = [item for item in filtered if _approved_between(item, two_weeks_ago, one_week_ago, tz)]
    return ApprovalTimeComparison(current=_average(current), last_week=_average(previous))


COMPLEXITY_TARGET_DAYS = {"low": 3, "medium": 5, "high": 8}

_SLOW_STAGE_RECOMMENDATIONS = (
    ("prep", 4, ("Provide more detailed templates and guidance", "Run training sessions for contractors")),
    ("approval", 3, ("Streamline the approval process", "Assign additional reviewers to spread the load")),
    ("total", 8, ("Split the process into simpler steps", "Run independent steps in parallel")),
)

# stage, span column, threshold days, (critical, high, medium) delay bands
BOTTLENECK_STAGES = (
    ("preparation", "prep", 5, (10, 5, 2)),
    ("approval", "approval", 3, (7, 4, 2)),
    ("overall", "total", 8, (15, 8, 4)),
)

_ROOT_CAUSES = {
    "preparation": [
        "Missing templates and guidance",
        "Contractor unfamiliar with the process",
        "Complex requirements need preparation time",
        "Contractor lacks resources",
    ],
    "approval": [
        "Reviewers overloaded",
        "Complex approval process",
        "No clear escalation path",
        "No automated notifications",
    ],
    "overall": [
        "Poor coordination between departments",
        "Process not optimised",
        "Little visibility into document status",
        "No proactive management",
    ],
}

_STAGE_RECOMMENDATIONS = {
    "preparation": [
        "Provide standardised templates",
        "Hold training workshops",
        "Assign support staff to new contractors",
        "Split complex requirements into smaller parts",
    ],
    "approval": [
        "Add reviewers",
        "Simplify the approval process",
        "Set a clear SLA for each step",
        "Introduce automated reminders",
    ],
    "overall": [
        "Introduce centralised tracking",
        "Optimise the end-to-end workflow",
        "Hold regular review meetings",
        "Apply agile practices to document processing",
    ],
}

_DURATION_COLUMNS = ["doc_type_id", "doc_type_name", "doc_type_code", "category", "prep", "approval", "total"]


def _span(start: datetime | None, end: datetime | None, tz: tzinfo) -> float:
    """Whole days from ``start`` to ``end``; NaN when either is missing or the span is negative."""

    if start is None or end is None:
        return float("nan")
    days = days_between(start, end, tz)
    return float(days) if days >= 0 else float("nan")


def _duration_frame(rows: Sequence[ProgressRecord], tz: tzinfo) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "doc_type_id": item.doc_type_id,
                "doc_type_name": item.doc_type_name,
                "doc_type_code": item.doc_type_code,
                "category": item.category,
                "prep": _span(item.first_started_at, item.first_submitted_at, tz),
                "approval": _span(item.first_submitted_at, item.first_approved_at, tz),
                "total": _span(item.first_started_at, item.first_approved_at, tz),
            }
            for item in rows
        ],
        columns=_DURATION_COLUMNS,
    )


def _optional_text(value) -> str | None:
    return None if pd.isna(value) else str(value)


def _one_decimal(value: float) -> float:
    if pd.isna(value):
        return 0.0
    return float(round_half_up(value, places=1))


def _complexity(average_total_days: float) -> str:
    if average_total_days > 10:
        return "high"
    if average_total_days > 5:
        return "medium"
    return "low"


def calculate_processing_time_by_document_type(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    tz: tzinfo,
) -> list[DocumentTypeProcessingTime]:
    """Average prep, approval and end-to-end days per document type, slowest first.

    Negative spans are ignored. Each type is rated by complexity and compared
    with the target days for that complexity.
    """

    frame = _duration_frame(filter_records(rows, filters), tz)
    if frame.empty:
        return []

    grouped = frame.groupby("doc_type_id", sort=False)
    averages = grouped[["prep", "approval", "total"]].mean()
    sizes = grouped.size()
    labels = frame.drop_duplicates("doc_type_id").set_index("doc_type_id")

    results: list[DocumentTypeProcessingTime] = []
    for doc_type_id, spans in averages.iterrows():
        averaged = {stage: _one_decimal(spans[stage]) for stage in ("prep", "approval", "total")}
        complexity = _complexity(averaged["total"])
        target = COMPLEXITY_TARGET_DAYS[complexity]
        label = labels.loc[doc_type_id]
        results.append(
            DocumentTypeProcessingTime(
                doc_type_id=str(doc_type_id),
                doc_type_name=str(label["doc_type_name"]),
                doc_type_code=_optional_text(label["doc_type_code"]),
                category=_optional_text(label["category"]),
                average_prep_days=averaged["prep"],
                average_approval_days=averaged["approval"],
                average_total_days=averaged["total"],
                complexity=complexity,
                sample_size=int(sizes[doc_type_id]),
                optimization_potential=round_int(max(0.0, (averaged["total"] - target) / target * 100)),
                recommendations=[
                    text
                    for stage, limit, texts in _SLOW_STAGE_RECOMMENDATIONS
                    if averaged[stage] > limit
                    for text in texts
                ],
            )
        )
    return sorted(results, key=lambda result: result.average_total_days, reverse=True)


def _delay_severity(delay: float, bands: tuple[int, int, int]) -> str:
    critical, high, medium = bands
    if delay > critical:
        return "critical"
    if delay > high:
        return "high"
    if delay > medium:
        return "medium"
    return "low"


def analyze_bottlenecks(
    rows: Sequence[ProgressRecord],
    filters: FilterState,
    tz: tzinfo,
) -> list[BottleneckAnalysis]:
    """One entry per workflow stage: preparation, approval, then overall."""

    frame = _duration_frame(filter_records(rows, filters), tz)
    total_items = len(frame)

    analyses: list[BottleneckAnalysis] = []
    for stage, column, threshold, bands in BOTTLENECK_STAGES:
        excess = frame[column][frame[column] > threshold] - threshold
        affected = len(excess)
        delay = float(excess.mean()) if affected else 0.0
        analyses.append(
            BottleneckAnalysis(
                stage=stage,
                severity=_delay_severity(delay, bands),
                average_delay=_one_decimal(delay),
                affected_items=affected,
                total_items=total_items,
                impact_percentage=ratio_percent(affected, total_items),
                root_causes=list(_ROOT_CAUSES[stage]),
                recommendations=list(_STAGE_RECOMMENDATIONS[stage]),
                estimated_savings=round_int(delay * affected),
            )
        )
    return analyses
