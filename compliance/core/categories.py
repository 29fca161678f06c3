"""Portfolio rollups by category and by contractor x category."""

from __future__ import annotations

from datetime import tzinfo
from typing import Iterable, Sequence

import pandas as pd

from compliance.core.rounding import progress_percent, ratio_percent, round_int
from compliance.core.schema import (
    CategoryProgress,
    ContractorCategoryProgress,
    ContractorPerformanceScore,
    HeatmapCell,
    KpiSummary,
    MilestoneProgress,
    ProgressRecord,
)
from compliance.core.timeutils import zone_sort_value

UNCATEGORISED = "Uncategorised"


def _frame(rows: Sequence[ProgressRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "contractor_id": item.contractor_id,
                "contractor_name": item.contractor_name,
                "category": item.category if item.category is not None else UNCATEGORISED,
                "approved": item.approved_count,
                "required": item.required_count,
            }
            for item in rows
        ],
        columns=["contractor_id", "contractor_name", "category", "approved", "required"],
    )


def get_category_progress(rows: Sequence[ProgressRecord]) -> list[CategoryProgress]:
    """Approved/required per category, worst completion first."""

    dataframe = _frame(rows)
    if dataframe.empty:
        return []

    totals = dataframe.groupby("category", sort=False)[["approved", "required"]].sum().reset_index()
    totals["completion"] = [
        ratio_percent(int(approved), int(required))
        for approved, required in zip(totals["approved"], totals["required"])
    ]
    totals = totals.sort_values("completion", kind="stable")

    return [
        CategoryProgress(
            category=str(row.category),
            approved=int(row.approved),
            required=int(row.required),
            completion=int(row.completion),
        )
        for row in totals.itertuples(index=False)
    ]


def calculate_detailed_progress_by_contractor(rows: Sequence[ProgressRecord]) -> list[ContractorCategoryProgress]:
    dataframe = _frame(rows)
    if dataframe.empty:
        return []

    totals = (
        dataframe.groupby(["contractor_id", "category"], sort=False)
        .agg(contractor_name=("contractor_name", "first"), approved=("approved", "sum"), required=("required", "sum"))
        .reset_index()
    )
    totals = totals.sort_values(["contractor_name", "category"], kind="stable")

    return [
        ContractorCategoryProgress(
            contractor_id=str(row.contractor_id),
            contractor_name=str(row.contractor_name),
            category_name=str(row.category),
            approved=int(row.approved),
            required=int(row.required),
            completion_percentage=ratio_percent(int(row.approved), int(row.required)),
        )
        for row in totals.itertuples(index=False)
    ]


def calculate_milestone_progress(rows: Sequence[ProgressRecord], tz: tzinfo) -> list[MilestoneProgress]:
    milestones: list[MilestoneProgress] = []
    for item in rows:
        planned = item.planned_due_date
        if planned is None:
            continue
        completion = min(100, progress_percent(item.approved_count, item.required_count, empty=0))
        milestones.append(
            MilestoneProgress(
                id=f"{item.contractor_id}-{item.doc_type_id}",
                contractor_id=item.contractor_id,
                contractor_name=item.contractor_name,
                doc_type_id=item.doc_type_id,
                doc_type_name=item.doc_type_name,
                planned_date=planned,
                start_date=item.first_started_at or item.first_submitted_at or planned,
                end_date=item.first_approved_at or planned,
                completion_percentage=completion,
                status_color=item.status_color,
                approved_count=item.approved_count,
                required_count=item.required_count,
            )
        )
    return sorted(milestones, key=lambda milestone: zone_sort_value(milestone.planned_date, tz))


PERFORMANCE_WEIGHTS = {"completion": 0.3, "quality": 0.25, "speed": 0.2, "compliance": 0.25}


def _speed_score(avg_approval_days: float) -> int:
    if avg_approval_days <= 0:
        return 100
    return min(100, round_int(100 / (avg_approval_days + 1)))


def calculate_contractor_performance_scores(
    summaries: Sequence[KpiSummary],
    rows: Sequence[ProgressRecord] | None = None,
) -> list[ContractorPerformanceScore]:
    """Weighted completion/quality/speed/compliance score per contractor, ranked best first.

    Compliance starts at 100 and drops by the share of required critical
    documents that are red items; it stays at 100 when no rows are given.
    """

    critical_required: dict[str, int] = {}
    if rows:
        frame = pd.DataFrame(
            [
                {"contractor_id": item.contractor_id, "required": item.required_count}
                for item in rows
                if item.is_critical
            ],
            columns=["contractor_id", "required"],
        )
        totals = frame.groupby("contractor_id")["required"].sum()
        critical_required = {str(key): int(value) for key, value in totals.items()}

    scores: list[ContractorPerformanceScore] = []
    for summary in summaries:
        completion = round_int(summary.completion_ratio * 100)
        quality = round_int(summary.quality_score) if summary.quality_score is not None else completion
        speed = _speed_score(summary.avg_approval_days)

        compliance = 100.0
        total_critical = critical_required.get(summary.contractor_id, 0)
        if summary.red_items > 0 and total_critical > 0:
            compliance = max(0.0, 100 - summary.red_items / total_critical * 100)

        weighted = (
            completion * PERFORMANCE_WEIGHTS["completion"]
            + quality * PERFORMANCE_WEIGHTS["quality"]
            + speed * PERFORMANCE_WEIGHTS["speed"]
            + compliance * PERFORMANCE_WEIGHTS["compliance"]
        )
        scores.append(
            ContractorPerformanceScore(
                contractor_id=summary.contractor_id,
                contractor_name=summary.contractor_name,
                completion=completion,
                quality=quality,
                speed=speed,
                compliance=round_int(compliance),
                weighted_score=round_int(weighted),
            )
        )

    ranked = sorted(scores, key=lambda score: score.weighted_score, reverse=True)
    return [score.model_copy(update={"rank": index}) for index, score in enumerate(ranked, start=1)]


def _heatmap_status(value: int) -> str:
    if value >= 80:
        return "good"
    if value >= 60:
        return "average"
    return "poor"


def calculate_contractor_heatmap(
    rows: Sequence[ProgressRecord],
    contractor_ids: Iterable[str] | None = None,
) -> list[HeatmapCell]:
    """Completion per contractor x document type, in first-seen order."""

    wanted = set(contractor_ids or ())
    dataframe = pd.DataFrame(
        [
            {
                "contractor_id": item.contractor_id,
                "contractor_name": item.contractor_name,
                "doc_type_id": item.doc_type_id,
                "doc_type_name": item.doc_type_name,
                "approved": item.approved_count,
                "required": item.required_count,
            }
            for item in rows
            if not wanted or item.contractor_id in wanted
        ],
        columns=["contractor_id", "contractor_name", "doc_type_id", "doc_type_name", "approved", "required"],
    )
    if dataframe.empty:
        return []

    cells = (
        dataframe.groupby(["contractor_id", "doc_type_id"], sort=False)
        .agg(
            contractor_name=("contractor_name", "first"),
            doc_type_name=("doc_type_name", "first"),
            approved=("approved", "sum"),
            required=("required", "sum"),
        )
        .reset_index()
    )

    heatmap: list[HeatmapCell] = []
    for row in cells.itertuples(index=False):
        value = ratio_percent(int(row.approved), int(row.required))
        heatmap.append(
            HeatmapCell(
                contractor_id=str(row.contractor_id),
                contractor_name=str(row.contractor_name),
                doc_type_id=str(row.doc_type_id),
                doc_type_name=str(row.doc_type_name),
                value=value,
                status=_heatmap_status(value),
                approved=int(row.approved),
                required=int(row.required),
            )
        )
    return heatmap
