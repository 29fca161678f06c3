"""Application service layer for the compliance dashboard."""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel

from compliance.core import alerts, categories, kpi, risk, snapshot
from compliance.core.filters import filter_records
from compliance.core.schema import (
    ActionSuggestion,
    AlertItem,
    ApprovalTimeComparison,
    BottleneckAnalysis,
    CategoryProgress,
    ContractorCategoryProgress,
    ContractorPerformanceScore,
    ContractorRiskInput,
    ContractorRiskProfile,
    DashboardView,
    DocumentTypeProcessingTime,
    FilterState,
    HeatmapCell,
    MilestoneProgress,
    ProcessingTimeStats,
    RedCardsByLevel,
    RedCardStatistics,
)
from compliance.core.settings import EngineSettings, load_settings
from compliance.core.timeutils import Clock, SystemClock, day_phase
from compliance.core.validation import parse_risk_inputs
from compliance.domain import CacheKey, EvaluationPass
from compliance.infrastructure import BoundedCache, RowSource

logger = logging.getLogger(__name__)


class DashboardService:
    """Coordinates one evaluation pass per request over a row source.

    The clock is read once per call and every row is judged against that
    instant. Results are memoised per source revision, parameters, local day
    and how far the day has passed the planned due times, so any change in a
    day count or a reload yields fresh values.
    """

    def __init__(
        self,
        source: RowSource,
        *,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
        cache: BoundedCache | None = None,
    ) -> None:
        self._source = source
        self._settings = settings or EngineSettings()
        self._clock = clock or SystemClock()
        self._cache = cache or BoundedCache(
            capacity=self._settings.cache.capacity,
            policy=self._settings.cache.policy,
        )

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def cache(self) -> BoundedCache:
        return self._cache

    def _capture(self) -> EvaluationPass:
        return EvaluationPass.capture(self._clock, self._settings.tz)

    def _memoise(
        self,
        view: str,
        evaluation: EvaluationPass,
        params: tuple,
        compute: Callable[[], BaseModel],
        update: dict[str, Any] | None = None,
    ) -> Any:
        """Serve a deep copy of the cached result so callers never share state.

        Memoised views see the clock only through planned due dates, so the key
        holds the local day and where ``now`` sits among the due times of day.
        """

        revision = self._source.revision
        due_dates = [row.planned_due_date for row in self._source.progress_records()]
        key = CacheKey(
            view=view,
            revision=revision,
            day=evaluation.today.isoformat(),
            phase=day_phase(evaluation.now, due_dates, evaluation.tz),
            params=params,
        )
        if key in self._cache:
            logger.debug("cache hit for %s %s", view, params)
        else:
            logger.debug("cache miss for %s %s", view, params)
        return self._cache.get_or_compute(key, compute).model_copy(update=update, deep=True)

    @staticmethod
    def _filter_params(filters: FilterState) -> tuple:
        return (filters.contractor, filters.category, filters.search or "")

    # ------------------------------------------------------------------
    # dashboard bundle
    # ------------------------------------------------------------------
    def evaluate(self, filters: FilterState | None = None) -> DashboardView:
        filters = filters or FilterState()
        evaluation = self._capture()
        return self._memoise(
            "dashboard",
            evaluation,
            self._filter_params(filters),
            lambda: self._build_view(filters, evaluation),
            update={"evaluated_at": evaluation.now},
        )

    def _build_view(self, filters: FilterState, evaluation: EvaluationPass) -> DashboardView:
        now, tz = evaluation.now, evaluation.tz
        rows = self._source.progress_records()
        summaries = self._source.kpi_summaries()
        filtered = filter_records(rows, filters)

        view = DashboardView(
            filters=filters,
            evaluated_at=now,
            kpis=kpi.calculate_kpis(rows, filters, summaries, tz),
            red_cards=alerts.get_red_cards(filtered, now, tz),
            amber_alerts=alerts.get_amber_alerts(
                filtered,
                now,
                tz,
                days_threshold=self._settings.alerts.amber_days_threshold,
            ),
            snapshot=snapshot.get_process_snapshot(filtered, now, tz, limit=self._settings.snapshot.limit),
            categories=categories.get_category_progress(filtered),
            red_card_summary=kpi.calculate_red_cards_summary(rows, filters, now, tz),
        )
        logger.debug(
            "evaluated %d of %d rows: %d red, %d amber",
            len(filtered),
            len(rows),
            len(view.red_cards),
            len(view.amber_alerts),
        )
        return view

    # ------------------------------------------------------------------
    # unified alerts view
    # ------------------------------------------------------------------
    def red_cards_by_level(
        self,
        filters: FilterState | None = None,
        critical_doc_type_ids: Iterable[str] = (),
    ) -> RedCardsByLevel:
        filters = filters or FilterState()
        critical_ids = tuple(sorted(set(critical_doc_type_ids)))
        evaluation = self._capture()

        def _compute() -> RedCardsByLevel:
            rows = filter_records(self._source.progress_records(), filters)
            return alerts.extract_red_cards_by_level(
                rows,
                evaluation.now,
                evaluation.tz,
                critical_ids,
                settings=self._settings.alerts,
            )

        return self._memoise("red_cards_by_level", evaluation, self._filter_params(filters) + critical_ids, _compute)

    def red_card_statistics(self, filters: FilterState | None = None) -> RedCardStatistics:
        return alerts.get_red_cards_statistics(self.red_cards_by_level(filters))

    def sorted_alerts(
        self,
        state: alerts.AlertSortState,
        filters: FilterState | None = None,
    ) -> list[AlertItem]:
        cards = self.red_cards_by_level(filters).all
        return alerts.sort_alerts(cards, state, self._settings.tz)

    def action_suggestions(self, filters: FilterState | None = None) -> list[ActionSuggestion]:
        return alerts.generate_action_suggestions(self.red_cards_by_level(filters).all)

    # ------------------------------------------------------------------
    # rollups
    # ------------------------------------------------------------------
    def processing_times(self, filters: FilterState | None = None) -> list[ProcessingTimeStats]:
        filters = filters or FilterState()
        rows = filter_records(self._source.progress_records(), filters)
        return kpi.calculate_processing_times(rows, self._settings.tz)

    def processing_time_by_document_type(self, filters: FilterState | None = None) -> list[DocumentTypeProcessingTime]:
        return kpi.calculate_processing_time_by_document_type(
            self._source.progress_records(),
            filters or FilterState(),
            self._settings.tz,
        )

    def bottlenecks(self, filters: FilterState | None = None) -> list[BottleneckAnalysis]:
        return kpi.analyze_bottlenecks(self._source.progress_records(), filters or FilterState(), self._settings.tz)

    def approval_time_comparison(self, filters: FilterState | None = None) -> ApprovalTimeComparison:
        filters = filters or FilterState()
        evaluation = self._capture()
        return kpi.calculate_approval_time_comparison(
            self._source.progress_records(),
            filters,
            evaluation.now,
            evaluation.tz,
        )

    def category_progress(self, filters: FilterState | None = None) -> list[CategoryProgress]:
        filters = filters or FilterState()
        return categories.get_category_progress(filter_records(self._source.progress_records(), filters))

    def contractor_category_progress(self) -> list[ContractorCategoryProgress]:
        return categories.calculate_detailed_progress_by_contractor(self._source.progress_records())

    def performance_scores(self) -> list[ContractorPerformanceScore]:
        return categories.calculate_contractor_performance_scores(
            self._source.kpi_summaries(),
            self._source.progress_records(),
        )

    def heatmap(self, contractor_ids: Iterable[str] | None = None) -> list[HeatmapCell]:
        return categories.calculate_contractor_heatmap(self._source.progress_records(), contractor_ids)

    def milestones(self, filters: FilterState | None = None) -> list[MilestoneProgress]:
        filters = filters or FilterState()
        rows = filter_records(self._source.progress_records(), filters)
        return categories.calculate_milestone_progress(rows, self._settings.tz)

    # ------------------------------------------------------------------
    # contractor risk
    # ------------------------------------------------------------------
    def risk_profiles(
        self,
        contractors: Iterable[Mapping[str, Any] | ContractorRiskInput],
        horizon: int | str = 30,
        *,
        critical_high_only: bool = False,
        level: risk.RiskFilter = "all",
        sort_by: risk.RiskSort = "risk",
    ) -> list[ContractorRiskProfile]:
        inputs = parse_risk_inputs(contractors)
        evaluation = self._capture()
        profiles = risk.score_contractors(
            inputs,
            evaluation.now,
            evaluation.tz,
            horizon,
            settings=self._settings.risk,
        )
        logger.debug(
            "scored %d contractors, %d critical or high",
            len(profiles),
            risk.count_critical_or_high(profiles),
        )
        return risk.filter_and_sort_profiles(
            profiles,
            critical_high_only=critical_high_only,
            level=level,
            sort_by=sort_by,
        )

    def invalidate(self) -> None:
        self._cache.clear()


def create_dashboard_service(
    source: RowSource,
    *,
    config_path: str | None = None,
    clock: Clock | None = None,
) -> DashboardService:
    """Build a service with settings loaded from YAML and a cache sized from them."""

    settings = load_settings(config_path)
    cache = BoundedCache(capacity=settings.cache.capacity, policy=settings.cache.policy)
    return DashboardService(source, settings=settings, clock=clock, cache=cache)
