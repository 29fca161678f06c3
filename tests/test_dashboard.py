from datetime import datetime, timedelta

import pytest

from compliance.application import DashboardService, create_dashboard_service
from compliance.core.alerts import AlertSortState
from compliance.core.schema import FilterState
from compliance.core.timeutils import FixedClock
from compliance.infrastructure import BoundedCache, InMemoryRowSource

from tests.factories import BANGKOK, NOW, row_data


class SteppingClock:
    def __init__(self, instant):
        self.instant = instant

    def now(self):
        return self.instant


def _source():
    return InMemoryRowSource(
        progress=[
            row_data(doc_type_id="a", status_color="red", planned_due_date="2025-01-10"),
            row_data(doc_type_id="b", status_color="amber", planned_due_date="2025-01-17"),
            row_data(doc_type_id="c", status_color="green", approved_count=1),
            row_data(
                contractor_id="C002",
                contractor_name="Bolt Electrical",
                doc_type_id="d",
                category="Legal",
                status_color="amber",
                planned_due_date="2025-01-20",
                required_count=2,
                approved_count=1,
            ),
        ],
        summaries=[{"contractor_id": "C002", "contractor_name": "Bolt Electrical", "completion_ratio": 0.5}],
    )


@pytest.fixture()
def service():
    return DashboardService(_source(), clock=FixedClock(NOW), cache=BoundedCache(capacity=8))


def test_evaluate_bundles_every_view(service):
    view = service.evaluate()
    assert view.evaluated_at == NOW
    assert view.kpis.overall_completion == 40
    assert view.kpis.overdue_must_haves == 1
    assert [card.doc_type_id for card in view.red_cards] == ["a"]
    assert [alert.doc_type_id for alert in view.amber_alerts] == ["b"]
    assert [item.doc_type_id for item in view.snapshot] == ["a", "b", "d", "c"]
    assert [item.category for item in view.categories] == ["Safety", "Legal"]
    assert view.red_card_summary.overdue == 1


def test_single_contractor_view(service):
    view = service.evaluate(FilterState(contractor="C002"))
    assert view.kpis.overall_completion == 50
    assert view.red_cards == []
    assert [item.doc_type_id for item in view.snapshot] == ["d"]


def test_results_are_memoised_until_inputs_change():
    source = _source()
    clock = SteppingClock(NOW)
    service = DashboardService(source, clock=clock)

    first = service.evaluate()
    assert service.evaluate() == first
    assert service.cache.stats().hits == 1
    service.evaluate(FilterState(search="safety"))
    assert service.cache.stats().misses == 2

    clock.instant = NOW + timedelta(days=1)
    next_day = service.evaluate()
    assert next_day.evaluated_at == NOW + timedelta(days=1)
    assert next_day.red_cards[0].overdue_days == 6

    source.replace([row_data(status_color="green", approved_count=1)])
    assert service.evaluate().red_cards == []

    service.invalidate()
    assert len(service.cache) == 0


def test_unified_alerts_and_suggestions(service):
    cards = service.red_cards_by_level()
    assert [card.doc_type_id for card in cards.level3] == ["a"]
    assert [card.doc_type_id for card in cards.level2] == ["b"]
    assert [card.doc_type_id for card in cards.level1] == ["d"]
    assert service.red_card_statistics().total == 3

    ordered = service.sorted_alerts(AlertSortState(key="risk_score", direction="asc"))
    assert [card.doc_type_id for card in ordered] == ["d", "b", "a"]

    assert [suggestion.id for suggestion in service.action_suggestions()] == [
        "C001-daily-followup",
        "C001-support",
        "C002-support",
    ]


def test_rollups(service):
    assert [item.contractor_id for item in service.processing_times()] == ["C001", "C002"]
    assert service.approval_time_comparison().current == 0
    assert [item.category for item in service.category_progress(FilterState(category="Legal"))] == ["Legal"]
    assert len(service.contractor_category_progress()) == 2
    assert [item.doc_type_id for item in service.milestones()] == ["a", "b", "d"]
    assert [item.doc_type_id for item in service.processing_time_by_document_type()] == ["a", "b", "c", "d"]
    assert [item.stage for item in service.bottlenecks(FilterState(contractor="C002"))] == [
        "preparation",
        "approval",
        "overall",
    ]
    (score,) = service.performance_scores()
    assert (score.contractor_id, score.weighted_score, score.rank) == ("C002", 73, 1)
    assert [cell.doc_type_id for cell in service.heatmap(["C002"])] == ["d"]


def test_risk_profiles(service):
    contractors = [
        {
            "id": "C001",
            "name": "Acme Builders",
            "current_metrics": {"completion": 50, "quality": 80, "compliance": 50, "timeline": 80},
        },
        {
            "id": "C002",
            "name": "Bolt Electrical",
            "current_metrics": {"completion": 95, "quality": 95, "compliance": 95, "timeline": 95},
        },
    ]
    profiles = service.risk_profiles(contractors, horizon="90d")
    assert [profile.contractor_id for profile in profiles] == ["C001", "C002"]
    assert profiles[0].risk_score == 90

    urgent = service.risk_profiles(contractors, critical_high_only=True)
    assert [profile.contractor_id for profile in urgent] == ["C001"]


def test_factory_loads_settings(monkeypatch):
    monkeypatch.setenv("COMPLIANCE_TIMEZONE", "UTC")
    service = create_dashboard_service(_source(), clock=FixedClock(NOW))
    assert service.settings.timezone == "UTC"
    assert service.cache.capacity == 64
    # 17:00 UTC on the 14th: the 10th is only four days back
    assert service.evaluate().red_cards[0].overdue_days == 4


def test_due_time_of_day_crossing_refreshes_cached_view():
    clock = SteppingClock(datetime(2025, 1, 15, 10, 0, tzinfo=BANGKOK))
    source = InMemoryRowSource(
        [row_data(doc_type_id="a", status_color="red", planned_due_date="2025-01-14T12:00:00+07:00")]
    )
    service = DashboardService(source, clock=clock)

    morning = service.evaluate()
    assert morning.red_cards == []

    clock.instant = datetime(2025, 1, 15, 11, 0, tzinfo=BANGKOK)
    assert service.evaluate().red_cards == []
    assert service.cache.stats().hits == 1

    clock.instant = datetime(2025, 1, 15, 13, 0, tzinfo=BANGKOK)
    afternoon = service.evaluate()
    assert [card.doc_type_id for card in afternoon.red_cards] == ["a"]
    assert afternoon.red_cards[0].overdue_days == 1
    assert afternoon.evaluated_at == clock.instant


def test_cached_results_are_not_shared_between_callers(service):
    view = service.evaluate()
    view.red_cards.clear()
    view.snapshot.append(view.snapshot[0])
    again = service.evaluate()
    assert [card.doc_type_id for card in again.red_cards] == ["a"]
    assert len(again.snapshot) == 4

    cards = service.red_cards_by_level()
    cards.level3.clear()
    assert [card.doc_type_id for card in service.red_cards_by_level().level3] == ["a"]
