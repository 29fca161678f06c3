from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Literal, Sequence

from compliance.core.rounding import round_int
from compliance.core.schema import (
    ContractorMetrics,
    ContractorRiskInput,
    ContractorRiskProfile,
    FactorRisks,
    HistoricalSample,
)
from compliance.core.settings import RiskSettings
from compliance.core.timeutils import local_date, zone_sort_value

HORIZONS: dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}

FACTOR_LABELS: tuple[tuple[str, str], ...] = (
    ("completion", "Completion"),
    ("quality", "Quality"),
    ("compliance", "Compliance"),
    ("timeline", "Timeline"),
)

RiskFilter = Literal["all", "critical", "high", "medium", "low"]
RiskSort = Literal["risk", "name"]


def parse_horizon(value: int | str) -> int:
    if isinstance(value, str):
        days = HORIZONS.get(value.strip().lower())
        if days is None and value.strip().isdigit():
            days = int(value.strip())
    else:
        days = value
    if days not in HORIZONS.values():
        raise ValueError(f"prediction horizon must be one of 7, 30 or 90 days, got {value!r}")
    return days


def calculate_factor_risks(metrics: ContractorMetrics, settings: RiskSettings | None = None) -> FactorRisks:
    """Weighted shortfall below each factor's floor; zero at or above the floor."""

    settings = settings or RiskSettings()
    risks: dict[str, float] = {}
    for name, _label in FACTOR_LABELS:
        factor = getattr(settings.factors, name)
        value = getattr(metrics, name)
        risks[name] = (factor.floor - value) * factor.weight if value < factor.floor else 0.0
    return FactorRisks(**risks)


def total_risk(metrics: ContractorMetrics, settings: RiskSettings | None = None) -> float:
    return min(100.0, calculate_factor_risks(metrics, settings).total)


def classify_risk_level(score: float, settings: RiskSettings | None = None) -> str:
    bounds = (settings or RiskSettings()).level_bounds
    if score < bounds.low:
        return "low"
    if score < bounds.medium:
        return "medium"
    if score < bounds.high:
        return "high"
    return "critical"


def identify_bottlenecks(factor_risks: FactorRisks, limit: int = 2) -> list[str]:
    ranked = [(label, getattr(factor_risks, name)) for name, label in FACTOR_LABELS]
    ranked = [entry for entry in ranked if entry[1] > 0]
    ranked.sort(key=lambda entry: entry[1], reverse=True)
    return [label for label, _risk in ranked[:limit]]


def predict_completion(completion: float, horizon_days: int, damping: float = 0.8) -> int:
    """Project the remaining gap to 100% over the horizon at a damped daily rate."""

    daily_rate = (100 - completion) / horizon_days
    projected = completion + daily_rate * horizon_days * damping
    return round_int(min(100.0, max(0.0, projected)))


def estimate_resources(completion: float) -> str:
    gap = 100 - completion
    if gap > 20:
        return "High"
    if gap > 10:
        return "Medium"
    return "Low"


def classify_trend(
    current_risk: float,
    history: Sequence[HistoricalSample],
    settings: RiskSettings | None = None,
) -> str:
    settings = settings or RiskSettings()
    ordered = sorted(history, key=lambda sample: zone_sort_value(sample.recorded_at, timezone.utc))
    recent = ordered[-settings.trend_window :]
    if len(recent) < 2:
        return "stable"

    old_risk = total_risk(recent[0], settings)
    if old_risk == 0 and current_risk == 0:
        return "stable"
    if current_risk <= old_risk * settings.improving_ratio:
        return "improving"
    if current_risk >= old_risk * settings.worsening_ratio:
        return "worsening"
    return "stable"


def score_contractor(
    contractor: ContractorRiskInput,
    now: datetime,
    tz: tzinfo,
    horizon: int | str = 30,
    settings: RiskSettings | None = None,
) -> ContractorRiskProfile:
    settings = settings or RiskSettings()
    horizon_days = parse_horizon(horizon)
    metrics = contractor.current_metrics

    factor_risks = calculate_factor_risks(metrics, settings)
    current = min(100.0, factor_risks.total)

    return ContractorRiskProfile(
        contractor_id=contractor.id,
        contractor_name=contractor.name,
        metrics=metrics,
        factor_risks=factor_risks,
        risk_score=round_int(current),
        risk_level=classify_risk_level(current, settings),
        bottlenecks=identify_bottlenecks(factor_risks),
        predicted_completion=predict_completion(metrics.completion, horizon_days, settings.damping),
        predicted_date=horizon_end(now, tz, horizon_days),
        estimated_resources=estimate_resources(metrics.completion),
        trend=classify_trend(current, contractor.historical_data, settings),
    )


def score_contractors(
    contractors: Iterable[ContractorRiskInput],
    now: datetime,
    tz: tzinfo,
    horizon: int | str = 30,
    settings: RiskSettings | None = None,
) -> list[ContractorRiskProfile]:
    return [score_contractor(contractor, now, tz, horizon, settings) for contractor in contractors]


def filter_and_sort_profiles(
    profiles: Iterable[ContractorRiskProfile],
    *,
    critical_high_only: bool = False,
    level: RiskFilter = "all",
    sort_by: RiskSort = "risk",
) -> list[ContractorRiskProfile]:
    """Presentation filtering; the critical+high quick filter overrides ``level``."""

    selected = list(profiles)
    if critical_high_only:
        selected = [profile for profile in selected if profile.risk_level in {"critical", "high"}]
    elif level != "all":
        selected = [profile for profile in selected if profile.risk_level == level]

    if sort_by == "risk":
        return sorted(selected, key=lambda profile: profile.risk_score, reverse=True)
    if sort_by == "name":
        return sorted(selected, key=lambda profile: profile.contractor_name.casefold())
    raise ValueError(f"unknown sort option: {sort_by}")


def count_critical_or_high(profiles: Iterable[ContractorRiskProfile]) -> int:
    return sum(1 for profile in profiles if profile.risk_level in {"critical", "high"})


def horizon_end(now: datetime, tz: tzinfo, horizon: int | str) -> date:
    return local_date(now, tz) + timedelta(days=parse_horizon(horizon))
