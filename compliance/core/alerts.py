from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Callable, Iterable, Literal, Sequence

from compliance.core.rounding import progress_percent, round_int
from compliance.core.schema import (
    ActionButton,
    ActionSuggestion,
    AlertItem,
    ProgressRecord,
    RedCardItem,
    RedCardsByLevel,
    RedCardStatistics,
)
from compliance.core.settings import AlertSettings, LevelConfig
from compliance.core.timeutils import days_between, due_in_days, overdue_days, zone_sort_value

SortKey = Literal[
    "severity",
    "doc_type_name",
    "contractor_name",
    "risk_score",
    "due_date",
    "overdue_days",
    "due_in_days",
]
SortDirection = Literal["asc", "desc"]

SORT_KEYS: tuple[str, ...] = (
    "severity",
    "doc_type_name",
    "contractor_name",
    "risk_score",
    "due_date",
    "overdue_days",
    "due_in_days",
)

HIGH_RISK_SCORE = 70

_FAR_FUTURE = float("inf")


def _to_alert(item: ProgressRecord, now: datetime, tz: tzinfo) -> AlertItem:
    return AlertItem(
        **item.model_dump(),
        overdue_days=overdue_days(item.planned_due_date, now, tz),
        due_in_days=due_in_days(item.planned_due_date, now, tz),
    )


# ----------------------------------------------------------------------
# red / amber card lists
# ----------------------------------------------------------------------
def get_red_cards(rows: Iterable[ProgressRecord], now: datetime, tz: tzinfo) -> list[AlertItem]:
    """Critical red rows at least one day past due, most overdue first."""

    cards = [
        _to_alert(item, now, tz)
        for item in rows
        if item.is_critical and item.status_color == "red"
    ]
    cards = [card for card in cards if card.overdue_days > 0]
    return sorted(cards, key=lambda card: card.overdue_days, reverse=True)


def get_amber_alerts(
    rows: Iterable[ProgressRecord],
    now: datetime,
    tz: tzinfo,
    days_threshold: int = 3,
) -> list[AlertItem]:
    """Critical amber rows due within ``days_threshold`` days, soonest first.

    A due date that has already passed counts as due in 0 days.
    """

    alerts = []
    for item in rows:
        if not (item.is_critical and item.status_color == "amber" and item.planned_due_date):
            continue
        days_left = max(0, days_between(now, item.planned_due_date, tz))
        if days_left > days_threshold:
            continue
        alerts.append(
            AlertItem(
                **item.model_dump(),
                overdue_days=overdue_days(item.planned_due_date, now, tz),
                due_in_days=days_left,
            )
        )
    return sorted(alerts, key=lambda alert: alert.due_in_days)


# ----------------------------------------------------------------------
# unified three-tier view
# ----------------------------------------------------------------------
def extract_critical_alerts(
    rows: Iterable[ProgressRecord],
    now: datetime,
    tz: tzinfo,
    critical_doc_type_ids: Iterable[str] = (),
) -> list[AlertItem]:
    """Outstanding must-have rows, most overdue first then soonest due.

    When ``critical_doc_type_ids`` is given it replaces the per-row critical flag.
    """

    critical_ids = set(critical_doc_type_ids)

    def _is_critical(item: ProgressRecord) -> bool:
        return item.doc_type_id in critical_ids if critical_ids else item.is_critical

    alerts = [
        _to_alert(item, now, tz)
        for item in rows
        if _is_critical(item) and item.required_count > 0 and item.approved_count < item.required_count
    ]
    return sorted(
        alerts,
        key=lambda alert: (
            -alert.overdue_days,
            alert.due_in_days is None,
            alert.due_in_days or 0,
        ),
    )


def calculate_warning_level(
    progress_percentage: int,
    due_in: int | None,
    overdue: int,
    settings: AlertSettings | None = None,
) -> int:
    """Tier 3 when overdue, tier 2 inside the urgent window, otherwise tier 1."""

    settings = settings or AlertSettings()
    if overdue > 0:
        return 3
    if due_in is not None and due_in <= settings.urgent_days:
        return 2
    return 1


def calculate_alert_risk_score(
    progress_percentage: int,
    due_in: int | None,
    overdue: int,
    is_critical: bool,
    early_days: int = 7,
) -> int:
    score = (100 - progress_percentage) * 0.4
    if overdue > 0:
        score += min(overdue * 5, 40)
    if due_in is not None and due_in <= early_days:
        score += (early_days - due_in) * 4
    if is_critical:
        score += 20
    return max(0, min(100, round_int(score)))


def _action_slug(label: str) -> str:
    return "execute-" + re.sub(r"\s+", "-", label.strip().lower())


def _button_severity(level: int) -> str:
    if level == 3:
        return "destructive"
    if level == 2:
        return "secondary"
    return "primary"


def convert_to_red_card(
    item: AlertItem,
    is_critical: bool = True,
    settings: AlertSettings | None = None,
) -> RedCardItem:
    settings = settings or AlertSettings()
    progress = progress_percent(item.approved_count, item.required_count, empty=0)
    level = calculate_warning_level(progress, item.due_in_days, item.overdue_days, settings)
    config: LevelConfig = settings.levels[level]
    risk_score = calculate_alert_risk_score(
        progress,
        item.due_in_days,
        item.overdue_days,
        is_critical,
        early_days=settings.early_days,
    )
    buttons = [
        ActionButton(label=action, action=_action_slug(action), severity=_button_severity(level))
        for action in config.actions
    ]
    return RedCardItem(
        **item.model_dump(),
        warning_level=level,
        progress_percentage=progress,
        risk_score=risk_score,
        color_code=config.color_code,
        recommended_actions=list(config.actions),
        action_buttons=buttons,
    )


def extract_red_cards_by_level(
    rows: Sequence[ProgressRecord],
    now: datetime,
    tz: tzinfo,
    critical_doc_type_ids: Iterable[str] = (),
    settings: AlertSettings | None = None,
) -> RedCardsByLevel:
    critical_ids = set(critical_doc_type_ids)
    alerts = extract_critical_alerts(rows, now, tz, critical_ids)
    cards = [
        convert_to_red_card(
            alert,
            is_critical=alert.doc_type_id in critical_ids if critical_ids else alert.is_critical,
            settings=settings,
        )
        for alert in alerts
    ]

    def _tier(level: int) -> list[RedCardItem]:
        return sorted(
            (card for card in cards if card.warning_level == level),
            key=lambda card: card.risk_score,
            reverse=True,
        )

    return RedCardsByLevel(level1=_tier(1), level2=_tier(2), level3=_tier(3), all=cards)


def get_red_cards_statistics(cards: RedCardsByLevel) -> RedCardStatistics:
    scored = cards.all
    average = round_int(sum(card.risk_score for card in scored) / len(scored)) if scored else 0
    return RedCardStatistics(
        total=len(scored),
        level1_count=len(cards.level1),
        level2_count=len(cards.level2),
        level3_count=len(cards.level3),
        high_risk_count=sum(1 for card in scored if card.risk_score > HIGH_RISK_SCORE),
        contractors_affected=len({card.contractor_id for card in scored}),
        average_risk_score=average,
    )


# ----------------------------------------------------------------------
# sorting for the combined alerts table
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AlertSortState:
    key: SortKey = "overdue_days"
    direction: SortDirection = "desc"

    def toggle(self, key: SortKey) -> "AlertSortState":
        """Flip direction for the active key; a new key starts descending."""

        if key not in SORT_KEYS:
            raise ValueError(f"unknown sort key: {key}")
        if key == self.key:
            return AlertSortState(key=key, direction="asc" if self.direction == "desc" else "desc")
        return AlertSortState(key=key, direction="desc")


def _due_date_value(card: AlertItem, tz: tzinfo) -> float:
    if card.planned_due_date is None:
        return _FAR_FUTURE
    return zone_sort_value(card.planned_due_date, tz)


def _sort_value(key: str, tz: tzinfo) -> Callable[[AlertItem], object]:
    if key == "severity":
        return lambda card: getattr(card, "warning_level", 3 if card.overdue_days > 0 else 2)
    if key == "doc_type_name":
        return lambda card: card.doc_type_name.lower()
    if key == "contractor_name":
        return lambda card: card.contractor_name.lower()
    if key == "risk_score":
        return lambda card: getattr(card, "risk_score", 0)
    if key == "due_date":
        return lambda card: _due_date_value(card, tz)
    if key == "overdue_days":
        return lambda card: card.overdue_days
    if key == "due_in_days":
        return lambda card: _FAR_FUTURE if card.due_in_days is None else card.due_in_days
    raise ValueError(f"unknown sort key: {key}")


def sort_alerts(items: Iterable[AlertItem], state: AlertSortState, tz: tzinfo) -> list[AlertItem]:
    """Stable sort; equal keys keep their incoming order in either direction."""

    return sorted(items, key=_sort_value(state.key, tz), reverse=state.direction == "desc")


# ----------------------------------------------------------------------
# remediation suggestions (data only, never dispatched here)
# ----------------------------------------------------------------------
_SUGGESTION_RANK = {"high": 3, "medium": 2, "low": 1}


def generate_action_suggestions(alerts: Sequence[AlertItem]) -> list[ActionSuggestion]:
    groups: dict[str, list[AlertItem]] = {}
    for alert in alerts:
        groups.setdefault(alert.contractor_id, []).append(alert)

    suggestions: list[ActionSuggestion] = []
    for contractor_id, items in groups.items():
        contractor_name = items[0].contractor_name
        overdue_heavy = [alert for alert in items if alert.overdue_days >= 7]
        due_soon = [
            alert
            for alert in items
            if alert.overdue_days == 0 and alert.due_in_days is not None and alert.due_in_days <= 2
        ]

        if len(items) >= 3:
            suggestions.append(
                ActionSuggestion(
                    id=f"{contractor_id}-war-room",
                    contractor_id=contractor_id,
                    contractor_name=contractor_name,
                    severity="high",
                    message=(
                        f"Schedule an escalation meeting with {contractor_name} to address "
                        f"{len(items)} outstanding critical documents immediately."
                    ),
                    related_documents=[alert.doc_type_name for alert in items],
                )
            )

        if overdue_heavy:
            names = ", ".join(alert.doc_type_name for alert in overdue_heavy)
            suggestions.append(
                ActionSuggestion(
                    id=f"{contractor_id}-escalate",
                    contractor_id=contractor_id,
                    contractor_name=contractor_name,
                    severity="high",
                    message=f"Initiate executive escalation for {names}; these items are over 7 days late.",
                    related_documents=[alert.doc_type_name for alert in overdue_heavy],
                )
            )

        if due_soon:
            names = ", ".join(alert.doc_type_name for alert in due_soon)
            suggestions.append(
                ActionSuggestion(
                    id=f"{contractor_id}-daily-followup",
                    contractor_id=contractor_id,
                    contractor_name=contractor_name,
                    severity="medium",
                    message=(
                        f"Set up daily progress checkpoints for {contractor_name} on {names} "
                        "before the deadline hits."
                    ),
                    related_documents=[alert.doc_type_name for alert in due_soon],
                )
            )

        remaining = len(items) - len(overdue_heavy) - len(due_soon)
        if remaining > 0:
            suggestions.append(
                ActionSuggestion(
                    id=f"{contractor_id}-support",
                    contractor_id=contractor_id,
                    contractor_name=contractor_name,
                    severity="low",
                    message=(
                        f"Provide checklist guidance to {contractor_name} for the remaining "
                        f"{remaining} critical documents in progress."
                    ),
                    related_documents=[alert.doc_type_name for alert in items],
                )
            )

    return sorted(suggestions, key=lambda suggestion: _SUGGESTION_RANK[suggestion.severity], reverse=True)


def suggest_actions(row: ProgressRecord, now: datetime, tz: tzinfo, urgent_days: int = 3) -> list[str]:
    """Follow-up wording for a single row; empty for rows that need nothing."""

    actions: list[str] = []
    if row.planned_due_date is None:
        return actions

    if row.status_color == "red":
        days_over = overdue_days(row.planned_due_date, now, tz)
        if days_over > 0:
            plural = "" if days_over == 1 else "s"
            actions.append(
                f"Schedule an urgent meeting with {row.contractor_name} about {row.doc_type_name} "
                f"(overdue {days_over} day{plural})."
            )
            actions.append(f"Send an escalation email with the latest template for {row.doc_type_name}.")
            actions.append("Assign a mentor to close the gaps and share the standard checklist.")

    if row.status_color == "amber":
        days_left = due_in_days(row.planned_due_date, now, tz)
        if days_left is not None and days_left <= urgent_days:
            actions.append("Add daily reminders and book a pre-deadline internal review.")
            actions.append(f"Check in with {row.contractor_name} to confirm progress on {row.doc_type_name}.")

    return actions
