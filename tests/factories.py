"""Row builders shared by the test modules."""
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from compliance.core.schema import ContractorRiskInput, ProgressRecord

BANGKOK = ZoneInfo("Asia/Bangkok")

# 2025-01-15 00:00 in Bangkok
NOW = datetime(2025, 1, 14, 17, 0, tzinfo=timezone.utc)


def row_data(**overrides) -> dict:
    data = {
        "contractor_id": "C001",
        "contractor_name": "Acme Builders",
        "doc_type_id": "safety-plan",
        "doc_type_name": "Safety Plan",
        "doc_type_code": "SAF-01",
        "category": "Safety",
        "is_critical": True,
        "required_count": 1,
        "approved_count": 0,
        "planned_due_date": None,
        "status_color": "green",
    }
    data.update(overrides)
    return data


def make_row(**overrides) -> ProgressRecord:
    return ProgressRecord(**row_data(**overrides))


def make_contractor(
    contractor_id: str = "C001",
    name: str = "Acme Builders",
    history: list[dict] | None = None,
    **metrics,
) -> ContractorRiskInput:
    current = {"completion": 100, "quality": 100, "compliance": 100, "timeline": 100}
    current.update(metrics)
    return ContractorRiskInput(
        id=contractor_id,
        name=name,
        current_metrics=current,
        historical_data=history or [],
    )
