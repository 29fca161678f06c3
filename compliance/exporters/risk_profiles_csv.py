from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from compliance.core.schema import ContractorRiskProfile

COLUMNS = [
    "contractor_id",
    "contractor_name",
    "risk_score",
    "risk_level",
    "trend",
    "bottlenecks",
    "completion",
    "quality",
    "compliance",
    "timeline",
    "predicted_completion",
    "predicted_date",
    "estimated_resources",
]


def export_risk_profiles(path: Path, profiles: Iterable[ContractorRiskProfile]) -> Path:
    records = []
    for profile in profiles:
        data = profile.model_dump()
        records.append({
            "contractor_id": data["contractor_id"],
            "contractor_name": data["contractor_name"],
            "risk_score": data["risk_score"],
            "risk_level": data["risk_level"],
            "trend": data["trend"],
            "bottlenecks": "; ".join(data["bottlenecks"]),
            **data["metrics"],
            "predicted_completion": data["predicted_completion"],
            "predicted_date": data["predicted_date"].isoformat(),
            "estimated_resources": data["estimated_resources"],
        })
    df = pd.DataFrame(records, columns=COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
