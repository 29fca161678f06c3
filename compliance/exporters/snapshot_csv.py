from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from compliance.core.schema import SnapshotItem

COLUMNS = [
    "contractor_id",
    "contractor_name",
    "doc_type_id",
    "doc_type_name",
    "status_color",
    "severity_rank",
    "overdue_days",
    "due_in_days",
    "progress_percent",
    "planned_due_date",
]


def export_snapshot(path: Path, items: Iterable[SnapshotItem]) -> Path:
    records = [item.model_dump(include=set(COLUMNS)) for item in items]
    df = pd.DataFrame(records, columns=COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
