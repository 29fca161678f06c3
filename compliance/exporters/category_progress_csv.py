from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pandas as pd

from compliance.core.schema import CategoryProgress

COLUMNS = ["category", "approved", "required", "completion"]


def export_category_progress(path: Path, rows: Iterable[CategoryProgress]) -> Path:
    df = pd.DataFrame([row.model_dump() for row in rows], columns=COLUMNS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path
