"""Row sources feeding the engine with progress rows and KPI summaries."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol

import pandas as pd

from compliance.core.schema import KpiSummary, ProgressRecord
from compliance.core.validation import parse_kpi_summaries, parse_progress_records

logger = logging.getLogger(__name__)

TEXT_COLUMNS = {
    "contractor_id": str,
    "contractor_name": str,
    "doc_type_id": str,
    "doc_type_name": str,
    "doc_type_code": str,
    "category": str,
    "status_color": str,
}

SUMMARY_TEXT_COLUMNS = {"contractor_id": str, "contractor_name": str}


class RowSource(Protocol):
    """Snapshot provider for the reporting view."""

    @property
    def revision(self) -> str: ...

    def progress_records(self) -> list[ProgressRecord]: ...

    def kpi_summaries(self) -> list[KpiSummary]: ...


def records_from_frame(dataframe: pd.DataFrame) -> list[dict[str, Any]]:
    """Turn a DataFrame into plain dicts, mapping NaN/NaT to ``None``."""

    if dataframe.empty:
        return []
    cleaned = dataframe.astype(object).where(pd.notna(dataframe), None)
    return cleaned.to_dict(orient="records")


def _as_text(dataframe: pd.DataFrame, columns: Mapping[str, type]) -> pd.DataFrame:
    """Stringify identifier columns that spreadsheets may have stored as numbers."""

    for column in columns:
        if column in dataframe.columns:
            dataframe[column] = dataframe[column].map(lambda value: value if pd.isna(value) else str(value))
    return dataframe


class InMemoryRowSource:
    """Holds validated rows in memory; each ``replace`` bumps the revision."""

    def __init__(
        self,
        progress: Iterable[Mapping[str, Any] | ProgressRecord] = (),
        summaries: Iterable[Mapping[str, Any] | KpiSummary] = (),
    ) -> None:
        self._progress: list[ProgressRecord] = []
        self._summaries: list[KpiSummary] = []
        self._revision = 0
        self.replace(progress, summaries)

    @property
    def revision(self) -> str:
        return f"mem-{self._revision}"

    def replace(
        self,
        progress: Iterable[Mapping[str, Any] | ProgressRecord],
        summaries: Iterable[Mapping[str, Any] | KpiSummary] = (),
    ) -> None:
        self._progress = parse_progress_records(progress)
        self._summaries = parse_kpi_summaries(summaries)
        self._revision += 1

    def progress_records(self) -> list[ProgressRecord]:
        return list(self._progress)

    def kpi_summaries(self) -> list[KpiSummary]:
        return list(self._summaries)


class _FileRowSource:
    """Shared reload-on-change behaviour for file-backed sources."""

    label = "file"

    def __init__(self) -> None:
        self._loaded_revision: str | None = None
        self._progress: list[ProgressRecord] = []
        self._summaries: list[KpiSummary] = []

    def _paths(self) -> list[Path]:
        raise NotImplementedError

    def _read_progress(self) -> pd.DataFrame:
        raise NotImplementedError

    def _read_summaries(self) -> pd.DataFrame | None:
        raise NotImplementedError

    @property
    def revision(self) -> str:
        stamps = [str(path.stat().st_mtime_ns) for path in self._paths() if path.exists()]
        return f"{self.label}-" + "-".join(stamps)

    def _load(self) -> None:
        revision = self.revision
        if revision == self._loaded_revision:
            return
        self._progress = parse_progress_records(records_from_frame(self._read_progress()))
        summaries = self._read_summaries()
        self._summaries = parse_kpi_summaries(records_from_frame(summaries)) if summaries is not None else []
        self._loaded_revision = revision
        logger.info(
            "loaded %d progress rows and %d kpi summaries from %s",
            len(self._progress),
            len(self._summaries),
            self._paths()[0],
        )

    def progress_records(self) -> list[ProgressRecord]:
        self._load()
        return list(self._progress)

    def kpi_summaries(self) -> list[KpiSummary]:
        self._load()
        return list(self._summaries)


class CsvRowSource(_FileRowSource):
    """Reads exported reporting-view CSVs, re-parsing only when a file changes."""

    label = "csv"

    def __init__(self, progress_path: Path | str, summaries_path: Path | str | None = None) -> None:
        super().__init__()
        self._progress_path = Path(progress_path)
        self._summaries_path = Path(summaries_path) if summaries_path else None

    def _paths(self) -> list[Path]:
        paths = [self._progress_path]
        if self._summaries_path is not None:
            paths.append(self._summaries_path)
        return paths

    def _read_progress(self) -> pd.DataFrame:
        return pd.read_csv(self._progress_path, dtype=TEXT_COLUMNS)

    def _read_summaries(self) -> pd.DataFrame | None:
        if self._summaries_path is None or not self._summaries_path.exists():
            return None
        return pd.read_csv(self._summaries_path, dtype=SUMMARY_TEXT_COLUMNS)


class ExcelRowSource(_FileRowSource):
    """Reads a reporting-view workbook: one progress sheet, optional summary sheet."""

    label = "xlsx"

    def __init__(
        self,
        path: Path | str,
        *,
        progress_sheet: str = "progress",
        summaries_sheet: str = "kpi_summaries",
    ) -> None:
        super().__init__()
        self._path = Path(path)
        self._progress_sheet = progress_sheet
        self._summaries_sheet = summaries_sheet

    def _paths(self) -> list[Path]:
        return [self._path]

    def _read_progress(self) -> pd.DataFrame:
        dataframe = pd.read_excel(self._path, sheet_name=self._progress_sheet, dtype=object, engine="openpyxl")
        return _as_text(dataframe, TEXT_COLUMNS)

    def _read_summaries(self) -> pd.DataFrame | None:
        with pd.ExcelFile(self._path, engine="openpyxl") as workbook:
            if self._summaries_sheet not in workbook.sheet_names:
                return None
            return _as_text(workbook.parse(self._summaries_sheet, dtype=object), SUMMARY_TEXT_COLUMNS)
