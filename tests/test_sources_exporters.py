import csv
import os
from datetime import datetime
from pathlib import Path

import pandas as pd
from openpyxl import Workbook

from compliance.core.categories import get_category_progress
from compliance.core.risk import score_contractor
from compliance.core.snapshot import get_process_snapshot
from compliance.exporters.category_progress_csv import export_category_progress
from compliance.exporters.risk_profiles_csv import export_risk_profiles
from compliance.exporters.snapshot_csv import export_snapshot
from compliance.infrastructure import CsvRowSource, ExcelRowSource, InMemoryRowSource, records_from_frame

from tests.factories import make_contractor, make_row, row_data


def _write_csv(path: Path, rows: list[dict]) -> Path:
    fieldnames: list[str] = []
    for row in rows:
        for key in row.keys():
            if key not in fieldnames:
                fieldnames.append(key)
    with path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.DictWriter(fp, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def test_csv_source_loads_and_tracks_revision(tmp_path):
    progress = _write_csv(
        tmp_path / "progress.csv",
        [
            row_data(doc_type_id="001", status_color="red", planned_due_date="2025-01-10", first_started_at=""),
            row_data(doc_type_id="002", doc_type_code="", is_critical=False, planned_due_date=""),
        ],
    )
    summaries = _write_csv(
        tmp_path / "summaries.csv",
        [{"contractor_id": "007", "contractor_name": "Acme Builders", "completion_ratio": 0.25}],
    )
    source = CsvRowSource(progress, summaries)

    records = source.progress_records()
    assert [record.doc_type_id for record in records] == ["001", "002"]
    assert records[0].is_critical is True
    assert records[1].is_critical is False
    assert records[0].first_started_at is None
    assert records[1].planned_due_date is None
    assert records[1].doc_type_code is None
    assert source.kpi_summaries()[0].contractor_id == "007"

    revision = source.revision
    _write_csv(progress, [row_data(doc_type_id="003")])
    stat = progress.stat()
    os.utime(progress, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))
    assert source.revision != revision
    assert [record.doc_type_id for record in source.progress_records()] == ["003"]


def test_csv_source_without_summaries(tmp_path):
    progress = _write_csv(tmp_path / "progress.csv", [row_data()])
    source = CsvRowSource(progress)
    assert source.kpi_summaries() == []
    assert len(source.progress_records()) == 1


def test_in_memory_source_revision_bumps():
    source = InMemoryRowSource([row_data()])
    first = source.revision
    source.replace([row_data(), row_data(doc_type_id="other")])
    assert source.revision != first
    assert len(source.progress_records()) == 2


def test_records_from_frame_maps_missing_to_none():
    frame = pd.DataFrame([{"a": 1.0, "b": "x"}, {"a": float("nan"), "b": None}])
    assert records_from_frame(frame) == [{"a": 1.0, "b": "x"}, {"a": None, "b": None}]
    assert records_from_frame(pd.DataFrame()) == []


def test_exporters_write_csv(tmp_path, now, tz):
    rows = [
        make_row(doc_type_id="a", status_color="red", planned_due_date="2025-01-10"),
        make_row(doc_type_id="b", category="Legal", approved_count=1),
    ]

    snapshot_path = export_snapshot(tmp_path / "out" / "snapshot.csv", get_process_snapshot(rows, now, tz))
    snapshot = pd.read_csv(snapshot_path)
    assert list(snapshot["doc_type_id"]) == ["a", "b"]
    assert list(snapshot["overdue_days"]) == [5, 0]

    category_path = export_category_progress(tmp_path / "categories.csv", get_category_progress(rows))
    categories = pd.read_csv(category_path)
    assert list(categories.columns) == ["category", "approved", "required", "completion"]
    assert list(categories["category"]) == ["Safety", "Legal"]

    profile = score_contractor(make_contractor(completion=50, quality=80, compliance=50, timeline=80), now, tz)
    risk_path = export_risk_profiles(tmp_path / "risk.csv", [profile])
    risk = pd.read_csv(risk_path)
    assert risk.loc[0, "bottlenecks"] == "Compliance; Completion"
    assert risk.loc[0, "risk_score"] == 90
    assert risk.loc[0, "predicted_date"] == "2025-02-14"


def test_excel_source_reads_progress_and_summary_sheets(tmp_path):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "progress"
    sheet.append(["contractor_id", "contractor_name", "doc_type_id", "doc_type_name", "category", "is_critical",
                  "required_count", "approved_count", "planned_due_date", "status_color"])
    sheet.append(["001", "Acme Builders", "safety-plan", "Safety Plan", "Safety", True, 1, 0,
                  datetime(2025, 1, 10), "red"])
    sheet.append(["001", "Acme Builders", "insurance", "Insurance", None, False, 2, 2, None, "green"])
    summaries = workbook.create_sheet("kpi_summaries")
    summaries.append(["contractor_id", "contractor_name", "completion_ratio"])
    summaries.append(["001", "Acme Builders", 0.5])
    path = tmp_path / "progress.xlsx"
    workbook.save(path)

    source = ExcelRowSource(path)
    records = source.progress_records()
    assert [record.doc_type_id for record in records] == ["safety-plan", "insurance"]
    assert records[0].contractor_id == "001"
    assert records[0].planned_due_date == datetime(2025, 1, 10)
    assert records[1].category is None
    assert records[1].planned_due_date is None
    assert source.kpi_summaries()[0].completion_ratio == 0.5
    assert source.revision.startswith("xlsx-")


def test_excel_source_without_summary_sheet(tmp_path):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "progress"
    sheet.append(["contractor_id", "contractor_name", "doc_type_id", "doc_type_name"])
    sheet.append(["C001", "Acme Builders", "safety-plan", "Safety Plan"])
    path = tmp_path / "progress.xlsx"
    workbook.save(path)

    source = ExcelRowSource(path)
    assert len(source.progress_records()) == 1
    assert source.kpi_summaries() == []
