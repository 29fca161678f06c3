#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from compliance.application import create_dashboard_service
from compliance.core.schema import FilterState
from compliance.core.timeutils import FixedClock
from compliance.exporters.snapshot_csv import export_snapshot
from compliance.infrastructure import CsvRowSource, ExcelRowSource


def main() -> None:
    parser = argparse.ArgumentParser(description="Print the compliance dashboard for a progress export")
    parser.add_argument("progress", help="Progress rows CSV, or an .xlsx workbook with progress and kpi_summaries sheets")
    parser.add_argument("--summaries", help="Per-contractor KPI summary CSV")
    parser.add_argument("--config", help="Engine settings YAML (defaults to the bundled engine.yaml)")
    parser.add_argument("--contractor", default="all", help="Contractor id filter")
    parser.add_argument("--category", default="all", help="Category filter")
    parser.add_argument("--search", help="Free-text search")
    parser.add_argument("--as-of", help="Evaluate at this ISO instant instead of now")
    parser.add_argument("--snapshot-csv", help="Also write the process snapshot to this CSV")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if Path(args.progress).suffix.lower() == ".xlsx":
        source = ExcelRowSource(args.progress)
    else:
        source = CsvRowSource(args.progress, args.summaries)
    clock = FixedClock(args.as_of) if args.as_of else None
    service = create_dashboard_service(source, config_path=args.config, clock=clock)

    filters = FilterState(contractor=args.contractor, category=args.category, search=args.search)
    view = service.evaluate(filters)
    print(json.dumps(view.model_dump(mode="json"), ensure_ascii=False, indent=2))

    if args.snapshot_csv:
        path = export_snapshot(Path(args.snapshot_csv), view.snapshot)
        logging.getLogger(__name__).info("snapshot written to %s", path)


if __name__ == "__main__":
    main()
