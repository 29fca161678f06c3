#!/usr/bin/env python
from __future__ import annotations

import argparse
import csv
from datetime import date, timedelta
from pathlib import Path


HEADER = [
    "contractor_id",
    "contractor_name",
    "doc_type_id",
    "doc_type_name",
    "doc_type_code",
    "category",
    "is_critical",
    "required_count",
    "approved_count",
    "planned_due_date",
    "status_color",
    "first_started_at",
    "first_submitted_at",
    "first_approved_at",
]

DOCUMENTS = [
    ("safety-plan", "Safety Plan", "SAF-01", "Safety", True),
    ("ppe-register", "PPE Register", "SAF-02", "Safety", True),
    ("insurance", "Insurance Certificate", "LEG-01", "Legal", True),
    ("method-statement", "Method Statement", "TEC-01", "Technical", False),
]


def _iso(day: date, offset: int) -> str:
    return (day + timedelta(days=offset)).isoformat()


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a sample progress CSV for the compliance report")
    parser.add_argument("--output", required=True, help="Output file path (.csv)")
    parser.add_argument("--as-of", default=date.today().isoformat(), help="Reference date, YYYY-MM-DD")
    parser.add_argument("--contractors", type=int, default=3, help="Number of contractors")
    args = parser.parse_args()

    as_of = date.fromisoformat(args.as_of)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", newline="", encoding="utf-8") as fp:
        writer = csv.writer(fp)
        writer.writerow(HEADER)
        for index in range(1, args.contractors + 1):
            for position, (doc_id, doc_name, code, category, critical) in enumerate(DOCUMENTS):
                # spread due dates from ten days late to eight days ahead
                due_offset = (index * 3 + position * 5) % 19 - 10
                approved = 1 if due_offset > 4 else 0
                if approved:
                    color = "green"
                elif due_offset < 0:
                    color = "red"
                else:
                    color = "amber"
                writer.writerow(
                    [
                        f"C{index:03d}",
                        f"Contractor {index}",
                        doc_id,
                        doc_name,
                        code,
                        category,
                        str(critical),
                        1,
                        approved,
                        _iso(as_of, due_offset),
                        color,
                        _iso(as_of, due_offset - 14),
                        _iso(as_of, due_offset - 6) if approved else "",
                        _iso(as_of, due_offset - 2) if approved else "",
                    ]
                )

    print(f"Sample progress CSV written: {output}")


if __name__ == "__main__":
    main()
