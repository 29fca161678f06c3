from __future__ import annotations

from typing import Any, Iterable, Mapping

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from compliance.core.schema import ContractorRiskInput, KpiSummary, ProgressRecord


class ValidationError(Exception):
    """Raised when an input row cannot enter the scoring pipeline."""

    def __init__(self, message: str, *, index: int | None = None, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.index = index
        self.errors = errors or []


def _parse_rows(model: type[BaseModel], rows: Iterable[Mapping[str, Any] | BaseModel], label: str) -> list:
    parsed = []
    for index, row in enumerate(rows):
        if isinstance(row, model):
            parsed.append(row)
            continue
        data = row.model_dump() if isinstance(row, BaseModel) else dict(row)
        try:
            parsed.append(model(**data))
        except SchemaError as exc:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
            raise ValidationError(
                f"invalid {label} at row {index}: {fields}",
                index=index,
                errors=exc.errors(),
            ) from exc
    return parsed


def parse_progress_records(rows: Iterable[Mapping[str, Any] | BaseModel]) -> list[ProgressRecord]:
    return _parse_rows(ProgressRecord, rows, "progress record")


def parse_kpi_summaries(rows: Iterable[Mapping[str, Any] | BaseModel]) -> list[KpiSummary]:
    return _parse_rows(KpiSummary, rows, "kpi summary")


def parse_risk_inputs(rows: Iterable[Mapping[str, Any] | BaseModel]) -> list[ContractorRiskInput]:
    return _parse_rows(ContractorRiskInput, rows, "contractor metrics")
