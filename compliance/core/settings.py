from __future__ import annotations

import os
from datetime import tzinfo
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, confloat, conint, field_validator, model_validator

from compliance.core.schema import ColorCode
from compliance.core.timeutils import DEFAULT_TIMEZONE

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class LevelConfig(BaseModel):
    name: str
    description: str = ""
    color_code: ColorCode
    time_threshold: conint(ge=0)
    actions: list[str] = Field(default_factory=list)


DEFAULT_LEVELS: dict[int, LevelConfig] = {
    1: LevelConfig(
        name="Early warning",
        description="Document is due within the early-warning window",
        color_code="amber",
        time_threshold=7,
        actions=["Send reminder email", "Schedule review meeting", "Provide technical support"],
    ),
    2: LevelConfig(
        name="Urgent",
        description="Document is due within the urgent window",
        color_code="orange",
        time_threshold=3,
        actions=["Hold daily check-ins", "Escalate to management", "Assign a mentor"],
    ),
    3: LevelConfig(
        name="Overdue",
        description="Document is past its planned due date",
        color_code="red",
        time_threshold=0,
        actions=["Stop work on site", "Meet with leadership", "Review contractor replacement"],
    ),
}


class AlertSettings(BaseModel):
    amber_days_threshold: conint(ge=0) = 3
    levels: dict[int, LevelConfig] = Field(default_factory=lambda: dict(DEFAULT_LEVELS))

    @model_validator(mode="after")
    def _check_levels(self) -> "AlertSettings":
        if set(self.levels) != {1, 2, 3}:
            raise ValueError("alert levels must define tiers 1, 2 and 3")
        if self.levels[2].time_threshold > self.levels[1].time_threshold:
            raise ValueError("urgent window cannot be wider than the early-warning window")
        return self

    @property
    def urgent_days(self) -> int:
        return self.levels[2].time_threshold

    @property
    def early_days(self) -> int:
        return self.levels[1].time_threshold


class RiskFactor(BaseModel):
    floor: confloat(ge=0, le=100)
    weight: confloat(ge=0)


class RiskFactors(BaseModel):
    completion: RiskFactor = RiskFactor(floor=70, weight=2.0)
    quality: RiskFactor = RiskFactor(floor=75, weight=1.5)
    compliance: RiskFactor = RiskFactor(floor=70, weight=2.5)
    timeline: RiskFactor = RiskFactor(floor=75, weight=2.0)


class LevelBounds(BaseModel):
    low: float = 20
    medium: float = 40
    high: float = 60

    @model_validator(mode="after")
    def _check_order(self) -> "LevelBounds":
        if not self.low <= self.medium <= self.high:
            raise ValueError("risk level bounds must be ascending")
        return self


class RiskSettings(BaseModel):
    factors: RiskFactors = Field(default_factory=RiskFactors)
    level_bounds: LevelBounds = Field(default_factory=LevelBounds)
    trend_window: conint(ge=2) = 7
    improving_ratio: confloat(gt=0) = 0.9
    worsening_ratio: confloat(gt=0) = 1.1
    # Conservatism factor for the completion projection; pending product confirmation.
    damping: confloat(ge=0, le=1) = 0.8


class SnapshotSettings(BaseModel):
    limit: conint(ge=0) = 5


class CacheSettings(BaseModel):
    capacity: conint(ge=1) = 64
    policy: Literal["lru", "fifo"] = "lru"


class EngineSettings(BaseModel):
    timezone: str = DEFAULT_TIMEZONE
    alerts: AlertSettings = Field(default_factory=AlertSettings)
    snapshot: SnapshotSettings = Field(default_factory=SnapshotSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp)
    return data or {}


def load_settings(path: Path | str | None = None) -> EngineSettings:
    """Build settings from YAML, honouring ``COMPLIANCE_CONFIG`` and ``COMPLIANCE_TIMEZONE``."""

    if path is None:
        env_path = os.getenv("COMPLIANCE_CONFIG")
        path = Path(env_path).expanduser() if env_path else CONFIG_DIR / "engine.yaml"
    data = _read_yaml(Path(path))

    timezone_override = os.getenv("COMPLIANCE_TIMEZONE")
    if timezone_override:
        data["timezone"] = timezone_override.strip()

    return EngineSettings(**data)
