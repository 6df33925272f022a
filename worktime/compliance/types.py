"""Type definitions for the work-time compliance core."""

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ViolationType(str, Enum):
    """Types of compliance violations."""
    REST_PERIOD_VIOLATION = "REST_PERIOD_VIOLATION"
    SHIFT_DURATION_VIOLATION = "SHIFT_DURATION_VIOLATION"
    BREAK_MISSING = "BREAK_MISSING"
    WEEKLY_REST_VIOLATION = "WEEKLY_REST_VIOLATION"
    MAX_WORKING_TIME_EXCEEDED = "MAX_WORKING_TIME_EXCEEDED"


class ViolationSeverity(str, Enum):
    """Severity levels for violations."""
    WARNING = "warning"
    ERROR = "error"


class RuleSet(str, Enum):
    """Available rule-set identifiers."""
    EU = "eu"
    DE = "de"


class AuditAction(str, Enum):
    """Compliance-relevant actions recorded in the audit trail."""
    REPORT_GENERATED = "report_generated"
    VIOLATION_ACKNOWLEDGED = "violation_acknowledged"
    RULE_SET_CHANGED = "rule_set_changed"
    MANUAL_CHECK = "manual_check"


class ReportFormat(str, Enum):
    CSV = "csv"
    PDF = "pdf"


class Trigger(str, Enum):
    """Events that start a detection run."""
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"
    SHIFT_COMPLETED = "shift_completed"
    ENTRY_CREATED = "entry_created"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class RuleConfig:
    """Thresholds of one rule set, all in minutes."""
    rule_set: RuleSet
    daily_rest_period_minutes: int
    weekly_rest_period_minutes: int
    max_daily_working_time_minutes: int
    max_daily_working_time_with_compensation_minutes: int
    max_weekly_working_time_minutes: int
    break_required_after_minutes: int
    break_duration_minutes: int
    break_required_after_minutes_2: Optional[int] = None
    break_duration_minutes_2: Optional[int] = None

    @property
    def has_second_break_tier(self) -> bool:
        return (
            self.break_required_after_minutes_2 is not None
            and self.break_duration_minutes_2 is not None
        )

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["rule_set"] = self.rule_set.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "RuleConfig":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["rule_set"] = RuleSet(values["rule_set"])
        return cls(**values)

    def merged(self, **changes) -> "RuleConfig":
        return replace(self, **changes)


# EU-Arbeitszeitrichtlinie und ArbZG haben dieselben Eckwerte
DEFAULT_RULE_SETS: dict[RuleSet, RuleConfig] = {
    RuleSet.EU: RuleConfig(
        rule_set=RuleSet.EU,
        daily_rest_period_minutes=11 * 60,
        weekly_rest_period_minutes=24 * 60,
        max_daily_working_time_minutes=8 * 60,
        max_daily_working_time_with_compensation_minutes=10 * 60,
        max_weekly_working_time_minutes=48 * 60,
        break_required_after_minutes=6 * 60,
        break_duration_minutes=30,
        break_required_after_minutes_2=9 * 60,
        break_duration_minutes_2=45,
    ),
    RuleSet.DE: RuleConfig(
        rule_set=RuleSet.DE,
        daily_rest_period_minutes=11 * 60,
        weekly_rest_period_minutes=24 * 60,
        max_daily_working_time_minutes=8 * 60,
        max_daily_working_time_with_compensation_minutes=10 * 60,
        max_weekly_working_time_minutes=48 * 60,
        break_required_after_minutes=6 * 60,
        break_duration_minutes=30,
        break_required_after_minutes_2=9 * 60,
        break_duration_minutes_2=45,
    ),
}


@dataclass(frozen=True)
class TimeEntryRecord:
    """A recorded work period as seen by the detector."""
    id: str
    user_id: str
    clock_in: datetime
    clock_out: Optional[datetime] = None
    break_minutes: int = 0

    @property
    def is_closed(self) -> bool:
        return self.clock_out is not None

    @property
    def duration_minutes(self) -> Optional[float]:
        """Gross duration between clock-in and clock-out."""
        if self.clock_out is None:
            return None
        return (self.clock_out - self.clock_in).total_seconds() / 60


@dataclass(frozen=True)
class DetectionWindow:
    """Half-open interval [start, end) evaluated by one detection run."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("DetectionWindow requires timezone-aware datetimes")
        if self.end <= self.start:
            raise ValueError("DetectionWindow end must be after start")


# Fester Namespace: gleiche Eingaben ergeben über alle Prozesse hinweg dieselbe ID
VIOLATION_NAMESPACE = uuid.UUID("6f1c2a4e-6b8d-4c57-9a53-2f7d1e0c9b41")


def violation_identity(
    tenant_id: uuid.UUID | str,
    user_id: str,
    violation_type: ViolationType,
    period_start: datetime,
) -> uuid.UUID:
    """Deterministic violation id from tenant, user, type and period start."""
    start = period_start.astimezone(timezone.utc).isoformat()
    key = f"{tenant_id}:{user_id}:{violation_type.value}:{start}"
    return uuid.uuid5(VIOLATION_NAMESPACE, key)


@dataclass
class DetectedViolation:
    """A single rule breach found by the detector (not yet persisted)."""
    user_id: str
    violation_type: ViolationType
    severity: ViolationSeverity
    period_start: datetime
    period_end: datetime
    expected: str
    actual: str
    affected_entries: list[str] = field(default_factory=list)

    def identity(self, tenant_id: uuid.UUID | str) -> uuid.UUID:
        return violation_identity(tenant_id, self.user_id, self.violation_type, self.period_start)

    @property
    def details(self) -> dict:
        return {
            "expected": self.expected,
            "actual": self.actual,
            "affected_entries": list(self.affected_entries),
        }
