"""
Schemas für Compliance-Endpunkte.
"""
import uuid
from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, Field, field_validator

from worktime.compliance.types import (
    AuditAction,
    ReportFormat,
    RuleSet,
    ViolationSeverity,
    ViolationType,
)


def as_utc(value: datetime) -> datetime:
    # Naive Zeitstempel aus Clients gelten als UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCTimestamp = Annotated[datetime, AfterValidator(as_utc)]


# ── Rule Sets ────────────────────────────────────────────────────────────────

class RuleConfigValues(BaseModel):
    """Schwellwerte eines Regel-Sets (alle Angaben in Minuten)."""
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

    model_config = {"from_attributes": True}


class RuleSetOut(RuleConfigValues):
    id: uuid.UUID
    tenant_id: uuid.UUID
    version: int
    created_at: datetime
    updated_at: datetime
    updated_by: str


class RuleSetUpdate(BaseModel):
    """Partielles Update. Wechselt rule_set, dienen dessen Defaults als Basis."""
    rule_set: Optional[RuleSet] = None
    daily_rest_period_minutes: Optional[int] = None
    weekly_rest_period_minutes: Optional[int] = None
    max_daily_working_time_minutes: Optional[int] = None
    max_daily_working_time_with_compensation_minutes: Optional[int] = None
    max_weekly_working_time_minutes: Optional[int] = None
    break_required_after_minutes: Optional[int] = None
    break_duration_minutes: Optional[int] = None
    break_required_after_minutes_2: Optional[int] = None
    break_duration_minutes_2: Optional[int] = None

    @field_validator(
        "daily_rest_period_minutes",
        "weekly_rest_period_minutes",
        "max_daily_working_time_minutes",
        "max_daily_working_time_with_compensation_minutes",
        "max_weekly_working_time_minutes",
        "break_required_after_minutes",
        "break_duration_minutes",
        "break_required_after_minutes_2",
        "break_duration_minutes_2",
    )
    @classmethod
    def positive_minutes(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Wert muss größer als 0 sein")
        return v


# ── Violations ───────────────────────────────────────────────────────────────

class ViolationDetails(BaseModel):
    expected: str
    actual: str
    affected_entries: list[str] = []


class ViolationOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    user_id: str
    violation_type: ViolationType
    severity: ViolationSeverity
    detected_at: datetime
    period_start: datetime
    period_end: datetime
    rule_set: RuleSet
    rule_version: int
    details: ViolationDetails
    acknowledged_at: Optional[datetime]
    acknowledged_by: Optional[str]

    model_config = {"from_attributes": True}


class ViolationListOut(BaseModel):
    violations: list[ViolationOut]
    count: int
    total: int


class AcknowledgeRequest(BaseModel):
    acknowledged: bool = True


class ComplianceCheckRequest(BaseModel):
    """Manuelle Prüfung – ohne user_id für alle Mitarbeiter des Tenants."""
    user_id: Optional[str] = None
    start_date: UTCTimestamp
    end_date: UTCTimestamp


class ComplianceCheckOut(BaseModel):
    violations: list[ViolationOut]
    count: int


# ── Stats ────────────────────────────────────────────────────────────────────

class PeriodCounts(BaseModel):
    violations: int = 0
    warnings: int = 0
    errors: int = 0


class ComplianceStatsOut(BaseModel):
    today: PeriodCounts
    this_week: PeriodCounts
    this_month: PeriodCounts
    violations_by_type: dict[str, int]
    horizon_days: int


# ── Reports ──────────────────────────────────────────────────────────────────

class ReportFilters(BaseModel):
    user_id: Optional[str] = None
    violation_type: Optional[ViolationType] = None
    severity: Optional[ViolationSeverity] = None


class ReportGenerateRequest(BaseModel):
    period_start: UTCTimestamp
    period_end: UTCTimestamp
    format: ReportFormat
    filters: Optional[ReportFilters] = None


class ReportSummary(BaseModel):
    total_violations: int
    violations_by_type: dict[str, int]
    violations_by_severity: dict[str, int]


class ReportOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    generated_by: str
    generated_at: datetime
    period_start: datetime
    period_end: datetime
    format: ReportFormat
    rule_set: RuleSet
    filters: Optional[ReportFilters]
    summary: ReportSummary
    hash: str
    download_url: str
    download_url_expires_at: datetime

    model_config = {"from_attributes": True}


# ── Audit Trail ──────────────────────────────────────────────────────────────

class ReportGeneratedDetails(BaseModel):
    action: Literal["report_generated"] = "report_generated"
    report_id: uuid.UUID
    export_format: ReportFormat
    period_start: datetime
    period_end: datetime


class ViolationAcknowledgedDetails(BaseModel):
    action: Literal["violation_acknowledged"] = "violation_acknowledged"
    violation_id: uuid.UUID
    acknowledged: bool


class RuleSetChangedDetails(BaseModel):
    action: Literal["rule_set_changed"] = "rule_set_changed"
    rule_set: RuleSet
    previous: Optional[RuleConfigValues] = None
    current: RuleConfigValues


class ManualCheckDetails(BaseModel):
    action: Literal["manual_check"] = "manual_check"
    user_id: Optional[str] = None
    period_start: datetime
    period_end: datetime
    violations_found: int


AuditDetails = Annotated[
    Union[
        ReportGeneratedDetails,
        ViolationAcknowledgedDetails,
        RuleSetChangedDetails,
        ManualCheckDetails,
    ],
    Field(discriminator="action"),
]


class AuditLogOut(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    action: AuditAction
    actor_uid: str
    timestamp: datetime
    details: AuditDetails

    model_config = {"from_attributes": True}


class AuditLogListOut(BaseModel):
    logs: list[AuditLogOut]
    count: int
    total: int
