"""
Compliance API – Arbeitszeit-Compliance (Ruhezeiten, Höchstarbeitszeit, Pausen).

Lesen: alle Mitglieder (Mitarbeiter sehen nur eigene Verstöße).
Regeln ändern, quittieren, Reports und Audit-Log: Admin/Verwalter.
"""
import uuid
from datetime import datetime

from fastapi import APIRouter, Query, status
from fastapi.responses import Response

from worktime.api.deps import DB, CurrentUser, ManagerOrAdmin
from worktime.compliance.reports import SignedReport
from worktime.compliance.types import AuditAction, ViolationSeverity, ViolationType
from worktime.core.exceptions import NotFoundError
from worktime.schemas.compliance import (
    AcknowledgeRequest,
    AuditLogListOut,
    AuditLogOut,
    ComplianceCheckOut,
    ComplianceCheckRequest,
    ComplianceStatsOut,
    ReportGenerateRequest,
    ReportOut,
    RuleSetOut,
    RuleSetUpdate,
    ViolationListOut,
    ViolationOut,
    as_utc,
)
from worktime.services.compliance_service import ComplianceService

router = APIRouter(prefix="/compliance", tags=["compliance"])


def _optional_utc(value: datetime | None) -> datetime | None:
    return as_utc(value) if value is not None else None


def _report_out(signed: SignedReport) -> ReportOut:
    report = signed.report
    return ReportOut(
        id=report.id,
        tenant_id=report.tenant_id,
        generated_by=report.generated_by,
        generated_at=report.generated_at,
        period_start=report.period_start,
        period_end=report.period_end,
        format=report.format,
        rule_set=report.rule_set,
        filters=report.filters,
        summary=report.summary,
        hash=report.hash,
        download_url=signed.download_url,
        download_url_expires_at=signed.expires_at,
    )


# ── Stats ────────────────────────────────────────────────────────────────────

@router.get("/stats", response_model=ComplianceStatsOut)
async def get_stats(current_user: CurrentUser, db: DB):
    svc = ComplianceService(db)
    return await svc.stats.get_stats(current_user.tenant_id)


# ── Violations ───────────────────────────────────────────────────────────────

@router.get("/violations", response_model=ViolationListOut)
async def list_violations(
    current_user: CurrentUser,
    db: DB,
    user_id: str | None = None,
    violation_type: ViolationType | None = None,
    severity: ViolationSeverity | None = None,
    acknowledged: bool | None = None,
    from_: datetime | None = Query(None, alias="from"),
    to: datetime | None = None,
    period_from: datetime | None = None,
    period_to: datetime | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    if not current_user.is_manager:
        user_id = str(current_user.id)

    svc = ComplianceService(db)
    violations, total = await svc.ledger.list(
        current_user.tenant_id,
        user_id=user_id,
        violation_type=violation_type,
        severity=severity,
        acknowledged=acknowledged,
        from_=_optional_utc(from_),
        to=_optional_utc(to),
        period_from=_optional_utc(period_from),
        period_to=_optional_utc(period_to),
        limit=limit,
        offset=offset,
    )
    return ViolationListOut(
        violations=[ViolationOut.model_validate(v) for v in violations],
        count=len(violations),
        total=total,
    )


@router.get("/violations/{violation_id}", response_model=ViolationOut)
async def get_violation(violation_id: uuid.UUID, current_user: CurrentUser, db: DB):
    svc = ComplianceService(db)
    violation = await svc.ledger.get(current_user.tenant_id, violation_id)
    if not current_user.is_manager and violation.user_id != str(current_user.id):
        raise NotFoundError(f"Violation {violation_id} not found")
    return violation


@router.post("/violations/{violation_id}/acknowledge", response_model=ViolationOut)
async def acknowledge_violation(
    violation_id: uuid.UUID,
    current_user: ManagerOrAdmin,
    db: DB,
    payload: AcknowledgeRequest | None = None,
):
    """Verstoß quittieren (acknowledged=false nimmt die Quittierung zurück)."""
    acknowledged = payload.acknowledged if payload else True
    svc = ComplianceService(db)
    return await svc.ledger.acknowledge(
        current_user.tenant_id, violation_id, str(current_user.id), acknowledged
    )


# ── Rules ────────────────────────────────────────────────────────────────────

@router.get("/rules", response_model=RuleSetOut)
async def get_rules(current_user: CurrentUser, db: DB):
    svc = ComplianceService(db)
    rule = await svc.rules.ensure_default(current_user.tenant_id)
    await db.commit()
    return rule


@router.put("/rules", response_model=RuleSetOut)
async def update_rules(payload: RuleSetUpdate, current_user: ManagerOrAdmin, db: DB):
    svc = ComplianceService(db)
    await svc.rules.ensure_default(current_user.tenant_id)
    return await svc.rules.update(current_user.tenant_id, payload, str(current_user.id))


# ── Manual check ─────────────────────────────────────────────────────────────

@router.post("/check", response_model=ComplianceCheckOut)
async def run_compliance_check(payload: ComplianceCheckRequest, current_user: CurrentUser, db: DB):
    """
    Prüft den Zeitraum sofort und speichert neue Verstöße.
    Mitarbeiter können nur sich selbst prüfen.
    """
    user_id = payload.user_id
    if not current_user.is_manager:
        user_id = str(current_user.id)

    svc = ComplianceService(db)
    violations = await svc.check_compliance(
        current_user.tenant_id,
        str(current_user.id),
        payload.start_date,
        payload.end_date,
        user_id=user_id,
    )
    return ComplianceCheckOut(
        violations=[ViolationOut.model_validate(v) for v in violations],
        count=len(violations),
    )


# ── Reports ──────────────────────────────────────────────────────────────────

@router.post("/reports/generate", response_model=ReportOut, status_code=status.HTTP_201_CREATED)
async def generate_report(payload: ReportGenerateRequest, current_user: ManagerOrAdmin, db: DB):
    svc = ComplianceService(db)
    signed = await svc.reports.generate(current_user.tenant_id, payload, str(current_user.id))
    return _report_out(signed)


@router.get("/reports/{report_id}", response_model=ReportOut)
async def get_report(report_id: uuid.UUID, current_user: ManagerOrAdmin, db: DB):
    svc = ComplianceService(db)
    return _report_out(await svc.reports.get_report(current_user.tenant_id, report_id))


@router.get("/reports/{report_id}/download")
async def download_report(report_id: uuid.UUID, db: DB, token: str = Query(...)):
    """Öffentlicher Download über signierten, zeitlich begrenzten Link."""
    svc = ComplianceService(db)
    artifact = await svc.reports.download(report_id, token)
    return Response(
        content=artifact.payload,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


# ── Audit Trail ──────────────────────────────────────────────────────────────

@router.get("/audit-logs", response_model=AuditLogListOut)
async def list_audit_logs(
    current_user: ManagerOrAdmin,
    db: DB,
    action: AuditAction | None = None,
    from_: datetime | None = Query(None, alias="from"),
    to: datetime | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    svc = ComplianceService(db)
    logs, total = await svc.audit.list(
        current_user.tenant_id,
        action=action,
        from_=_optional_utc(from_),
        to=_optional_utc(to),
        limit=limit,
        offset=offset,
    )
    return AuditLogListOut(
        logs=[AuditLogOut.model_validate(entry) for entry in logs],
        count=len(logs),
        total=total,
    )
