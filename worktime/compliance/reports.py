"""
Report Generator – unveränderliche, per SHA-256 versiegelte Prüfberichte.

Ablauf generate():
  1. Zeitraum prüfen (Start < Ende, Spanne ≤ COMPLIANCE_REPORT_MAX_RANGE_DAYS)
  2. Verstöße mit period_start im Zeitraum aus dem Ledger lesen
  3. Zusammenfassung nach Typ und Severity
  4. CSV oder PDF rendern, SHA-256 über die Bytes
  5. Artefakt ablegen, Report + Audit-Eintrag in einer Transaktion speichern
"""
import hashlib
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence
from urllib.parse import quote
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.audit import AuditTrail
from worktime.compliance.ledger import ViolationLedger
from worktime.compliance.rule_store import RuleSetStore
from worktime.compliance.types import ReportFormat
from worktime.core.config import settings
from worktime.core.exceptions import ConflictError, InvalidRangeError, NotFoundError
from worktime.core.security import TOKEN_TYPE_REPORT_DOWNLOAD, create_report_download_token, decode_token
from worktime.models.compliance import ComplianceReport, ComplianceViolation
from worktime.schemas.compliance import ReportGenerateRequest, ReportGeneratedDetails
from worktime.services.report_export import CONTENT_TYPES, render_report
from worktime.services.report_storage import ReportStorage

logger = logging.getLogger(__name__)


@dataclass
class SignedReport:
    report: ComplianceReport
    download_url: str
    expires_at: datetime


@dataclass
class ReportArtifact:
    filename: str
    content_type: str
    payload: bytes


def summarize(violations: Sequence[ComplianceViolation]) -> dict:
    by_type = Counter(v.violation_type for v in violations)
    by_severity = Counter(v.severity for v in violations)
    return {
        "total_violations": len(violations),
        "violations_by_type": dict(sorted(by_type.items())),
        "violations_by_severity": dict(sorted(by_severity.items())),
    }


def validate_period(period_start: datetime, period_end: datetime, max_days: int) -> None:
    if period_start >= period_end:
        raise InvalidRangeError("period_start must be before period_end")
    if period_end - period_start > timedelta(days=max_days):
        raise InvalidRangeError(f"Report period must not exceed {max_days} days")


class ReportGenerator:
    def __init__(
        self,
        db: AsyncSession,
        storage: ReportStorage | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.audit = audit or AuditTrail(db)
        self.ledger = ViolationLedger(db, self.audit)
        self.rules = RuleSetStore(db, self.audit)
        self.storage = storage or ReportStorage()
        self.tz = ZoneInfo(settings.COMPLIANCE_TIMEZONE)

    async def generate(
        self,
        tenant_id: uuid.UUID,
        request: ReportGenerateRequest,
        actor: str,
    ) -> SignedReport:
        validate_period(
            request.period_start, request.period_end, settings.COMPLIANCE_REPORT_MAX_RANGE_DAYS
        )

        rule = await self.rules.ensure_default(tenant_id)
        filters = request.filters
        violations = await self.ledger.for_period(
            tenant_id,
            request.period_start,
            request.period_end,
            user_id=filters.user_id if filters else None,
            violation_type=filters.violation_type if filters else None,
            severity=filters.severity if filters else None,
        )

        summary = summarize(violations)
        payload = render_report(
            request.format,
            violations,
            summary,
            rule.rule_set,
            request.period_start,
            request.period_end,
            self.tz,
        )
        digest = hashlib.sha256(payload).hexdigest()

        report_id = uuid.uuid4()
        storage_path = self.storage.save(tenant_id, report_id, request.format.value, payload)

        report = ComplianceReport(
            id=report_id,
            tenant_id=tenant_id,
            generated_by=str(actor),
            period_start=request.period_start,
            period_end=request.period_end,
            format=request.format.value,
            rule_set=rule.rule_set,
            filters=filters.model_dump(mode="json", exclude_none=True) if filters else None,
            summary=summary,
            storage_path=storage_path,
            hash=digest,
        )
        try:
            self.db.add(report)
            await self.audit.append(
                tenant_id,
                actor,
                ReportGeneratedDetails(
                    report_id=report_id,
                    export_format=request.format,
                    period_start=request.period_start,
                    period_end=request.period_end,
                ),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            self.storage.discard(storage_path)
            raise

        logger.info(
            "Generated %s compliance report %s for tenant %s (%d violations)",
            report.format, report_id, tenant_id, summary["total_violations"],
        )
        return self.sign(report)

    def sign(self, report: ComplianceReport) -> SignedReport:
        token, expires_at = create_report_download_token(report.id, report.tenant_id)
        url = (
            f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/v1/compliance/reports/"
            f"{report.id}/download?token={quote(token)}"
        )
        return SignedReport(report=report, download_url=url, expires_at=expires_at)

    async def _find(self, report_id: uuid.UUID, tenant_id: uuid.UUID | None = None) -> ComplianceReport:
        conditions = [ComplianceReport.id == report_id]
        if tenant_id is not None:
            conditions.append(ComplianceReport.tenant_id == tenant_id)
        result = await self.db.execute(select(ComplianceReport).where(*conditions))
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    async def get_report(self, tenant_id: uuid.UUID, report_id: uuid.UUID) -> SignedReport:
        """Report laden, Download-Link wird bei jedem Abruf neu signiert."""
        return self.sign(await self._find(report_id, tenant_id))

    async def download(self, report_id: uuid.UUID, token: str) -> ReportArtifact:
        """
        Artefakt über signierten Link ausliefern.
        Token muss zum Report passen; die Datei muss noch zum gespeicherten Hash passen.
        """
        try:
            payload = decode_token(token)
        except ValueError:
            raise NotFoundError(f"Report {report_id} not found")
        if payload.get("type") != TOKEN_TYPE_REPORT_DOWNLOAD or payload.get("sub") != str(report_id):
            raise NotFoundError(f"Report {report_id} not found")

        report = await self._find(report_id, uuid.UUID(payload["tenant_id"]))
        data = self.storage.read(report.storage_path)
        if hashlib.sha256(data).hexdigest() != report.hash:
            logger.error("Hash mismatch for report artifact %s", report.storage_path)
            raise ConflictError(f"Report {report_id} artifact does not match its recorded hash")

        fmt = ReportFormat(report.format)
        return ReportArtifact(
            filename=f"compliance-report-{report.id}.{fmt.value}",
            content_type=CONTENT_TYPES[fmt],
            payload=data,
        )
