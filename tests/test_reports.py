"""
Tests für den Report Generator – Zeitraumprüfung, Hash, Ablage, signierter Download.
"""
import hashlib
import os
import uuid
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import func, select

from worktime.compliance.audit import AuditTrail
from worktime.compliance.ledger import ViolationLedger
from worktime.compliance.reports import ReportGenerator, summarize
from worktime.compliance.rule_store import RuleSetStore
from worktime.compliance.types import (
    AuditAction,
    DetectedViolation,
    ReportFormat,
    ViolationSeverity,
    ViolationType,
)
from worktime.core.exceptions import ConflictError, InvalidRangeError, NotFoundError
from worktime.core.security import create_access_token, create_report_download_token
from worktime.models.compliance import ComplianceReport
from worktime.schemas.compliance import ReportGenerateRequest
from worktime.services.report_export import CSV_HEADER
from tests.conftest import utc


def request(fmt: ReportFormat = ReportFormat.CSV, **kwargs) -> ReportGenerateRequest:
    data = {
        "period_start": utc(2025, 9, 1),
        "period_end": utc(2025, 10, 1),
        "format": fmt,
    }
    data.update(kwargs)
    return ReportGenerateRequest(**data)


def token_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["token"][0]


async def seed(db, tenant_id, *violations: DetectedViolation):
    rule = await RuleSetStore(db).ensure_default(tenant_id)
    rows = await ViolationLedger(db).record(tenant_id, violations, rule, detected_at=utc(2025, 9, 10, 2))
    await db.commit()
    return rows


def violation(
    user="u1",
    vtype=ViolationType.REST_PERIOD_VIOLATION,
    severity=ViolationSeverity.WARNING,
    start=None,
    entries=("e1", "e2"),
):
    start = start or utc(2025, 9, 8, 17)
    return DetectedViolation(
        user_id=user,
        violation_type=vtype,
        severity=severity,
        period_start=start,
        period_end=start + timedelta(hours=9),
        expected="Mind. 11 Stunden Ruhezeit",
        actual="9 Stunden Ruhezeit",
        affected_entries=list(entries),
    )


async def report_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(ComplianceReport))


# ── Zeitraum ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_inverted_period_rejected_without_side_effects(db, tenant, report_dir):
    with pytest.raises(InvalidRangeError):
        await ReportGenerator(db).generate(
            tenant.id, request(period_start=utc(2025, 10, 1), period_end=utc(2025, 9, 1)), "manager-1"
        )

    assert await report_count(db) == 0
    _, total = await AuditTrail(db).list(tenant.id)
    assert total == 0
    assert not report_dir.exists() or not any(report_dir.rglob("*.*"))


@pytest.mark.asyncio
async def test_period_longer_than_a_year_rejected(db, tenant):
    with pytest.raises(InvalidRangeError):
        await ReportGenerator(db).generate(
            tenant.id, request(period_start=utc(2024, 1, 1), period_end=utc(2025, 1, 3)), "manager-1"
        )


# ── Generierung ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_csv(db, tenant, report_dir):
    await seed(db, tenant.id, violation())

    signed = await ReportGenerator(db).generate(tenant.id, request(), "manager-1")
    report = signed.report

    assert report.format == "csv"
    assert report.rule_set == "eu"
    assert report.generated_by == "manager-1"
    assert report.summary == {
        "total_violations": 1,
        "violations_by_type": {"REST_PERIOD_VIOLATION": 1},
        "violations_by_severity": {"warning": 1},
    }

    payload = (report_dir / report.storage_path).read_bytes()
    assert hashlib.sha256(payload).hexdigest() == report.hash
    assert payload.startswith(b"\xef\xbb\xbf")

    lines = payload.decode("utf-8-sig").splitlines()
    assert lines[0] == ",".join(CSV_HEADER)
    assert len(lines) == 2
    assert lines[1].endswith(",e1; e2,Offen")


@pytest.mark.asyncio
async def test_generate_writes_audit_entry(db, tenant):
    signed = await ReportGenerator(db).generate(tenant.id, request(ReportFormat.PDF), "manager-1")

    logs, total = await AuditTrail(db).list(tenant.id, action=AuditAction.REPORT_GENERATED)
    assert total == 1
    assert logs[0].actor_uid == "manager-1"
    assert logs[0].details["report_id"] == str(signed.report.id)
    assert logs[0].details["export_format"] == "pdf"


@pytest.mark.asyncio
@pytest.mark.parametrize("fmt", [ReportFormat.CSV, ReportFormat.PDF])
async def test_same_data_same_hash(db, tenant, fmt):
    await seed(db, tenant.id, violation())
    generator = ReportGenerator(db)

    first = await generator.generate(tenant.id, request(fmt), "manager-1")
    second = await generator.generate(tenant.id, request(fmt), "manager-2")

    assert first.report.id != second.report.id
    assert first.report.hash == second.report.hash


@pytest.mark.asyncio
@pytest.mark.parametrize("fmt", [ReportFormat.CSV, ReportFormat.PDF])
async def test_new_violation_changes_hash(db, tenant, fmt):
    await seed(db, tenant.id, violation())
    generator = ReportGenerator(db)
    before = await generator.generate(tenant.id, request(fmt), "manager-1")

    await seed(db, tenant.id, violation(user="u2", vtype=ViolationType.BREAK_MISSING))
    after = await generator.generate(tenant.id, request(fmt), "manager-1")

    assert before.report.hash != after.report.hash
    assert after.report.summary["total_violations"] == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("fmt", [ReportFormat.CSV, ReportFormat.PDF])
async def test_affected_entries_change_hash(db, tenant, other_tenant, fmt):
    """Zwei Mandanten, identische Verstöße bis auf die betroffenen Einträge."""
    await seed(db, tenant.id, violation(entries=["e1", "e2"]))
    await seed(db, other_tenant.id, violation(entries=["e1", "e9"]))
    generator = ReportGenerator(db)

    first = await generator.generate(tenant.id, request(fmt), "manager-1")
    second = await generator.generate(other_tenant.id, request(fmt), "manager-1")

    assert first.report.summary == second.report.summary
    assert first.report.hash != second.report.hash


@pytest.mark.asyncio
async def test_filters_restrict_content(db, tenant):
    await seed(
        db, tenant.id,
        violation(user="u1"),
        violation(user="u2", vtype=ViolationType.SHIFT_DURATION_VIOLATION, severity=ViolationSeverity.ERROR),
    )

    signed = await ReportGenerator(db).generate(
        tenant.id, request(filters={"severity": "error"}), "manager-1"
    )

    assert signed.report.summary["total_violations"] == 1
    assert signed.report.filters == {"severity": "error"}


@pytest.mark.asyncio
async def test_violations_outside_period_excluded(db, tenant):
    await seed(db, tenant.id, violation(start=utc(2025, 8, 31, 23)), violation(start=utc(2025, 10, 1)))
    signed = await ReportGenerator(db).generate(tenant.id, request(), "manager-1")
    assert signed.report.summary["total_violations"] == 0


def test_summarize_empty():
    assert summarize([]) == {
        "total_violations": 0,
        "violations_by_type": {},
        "violations_by_severity": {},
    }


# ── Abruf und Download ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_download_via_signed_url(db, tenant):
    generator = ReportGenerator(db)
    signed = await generator.generate(tenant.id, request(), "manager-1")

    assert f"/api/v1/compliance/reports/{signed.report.id}/download?token=" in signed.download_url
    artifact = await generator.download(signed.report.id, token_from(signed.download_url))

    assert hashlib.sha256(artifact.payload).hexdigest() == signed.report.hash
    assert artifact.content_type.startswith("text/csv")
    assert artifact.filename == f"compliance-report-{signed.report.id}.csv"


@pytest.mark.asyncio
async def test_get_report_is_tenant_scoped(db, tenant, other_tenant):
    generator = ReportGenerator(db)
    signed = await generator.generate(tenant.id, request(), "manager-1")

    again = await generator.get_report(tenant.id, signed.report.id)
    assert again.report.hash == signed.report.hash

    with pytest.raises(NotFoundError):
        await generator.get_report(other_tenant.id, signed.report.id)


@pytest.mark.asyncio
async def test_download_rejects_foreign_tokens(db, tenant, admin_user):
    generator = ReportGenerator(db)
    signed = await generator.generate(tenant.id, request(), "manager-1")
    other_report_token, _ = create_report_download_token(uuid.uuid4(), tenant.id)
    access_token = create_access_token(admin_user.id, tenant.id, "admin")

    for token in ("garbage", other_report_token, access_token):
        with pytest.raises(NotFoundError):
            await generator.download(signed.report.id, token)


@pytest.mark.asyncio
async def test_download_rejects_expired_token(db, tenant):
    generator = ReportGenerator(db)
    signed = await generator.generate(tenant.id, request(), "manager-1")
    expired, _ = create_report_download_token(signed.report.id, tenant.id, timedelta(minutes=-1))

    with pytest.raises(NotFoundError):
        await generator.download(signed.report.id, expired)


@pytest.mark.asyncio
async def test_tampered_artifact_detected(db, tenant, report_dir):
    generator = ReportGenerator(db)
    signed = await generator.generate(tenant.id, request(), "manager-1")

    path = report_dir / signed.report.storage_path
    os.chmod(path, 0o644)
    path.write_bytes(path.read_bytes() + b"u9,manipuliert\n")

    with pytest.raises(ConflictError):
        await generator.download(signed.report.id, token_from(signed.download_url))


@pytest.mark.asyncio
async def test_report_is_immutable(db, tenant):
    signed = await ReportGenerator(db).generate(tenant.id, request(), "manager-1")
    signed.report.hash = "0" * 64

    with pytest.raises(ConflictError):
        await db.flush()
    await db.rollback()
