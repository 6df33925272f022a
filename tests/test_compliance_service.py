"""
Tests für ComplianceService – Laden der Zeiteinträge, manuelle Prüfung, Audit.
Alle Einträge liegen im September 2025 (Europe/Berlin = UTC+2).
"""
import uuid

import pytest

from worktime.compliance.types import AuditAction, DetectionWindow, Trigger, ViolationType
from worktime.core.exceptions import InvalidRangeError, ValidationError
from worktime.services.compliance_service import ComplianceService
from tests.conftest import add_entry, utc


# ── Zeitfenster ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_week_bounds_local_monday(db):
    svc = ComplianceService(db)
    week = svc.week_bounds(utc(2025, 9, 3, 12))
    assert week.start == utc(2025, 8, 31, 22)
    assert week.end == utc(2025, 9, 7, 22)


@pytest.mark.asyncio
async def test_week_bounds_sunday_night_belongs_to_same_week(db):
    """So 23:30 Berliner Zeit = So 21:30 UTC → noch dieselbe Woche."""
    svc = ComplianceService(db)
    week = svc.week_bounds(utc(2025, 9, 7, 21, 30))
    assert week.start == utc(2025, 8, 31, 22)


@pytest.mark.asyncio
async def test_load_bounds_cover_week_and_lookback(db, tenant):
    svc = ComplianceService(db)
    rule = await svc.rules.ensure_default(tenant.id)

    # Mittwoch: Wochenbeginn minus längste Schicht liegt vor dem Vorlauf
    start, end = svc.load_bounds(DetectionWindow(utc(2025, 9, 3), utc(2025, 9, 4)), rule)
    assert (start, end) == (utc(2025, 8, 31, 12), utc(2025, 9, 7, 22))

    # Montag früh: Vorlauf (1 Tag + 11h Ruhezeit + 10h Schicht) reicht weiter zurück
    start, _ = svc.load_bounds(DetectionWindow(utc(2025, 9, 1), utc(2025, 9, 2)), rule)
    assert start == utc(2025, 8, 30, 3)


# ── Manuelle Prüfung ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_check_compliance_records_violation(db, tenant, manager_user, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    svc = ComplianceService(db)

    violations = await svc.check_compliance(
        tenant.id, str(manager_user.id), utc(2025, 9, 1), utc(2025, 9, 8)
    )

    assert len(violations) == 1
    v = violations[0]
    assert v.violation_type == ViolationType.BREAK_MISSING.value
    assert v.user_id == str(employee_user.id)
    assert v.rule_set == "eu"
    assert v.rule_version == 1

    logs, total = await svc.audit.list(tenant.id, action=AuditAction.MANUAL_CHECK)
    assert total == 1
    assert logs[0].actor_uid == str(manager_user.id)
    assert logs[0].details["violations_found"] == 1
    assert logs[0].details["user_id"] is None


@pytest.mark.asyncio
async def test_check_compliance_finds_weekly_rest_outside_monday_alignment(
    db, tenant, manager_user, employee_user
):
    """Prüfung Di–Di, neun Arbeitstage ab Mo 01.09. 08:00 Berlin → Woche 1 ohne 24h Ruhe."""
    for day in range(9):
        await add_entry(
            db, employee_user, utc(2025, 9, 1 + day, 6), utc(2025, 9, 1 + day, 14), break_minutes=30
        )
    svc = ComplianceService(db)

    violations = await svc.check_compliance(
        tenant.id, str(manager_user.id), utc(2025, 9, 2), utc(2025, 9, 9)
    )

    weekly_rest = [v for v in violations if v.violation_type == ViolationType.WEEKLY_REST_VIOLATION.value]
    assert len(weekly_rest) == 1
    assert weekly_rest[0].period_start == utc(2025, 8, 31, 22)
    assert weekly_rest[0].period_end == utc(2025, 9, 7, 22)
    assert len(weekly_rest[0].details["affected_entries"]) == 7


@pytest.mark.asyncio
async def test_check_compliance_is_idempotent(db, tenant, manager_user, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    svc = ComplianceService(db)

    first = await svc.check_compliance(tenant.id, "m", utc(2025, 9, 1), utc(2025, 9, 8))
    second = await svc.check_compliance(tenant.id, "m", utc(2025, 9, 1), utc(2025, 9, 8))

    assert [v.id for v in first] == [v.id for v in second]
    _, total = await svc.ledger.list(tenant.id)
    assert total == 1
    # Jede Prüfung wird protokolliert
    _, audits = await svc.audit.list(tenant.id, action=AuditAction.MANUAL_CHECK)
    assert audits == 2


@pytest.mark.asyncio
async def test_check_compliance_for_single_user(db, tenant, manager_user, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    await add_entry(db, manager_user, utc(2025, 9, 2, 7), utc(2025, 9, 2, 18), break_minutes=45)
    svc = ComplianceService(db)

    violations = await svc.check_compliance(
        tenant.id, "m", utc(2025, 9, 1), utc(2025, 9, 8), user_id=str(manager_user.id)
    )

    assert {v.user_id for v in violations} == {str(manager_user.id)}
    assert [v.violation_type for v in violations] == [ViolationType.SHIFT_DURATION_VIOLATION.value]
    logs, _ = await svc.audit.list(tenant.id)
    assert logs[0].details["user_id"] == str(manager_user.id)


@pytest.mark.asyncio
async def test_check_compliance_sees_entry_before_window(db, tenant, employee_user):
    """9h-Schicht am Montag liegt vor dem Fenster, zählt aber für die Ruhezeit am Dienstag."""
    await add_entry(db, employee_user, utc(2025, 9, 1, 8), utc(2025, 9, 1, 17), break_minutes=45)
    await add_entry(db, employee_user, utc(2025, 9, 2, 2), utc(2025, 9, 2, 6))
    svc = ComplianceService(db)

    violations = await svc.check_compliance(tenant.id, "m", utc(2025, 9, 2), utc(2025, 9, 3))

    assert [v.violation_type for v in violations] == [ViolationType.REST_PERIOD_VIOLATION.value]
    assert violations[0].details["actual"] == "9 Stunden Ruhezeit"


@pytest.mark.asyncio
async def test_check_compliance_ignores_other_tenants(db, tenant, other_tenant, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    svc = ComplianceService(db)

    violations = await svc.check_compliance(other_tenant.id, "m", utc(2025, 9, 1), utc(2025, 9, 8))

    assert violations == []


@pytest.mark.asyncio
async def test_check_compliance_rejects_inverted_range(db, tenant):
    svc = ComplianceService(db)
    with pytest.raises(InvalidRangeError):
        await svc.check_compliance(tenant.id, "m", utc(2025, 9, 8), utc(2025, 9, 1))
    _, total = await svc.audit.list(tenant.id)
    assert total == 0


@pytest.mark.asyncio
async def test_check_compliance_rejects_too_long_range(db, tenant):
    svc = ComplianceService(db)
    with pytest.raises(InvalidRangeError):
        await svc.check_compliance(tenant.id, "m", utc(2025, 1, 1), utc(2025, 6, 1))


@pytest.mark.asyncio
async def test_check_compliance_rejects_invalid_user_id(db, tenant):
    svc = ComplianceService(db)
    with pytest.raises(ValidationError):
        await svc.check_compliance(tenant.id, "m", utc(2025, 9, 1), utc(2025, 9, 8), user_id="kein-uuid")


# ── Erkennung für Tenant / User ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_detect_for_tenant_covers_all_users(db, tenant, manager_user, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    await add_entry(db, manager_user, utc(2025, 9, 3, 8), utc(2025, 9, 3, 15))
    svc = ComplianceService(db)

    violations = await svc.detect_for_tenant(tenant.id, DetectionWindow(utc(2025, 9, 1), utc(2025, 9, 8)))

    assert {v.user_id for v in violations} == {str(employee_user.id), str(manager_user.id)}
    # Hintergrundläufe schreiben keinen Audit-Eintrag
    _, total = await svc.audit.list(tenant.id)
    assert total == 0


@pytest.mark.asyncio
async def test_detect_for_user_only_that_user(db, tenant, manager_user, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    await add_entry(db, manager_user, utc(2025, 9, 3, 8), utc(2025, 9, 3, 15))
    svc = ComplianceService(db)

    violations = await svc.detect_for_user(
        tenant.id, employee_user.id, DetectionWindow(utc(2025, 9, 1), utc(2025, 9, 8)), Trigger.CLOCK_OUT
    )

    assert [v.user_id for v in violations] == [str(employee_user.id)]


@pytest.mark.asyncio
async def test_rule_version_is_frozen_on_violation(db, tenant, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    svc = ComplianceService(db)
    [old] = await svc.check_compliance(tenant.id, "m", utc(2025, 9, 1), utc(2025, 9, 8))

    await svc.rules.update(tenant.id, {"daily_rest_period_minutes": 600}, "admin-1")
    await add_entry(db, employee_user, utc(2025, 9, 9, 8), utc(2025, 9, 9, 15))
    [new] = await svc.check_compliance(tenant.id, "m", utc(2025, 9, 8), utc(2025, 9, 15))

    assert new.rule_version == 2
    assert (await svc.ledger.get(tenant.id, old.id)).rule_version == 1


@pytest.mark.asyncio
async def test_unknown_user_has_no_violations(db, tenant, employee_user):
    await add_entry(db, employee_user, utc(2025, 9, 2, 8), utc(2025, 9, 2, 15))
    svc = ComplianceService(db)

    violations = await svc.detect_for_user(
        tenant.id, uuid.uuid4(), DetectionWindow(utc(2025, 9, 1), utc(2025, 9, 8)), Trigger.MANUAL
    )

    assert violations == []
