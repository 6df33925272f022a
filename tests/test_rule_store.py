"""
Tests für den Rule Set Store – Standardwerte, Versionierung, Validierung.
"""
import uuid

import pytest

from worktime.compliance.audit import AuditTrail
from worktime.compliance.rule_store import RuleSetStore, to_config, validate_rule_config
from worktime.compliance.types import DEFAULT_RULE_SETS, AuditAction, RuleSet
from worktime.core.exceptions import NotFoundError, ValidationError
from worktime.schemas.compliance import RuleSetUpdate

EU = DEFAULT_RULE_SETS[RuleSet.EU]


@pytest.mark.asyncio
async def test_ensure_default_seeds_eu_rules(db, tenant):
    store = RuleSetStore(db)
    rule = await store.ensure_default(tenant.id)
    await db.commit()

    assert rule.rule_set == "eu"
    assert rule.version == 1
    assert rule.updated_by == "system"
    assert to_config(rule) == EU


@pytest.mark.asyncio
async def test_ensure_default_is_idempotent(db, tenant):
    store = RuleSetStore(db)
    first = await store.ensure_default(tenant.id)
    second = await store.ensure_default(tenant.id, RuleSet.DE)
    assert first.id == second.id
    assert second.rule_set == "eu"


@pytest.mark.asyncio
async def test_get_active_without_rules_raises(db, tenant):
    with pytest.raises(NotFoundError):
        await RuleSetStore(db).get_active(tenant.id)


@pytest.mark.asyncio
async def test_update_bumps_version_and_writes_audit(db, tenant):
    store = RuleSetStore(db)
    await store.ensure_default(tenant.id)

    rule = await store.update(
        tenant.id, RuleSetUpdate(max_weekly_working_time_minutes=40 * 60), "admin-1"
    )

    assert rule.version == 2
    assert rule.updated_by == "admin-1"
    assert rule.max_weekly_working_time_minutes == 2400
    # Nicht gesetzte Felder bleiben erhalten
    assert rule.daily_rest_period_minutes == EU.daily_rest_period_minutes

    logs, total = await AuditTrail(db).list(tenant.id, action=AuditAction.RULE_SET_CHANGED)
    assert total == 1
    details = logs[0].details
    assert logs[0].actor_uid == "admin-1"
    assert details["previous"]["max_weekly_working_time_minutes"] == 2880
    assert details["current"]["max_weekly_working_time_minutes"] == 2400


@pytest.mark.asyncio
async def test_update_accepts_plain_dict(db, tenant):
    store = RuleSetStore(db)
    await store.ensure_default(tenant.id)
    rule = await store.update(tenant.id, {"daily_rest_period_minutes": 600}, "admin-1")
    assert rule.daily_rest_period_minutes == 600


@pytest.mark.asyncio
async def test_switching_rule_set_starts_from_its_defaults(db, tenant):
    store = RuleSetStore(db)
    await store.ensure_default(tenant.id)
    await store.update(tenant.id, {"max_weekly_working_time_minutes": 2400}, "admin-1")

    rule = await store.update(tenant.id, RuleSetUpdate(rule_set=RuleSet.DE), "admin-1")

    assert rule.rule_set == "de"
    assert rule.version == 3
    assert rule.max_weekly_working_time_minutes == DEFAULT_RULE_SETS[RuleSet.DE].max_weekly_working_time_minutes


@pytest.mark.asyncio
async def test_update_unknown_tenant_raises(db, tenant):
    with pytest.raises(NotFoundError):
        await RuleSetStore(db).update(uuid.uuid4(), {"daily_rest_period_minutes": 600}, "admin-1")


@pytest.mark.asyncio
async def test_invalid_update_leaves_rules_unchanged(db, tenant):
    store = RuleSetStore(db)
    await store.ensure_default(tenant.id)
    await db.commit()

    with pytest.raises(ValidationError):
        await store.update(tenant.id, {"max_daily_working_time_with_compensation_minutes": 420}, "admin-1")

    rule = await store.get_active(tenant.id)
    assert rule.version == 1
    _, total = await AuditTrail(db).list(tenant.id)
    assert total == 0


@pytest.mark.asyncio
async def test_unknown_field_rejected(db, tenant):
    store = RuleSetStore(db)
    await store.ensure_default(tenant.id)
    with pytest.raises(ValidationError):
        await store.update(tenant.id, {"max_monthly_minutes": 100}, "admin-1")


@pytest.mark.parametrize("changes", [
    {"daily_rest_period_minutes": 0},
    {"break_duration_minutes": -5},
    {"max_daily_working_time_minutes": 660},
    {"weekly_rest_period_minutes": 7 * 24 * 60 + 1},
    {"break_required_after_minutes_2": None},
    {"break_required_after_minutes_2": 300},
    {"break_duration_minutes_2": 20},
])
def test_validate_rule_config_rejects(changes):
    with pytest.raises(ValidationError):
        validate_rule_config(EU.merged(**changes))


def test_validate_rule_config_accepts_single_tier():
    validate_rule_config(EU.merged(break_required_after_minutes_2=None, break_duration_minutes_2=None))


def test_rule_set_update_rejects_non_positive_values():
    with pytest.raises(ValueError):
        RuleSetUpdate(daily_rest_period_minutes=0)
