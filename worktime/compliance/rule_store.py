"""
Rule Set Store – aktive Compliance-Parameter pro Tenant.

Jeder Tenant hat genau ein aktives Regel-Set. Änderungen laufen nur über
update(), das die Version hochzählt und den Vorher/Nachher-Stand ins
Audit Trail schreibt.
"""
import logging
import uuid
from dataclasses import fields
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.audit import AuditTrail
from worktime.compliance.types import DEFAULT_RULE_SETS, RuleConfig, RuleSet
from worktime.core.exceptions import NotFoundError, ValidationError
from worktime.models.compliance import ComplianceRule
from worktime.schemas.compliance import RuleConfigValues, RuleSetChangedDetails, RuleSetUpdate

logger = logging.getLogger(__name__)

CONFIG_FIELDS = tuple(f.name for f in fields(RuleConfig) if f.name != "rule_set")
REQUIRED_FIELDS = tuple(f for f in CONFIG_FIELDS if not f.endswith("_2"))

MINUTES_PER_WEEK = 7 * 24 * 60


def to_config(rule: ComplianceRule) -> RuleConfig:
    data = {name: getattr(rule, name) for name in CONFIG_FIELDS}
    data["rule_set"] = rule.rule_set
    return RuleConfig.from_dict(data)


def validate_rule_config(config: RuleConfig) -> None:
    """Raises ValidationError if the merged configuration cannot be evaluated."""
    for name in REQUIRED_FIELDS:
        value = getattr(config, name)
        if value is None or value <= 0:
            raise ValidationError(f"{name} muss größer als 0 sein")

    for name in ("break_required_after_minutes_2", "break_duration_minutes_2"):
        value = getattr(config, name)
        if value is not None and value <= 0:
            raise ValidationError(f"{name} muss größer als 0 sein")

    if config.max_daily_working_time_with_compensation_minutes < config.max_daily_working_time_minutes:
        raise ValidationError(
            "max_daily_working_time_with_compensation_minutes darf nicht kleiner "
            "als max_daily_working_time_minutes sein"
        )

    if config.weekly_rest_period_minutes > MINUTES_PER_WEEK:
        raise ValidationError("weekly_rest_period_minutes darf eine Woche nicht überschreiten")

    tier_2 = (config.break_required_after_minutes_2, config.break_duration_minutes_2)
    if (tier_2[0] is None) != (tier_2[1] is None):
        raise ValidationError(
            "break_required_after_minutes_2 und break_duration_minutes_2 nur gemeinsam setzen"
        )
    if config.has_second_break_tier:
        if config.break_required_after_minutes_2 <= config.break_required_after_minutes:
            raise ValidationError("Zweite Pausenstufe muss nach der ersten greifen")
        if config.break_duration_minutes_2 <= config.break_duration_minutes:
            raise ValidationError("Zweite Pausenstufe muss länger als die erste sein")


class RuleSetStore:
    def __init__(self, db: AsyncSession, audit: AuditTrail | None = None):
        self.db = db
        self.audit = audit or AuditTrail(db)

    async def _find(self, tenant_id: uuid.UUID) -> ComplianceRule | None:
        result = await self.db.execute(
            select(ComplianceRule).where(ComplianceRule.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def get_active(self, tenant_id: uuid.UUID) -> ComplianceRule:
        rule = await self._find(tenant_id)
        if rule is None:
            raise NotFoundError(f"No compliance rule set configured for tenant {tenant_id}")
        return rule

    async def ensure_default(
        self, tenant_id: uuid.UUID, rule_set: RuleSet = RuleSet.EU
    ) -> ComplianceRule:
        """Aktives Regel-Set liefern, bei Bedarf mit den Standardwerten anlegen."""
        rule = await self._find(tenant_id)
        if rule is not None:
            return rule

        defaults = DEFAULT_RULE_SETS[RuleSet(rule_set)]
        rule = ComplianceRule(
            tenant_id=tenant_id,
            rule_set=defaults.rule_set.value,
            version=1,
            updated_by="system",
            **{name: getattr(defaults, name) for name in CONFIG_FIELDS},
        )
        # uq_compliance_rules_tenant verhindert doppeltes Anlegen bei parallelen Requests
        self.db.add(rule)
        await self.db.flush()

        logger.info("Seeded %s compliance rules for tenant %s", rule.rule_set, tenant_id)
        return rule

    async def update(
        self,
        tenant_id: uuid.UUID,
        patch: RuleSetUpdate | dict,
        actor: str,
    ) -> ComplianceRule:
        rule = await self.get_active(tenant_id)
        previous = to_config(rule)

        if isinstance(patch, RuleSetUpdate):
            changes = patch.model_dump(exclude_unset=True)
        else:
            changes = dict(patch)

        new_set = changes.pop("rule_set", None)
        if new_set is not None and RuleSet(new_set) != previous.rule_set:
            base = DEFAULT_RULE_SETS[RuleSet(new_set)]
        else:
            base = previous

        unknown = set(changes) - set(CONFIG_FIELDS)
        if unknown:
            raise ValidationError(f"Unbekannte Felder: {', '.join(sorted(unknown))}")

        current = base.merged(**changes)
        validate_rule_config(current)

        rule.rule_set = current.rule_set.value
        for name in CONFIG_FIELDS:
            setattr(rule, name, getattr(current, name))
        rule.version += 1
        rule.updated_at = datetime.now(timezone.utc)
        rule.updated_by = str(actor)

        await self.audit.append(
            tenant_id,
            actor,
            RuleSetChangedDetails(
                rule_set=current.rule_set,
                previous=RuleConfigValues(**previous.to_dict()),
                current=RuleConfigValues(**current.to_dict()),
            ),
        )
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(
            "Compliance rules of tenant %s updated to %s v%s by %s",
            tenant_id, rule.rule_set, rule.version, actor,
        )
        return rule
