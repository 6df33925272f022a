from worktime.models.tenant import Tenant
from worktime.models.user import User
from worktime.models.time_entry import TimeEntry
from worktime.models.compliance import ComplianceRule, ComplianceViolation, ComplianceReport
from worktime.models.audit import ComplianceAuditLog

__all__ = [
    "Tenant",
    "User",
    "TimeEntry",
    "ComplianceRule",
    "ComplianceViolation",
    "ComplianceReport",
    "ComplianceAuditLog",
]
