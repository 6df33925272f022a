from worktime.schemas.compliance import (
    RuleSetOut, RuleSetUpdate,
    ViolationOut, ViolationListOut, AcknowledgeRequest,
    ComplianceCheckRequest, ComplianceCheckOut,
    ComplianceStatsOut,
    ReportGenerateRequest, ReportOut,
    AuditLogOut, AuditLogListOut,
)

__all__ = [
    "RuleSetOut", "RuleSetUpdate",
    "ViolationOut", "ViolationListOut", "AcknowledgeRequest",
    "ComplianceCheckRequest", "ComplianceCheckOut",
    "ComplianceStatsOut",
    "ReportGenerateRequest", "ReportOut",
    "AuditLogOut", "AuditLogListOut",
]
