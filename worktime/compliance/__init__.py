"""
Work-time compliance core: rule sets, detection, ledger, stats, reports, audit trail.
"""
from worktime.compliance.detector import detect
from worktime.compliance.types import (
    DEFAULT_RULE_SETS,
    DetectedViolation,
    DetectionWindow,
    RuleConfig,
    RuleSet,
    TimeEntryRecord,
    ViolationSeverity,
    ViolationType,
)

__all__ = [
    "detect",
    "DEFAULT_RULE_SETS",
    "DetectedViolation",
    "DetectionWindow",
    "RuleConfig",
    "RuleSet",
    "TimeEntryRecord",
    "ViolationSeverity",
    "ViolationType",
]
