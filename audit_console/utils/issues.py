"""Dataclasses describing issues and indicators derived from a report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

RULE_FAILED = "Rule Failed"
MISSING_VALUE = "Missing Value"
PK_NULL = "PK Null"
PK_DUPLICATE = "PK Duplicate"


@dataclass
class DerivedIssue:
    row_id: str
    value: str
    error_type: str
    rule_or_column: str
    severity: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "rowId": self.row_id,
            "value": self.value,
            "errorType": self.error_type,
            "ruleOrColumn": self.rule_or_column,
            "severity": self.severity,
        }


@dataclass
class Indicator:
    label: str
    detail: str
    severity: str

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "detail": self.detail, "severity": self.severity}
