"""Delta computation between two completed reports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..utils.errors import ValidationError
from ..utils.reports import AuditReport

SELECTION_MESSAGE = "Choose two different reports to compare."


@dataclass
class ComparisonResult:
    report_a_id: str
    report_b_id: str
    issues_a: int
    issues_b: int
    delta: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reportA": self.report_a_id,
            "reportB": self.report_b_id,
            "issuesA": self.issues_a,
            "issuesB": self.issues_b,
            "delta": self.delta,
        }


def ensure_distinct_selection(report_a_id: Optional[str], report_b_id: Optional[str]) -> None:
    if not report_a_id or not report_b_id or report_a_id == report_b_id:
        raise ValidationError(SELECTION_MESSAGE)


def compare(report_a: Optional[AuditReport], report_b: Optional[AuditReport]) -> ComparisonResult:
    """Compare issue totals; a positive delta means B found more issues than A."""
    if report_a is None or report_b is None:
        raise ValidationError(SELECTION_MESSAGE)
    ensure_distinct_selection(report_a.id, report_b.id)
    issues_a = report_a.summary.issues_found
    issues_b = report_b.summary.issues_found
    return ComparisonResult(
        report_a_id=report_a.id,
        report_b_id=report_b.id,
        issues_a=issues_a,
        issues_b=issues_b,
        delta=issues_b - issues_a,
    )


def compare_breakdown(report_a: AuditReport, report_b: AuditReport) -> Dict[str, List[Dict[str, Any]]]:
    """Per-rule failing rows and per-column missing counts, diffed symmetrically.

    A rule or column present on only one side counts as zero on the other.
    Entries are ordered by first appearance in A, then in B.
    """
    rules = _diff(
        {rule.name: rule.failing_rows for rule in report_a.rule_results if not rule.passed},
        {rule.name: rule.failing_rows for rule in report_b.rule_results if not rule.passed},
        "rule",
    )
    columns = _diff(
        {stat.column: stat.missing_count for stat in report_a.missing_values},
        {stat.column: stat.missing_count for stat in report_b.missing_values},
        "column",
    )
    return {"rules": rules, "columns": columns}


def _diff(counts_a: Dict[str, int], counts_b: Dict[str, int], label: str) -> List[Dict[str, Any]]:
    names = list(counts_a) + [name for name in counts_b if name not in counts_a]
    entries = []
    for name in names:
        a = counts_a.get(name, 0)
        b = counts_b.get(name, 0)
        entries.append({label: name, "a": a, "b": b, "delta": b - a})
    return entries
