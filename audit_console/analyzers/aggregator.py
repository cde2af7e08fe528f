"""Derive a flat issue log and coarse indicators from a completed report.

Four issue sources are merged into one log: rule failures, missing values,
primary-key nulls and primary-key duplicates. Only sample rows attached by
the engine produce log entries, so a failed rule without samples shows up
as an indicator but contributes nothing to the log.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from functools import cmp_to_key
from typing import Any, Dict, Iterable, List

from ..utils.issues import (
    MISSING_VALUE,
    PK_DUPLICATE,
    PK_NULL,
    RULE_FAILED,
    DerivedIssue,
    Indicator,
)
from ..utils.records import has_blank_field, parse_row_number, render_sample, row_id
from ..utils.reports import AuditReport

# Missing-value share (percent) above which a column is an error rather than a warning.
MISSING_PCT_ERROR_THRESHOLD = 10.0
MISSING_VALUE_PLACEHOLDER = "NULL / Empty"


def missing_severity(missing_pct: float) -> str:
    return "error" if missing_pct > MISSING_PCT_ERROR_THRESHOLD else "warning"


def format_pct(value: float) -> str:
    """One decimal place, halves rounded away from zero."""
    return str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def derive_issue_log(report: AuditReport) -> List[DerivedIssue]:
    """Build the row-level issue log, sorted by row id."""
    issues: List[DerivedIssue] = []

    for rule in report.rule_results:
        if rule.passed:
            continue
        for sample in rule.sample_rows:
            issues.append(
                DerivedIssue(
                    row_id=row_id(sample),
                    value=render_sample(sample),
                    error_type=RULE_FAILED,
                    rule_or_column=rule.name,
                    severity=rule.severity,
                )
            )

    for stat in report.missing_values:
        if stat.missing_count <= 0:
            continue
        severity = missing_severity(stat.missing_pct)
        for sample in stat.sample_rows:
            issues.append(
                DerivedIssue(
                    row_id=row_id(sample),
                    value=MISSING_VALUE_PLACEHOLDER,
                    error_type=MISSING_VALUE,
                    rule_or_column=stat.column,
                    severity=severity,
                )
            )

    pk_result = report.primary_key_result
    if pk_result is not None:
        pk_label = ", ".join(pk_result.columns)
        for sample in pk_result.sample_rows:
            # The engine mixes null and duplicate samples without tagging them;
            # a blank key column is the only signal available.
            error_type = PK_NULL if has_blank_field(sample, pk_result.columns) else PK_DUPLICATE
            issues.append(
                DerivedIssue(
                    row_id=row_id(sample),
                    value=render_sample(sample),
                    error_type=error_type,
                    rule_or_column=pk_label,
                    severity="error",
                )
            )

    return sort_issues(issues)


def compare_row_ids(left: str, right: str) -> int:
    """Numeric order when both ids are integers, plain string order otherwise."""
    left_number = parse_row_number(left)
    right_number = parse_row_number(right)
    if left_number is not None and right_number is not None:
        return (left_number > right_number) - (left_number < right_number)
    return (left > right) - (left < right)


def sort_issues(issues: Iterable[DerivedIssue]) -> List[DerivedIssue]:
    # sorted() is stable, so equal row ids keep emission order.
    key = cmp_to_key(compare_row_ids)
    return sorted(issues, key=lambda issue: key(issue.row_id))


def derive_indicators(report: AuditReport) -> List[Indicator]:
    """One indicator per offending aspect: schema, missing values, rules, primary key."""
    indicators: List[Indicator] = []

    for item in report.schema_results:
        if item.status == "missing":
            indicators.append(Indicator("Missing column", item.field, "error"))
        elif item.status == "type_mismatch":
            actual = item.actual_dtype if item.actual_dtype is not None else "n/a"
            indicators.append(
                Indicator(
                    "Type mismatch",
                    f"{item.field}: expected {item.expected_dtype}, found {actual}",
                    "warning",
                )
            )

    for stat in report.missing_values:
        if stat.missing_count > 0:
            indicators.append(
                Indicator(
                    "Missing data",
                    f"{stat.column}: {format_pct(stat.missing_pct)}%",
                    missing_severity(stat.missing_pct),
                )
            )

    for rule in report.rule_results:
        if not rule.passed:
            indicators.append(
                Indicator("Rule failed", f"{rule.name} ({rule.failing_rows} rows)", rule.severity)
            )

    pk_result = report.primary_key_result
    if pk_result is not None:
        if pk_result.duplicate_count > 0:
            indicators.append(Indicator("PK duplicate", f"{pk_result.duplicate_count} rows", "error"))
        if pk_result.null_count > 0:
            indicators.append(Indicator("PK null", f"{pk_result.null_count} rows", "error"))

    return indicators


def summarize(issues: Iterable[DerivedIssue]) -> Dict[str, Any]:
    by_type: Dict[str, int] = defaultdict(int)
    by_severity: Dict[str, int] = defaultdict(int)
    total = 0
    for issue in issues:
        by_type[issue.error_type] += 1
        by_severity[issue.severity] += 1
        total += 1
    return {
        "total": total,
        "by_type": dict(by_type),
        "by_severity": dict(by_severity),
    }
