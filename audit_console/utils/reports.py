"""Pydantic models for reports produced by the audit engine.

Reports are immutable once received. Every optional section defaults to
empty (or absent for ``primary_key_result``) so partially populated reports
still validate.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.models import AuditConfig

# Column name -> value, plus the reserved "__line__" row identifier.
SampleRow = Dict[str, Any]


class _ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class AuditSummary(_ReportModel):
    dataset_name: str = ""
    row_count: int = 0
    column_count: int = 0
    created_at: Optional[str] = None
    engine_used: Optional[str] = None
    issues_found: int = 0


class SchemaResult(_ReportModel):
    field: str
    expected_dtype: str
    actual_dtype: Optional[str] = None
    status: str = "ok"
    details: Optional[str] = None


class MissingValueStat(_ReportModel):
    column: str
    missing_count: int = 0
    missing_pct: float = 0.0
    sample_rows: List[SampleRow] = Field(default_factory=list)

    @field_validator("sample_rows", mode="before")
    @classmethod
    def _null_samples(cls, value):
        return [] if value is None else value


class RuleResult(_ReportModel):
    name: str
    severity: str = "warning"
    passed: bool = True
    failing_rows: int = 0
    sample_rows: List[SampleRow] = Field(default_factory=list)
    description: Optional[str] = None

    @field_validator("sample_rows", mode="before")
    @classmethod
    def _null_samples(cls, value):
        return [] if value is None else value


class PrimaryKeyResult(_ReportModel):
    columns: List[str] = Field(default_factory=list)
    duplicate_count: int = 0
    null_count: int = 0
    sample_rows: List[SampleRow] = Field(default_factory=list)

    @field_validator("columns", "sample_rows", mode="before")
    @classmethod
    def _null_lists(cls, value):
        return [] if value is None else value


class AuditReport(_ReportModel):
    id: str
    summary: AuditSummary = Field(default_factory=AuditSummary)
    schema_results: List[SchemaResult] = Field(default_factory=list)
    missing_values: List[MissingValueStat] = Field(default_factory=list)
    rule_results: List[RuleResult] = Field(default_factory=list)
    primary_key_result: Optional[PrimaryKeyResult] = None
    sample_rows: List[SampleRow] = Field(default_factory=list)
    config: Optional[AuditConfig] = None
    source_file: Optional[str] = None

    @field_validator("schema_results", "missing_values", "rule_results", "sample_rows", mode="before")
    @classmethod
    def _null_sections(cls, value):
        return [] if value is None else value


class StoredReportMetadata(_ReportModel):
    id: str
    dataset_name: str = ""
    created_at: Optional[str] = None
    issues_found: int = 0
    report_path: Optional[str] = None
