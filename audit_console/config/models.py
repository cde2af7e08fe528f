"""Pydantic models for the audit configuration submitted to the engine.

Field names are the compatibility contract with the audit engine, so the
models serialize with the engine's names (``schema`` in particular) rather
than the Python attribute names.
"""

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DataType = Literal["string", "integer", "float", "boolean", "datetime", "category"]
Severity = Literal["info", "warning", "error"]

DTYPE_OPTIONS = ("string", "integer", "float", "boolean", "datetime", "category")
SEVERITY_OPTIONS = ("info", "warning", "error")


class SchemaField(BaseModel):
    name: str
    dtype: DataType = "string"
    nullable: bool = True
    description: Optional[str] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    allowed_values: Optional[List[str]] = None
    regex: Optional[str] = None


class RuleDefinition(BaseModel):
    name: str
    expression: str
    severity: Severity = "warning"
    description: Optional[str] = None


class AuditConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dataset_name: str = "uploaded_dataset"
    primary_key: List[str] = Field(default_factory=list)
    schema_fields: List[SchemaField] = Field(default_factory=list, alias="schema")
    rules: List[RuleDefinition] = Field(default_factory=list)

    @field_validator("primary_key", "schema_fields", "rules", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return [] if value is None else value


def serialize_config(config: AuditConfig) -> str:
    """Render the config as the JSON text sent in the ``config`` form field."""
    return config.model_dump_json(by_alias=True, exclude_none=True)


def parse_config(text: str | bytes) -> AuditConfig:
    return AuditConfig.model_validate_json(text)
