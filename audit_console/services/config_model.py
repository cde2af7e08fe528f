"""Structural edits of an audit configuration's schema fields and rules."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..config.models import AuditConfig, RuleDefinition, SchemaField
from ..utils.errors import IndexOutOfRange, ValidationError
from ..utils.records import split_csv_values

logger = logging.getLogger(__name__)

# Syntactically valid, semantically inert: a fresh rule must not crash the engine.
DEFAULT_RULE_EXPRESSION = "1 = 1"
DEFAULT_RULE_SEVERITY = "warning"


class ConfigModel:
    """Order-preserving add/update/remove operations over an AuditConfig.

    Untouched elements keep their identity; an updated element is replaced
    by a new validated model at the same position.
    """

    def __init__(self, config: Optional[AuditConfig] = None):
        self.config = config if config is not None else AuditConfig()

    # Schema fields

    def add_schema_field(self) -> SchemaField:
        field = SchemaField(
            name=f"field_{len(self.config.schema_fields) + 1}",
            dtype="string",
            nullable=True,
        )
        self.config.schema_fields.append(field)
        return field

    def update_schema_field(self, index: int, partial: Dict[str, Any]) -> SchemaField:
        self._check_index("schema", self.config.schema_fields, index)
        changes = dict(partial)
        if isinstance(changes.get("allowed_values"), str):
            changes["allowed_values"] = split_csv_values(changes["allowed_values"])
        updated = _merge(self.config.schema_fields[index], changes)
        self.config.schema_fields[index] = updated
        return updated

    def remove_schema_field(self, index: int) -> SchemaField:
        self._check_index("schema", self.config.schema_fields, index)
        return self.config.schema_fields.pop(index)

    # Rules

    def add_rule(self) -> RuleDefinition:
        rule = RuleDefinition(
            name=f"Rule {len(self.config.rules) + 1}",
            expression=DEFAULT_RULE_EXPRESSION,
            severity=DEFAULT_RULE_SEVERITY,
            description="",
        )
        self.config.rules.append(rule)
        return rule

    def update_rule(self, index: int, partial: Dict[str, Any]) -> RuleDefinition:
        self._check_index("rules", self.config.rules, index)
        updated = _merge(self.config.rules[index], dict(partial))
        self.config.rules[index] = updated
        return updated

    def remove_rule(self, index: int) -> RuleDefinition:
        self._check_index("rules", self.config.rules, index)
        return self.config.rules.pop(index)

    # Dataset-level settings

    def update_dataset(
        self,
        dataset_name: Optional[str] = None,
        primary_key: Union[str, List[str], None] = None,
    ) -> AuditConfig:
        if dataset_name is not None:
            if not dataset_name.strip():
                raise ValidationError("Dataset name cannot be empty")
            self.config.dataset_name = dataset_name
        if primary_key is not None:
            if isinstance(primary_key, str):
                primary_key = split_csv_values(primary_key)
            self.config.primary_key = list(primary_key)
        return self.config

    @staticmethod
    def _check_index(collection: str, items: list, index: int) -> None:
        # Negative indices would silently address from the end.
        if index < 0 or index >= len(items):
            logger.warning(
                "Structural edit out of range",
                extra={"collection": collection, "index": index, "length": len(items)},
            )
            raise IndexOutOfRange(collection, index, len(items))


def _merge(current: BaseModel, changes: Dict[str, Any]) -> Any:
    unknown = set(changes) - set(type(current).model_fields)
    if unknown:
        raise ValidationError(f"Unknown attribute(s): {', '.join(sorted(unknown))}")
    try:
        return type(current).model_validate({**current.model_dump(), **changes})
    except PydanticValidationError as exc:
        raise ValidationError(str(exc)) from exc
