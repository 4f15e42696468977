"""
Schema authoring operations.

Each operation takes a FormSchema and returns a new one with ``updatedAt``
refreshed; the input schema is never modified.
"""
from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from formforge.derived import DerivedFieldCycleError, resolve_evaluation_order
from formforge.schemas import FormField, FormSchema, SchemaIssue


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _touch(schema: FormSchema, **updates) -> FormSchema:
    updates["updatedAt"] = _utcnow()
    return schema.model_copy(update=updates)


def _field_index(schema: FormSchema, field_id: str) -> int:
    for i, f in enumerate(schema.fields):
        if f.id == field_id:
            return i
    raise KeyError(field_id)


def new_form(name: str = "Untitled Form", form_id: Optional[str] = None) -> FormSchema:
    now = _utcnow()
    return FormSchema(
        id=form_id or uuid.uuid4().hex,
        name=name,
        fields=[],
        createdAt=now,
        updatedAt=now,
    )


def rename_form(schema: FormSchema, name: str) -> FormSchema:
    return _touch(schema, name=name)


def add_field(schema: FormSchema, field: FormField) -> FormSchema:
    if any(f.id == field.id for f in schema.fields):
        raise ValueError(f"Field '{field.id}' already exists")
    return _touch(schema, fields=[*schema.fields, field])


def update_field(schema: FormSchema, field_id: str, updates: Dict[str, Any]) -> FormSchema:
    """Merge ``updates`` into the field and re-validate it."""
    i = _field_index(schema, field_id)
    merged = {**schema.fields[i].model_dump(), **updates}
    fields = list(schema.fields)
    fields[i] = FormField.model_validate(merged)
    return _touch(schema, fields=fields)


def delete_field(schema: FormSchema, field_id: str) -> FormSchema:
    _field_index(schema, field_id)
    return _touch(schema, fields=[f for f in schema.fields if f.id != field_id])


def reorder_fields(schema: FormSchema, field_ids: Sequence[str]) -> FormSchema:
    """Put fields in the order of ``field_ids`` and renumber ``order`` from 0."""
    by_id = {f.id: f for f in schema.fields}
    if sorted(field_ids) != sorted(by_id):
        raise ValueError("field_ids must list every field of the form exactly once")
    fields = [by_id[fid].model_copy(update={"order": i}) for i, fid in enumerate(field_ids)]
    return _touch(schema, fields=fields)


def sorted_fields(fields: Sequence[FormField]) -> List[FormField]:
    """Render order: by ``order``, ties keep schema order."""
    return sorted(fields, key=lambda f: f.order)


def initial_record(fields: Sequence[FormField]) -> Dict[str, Any]:
    """Record a fresh fill starts from: every field that has a default value."""
    return {f.id: f.defaultValue for f in fields if f.defaultValue is not None}


def check_schema(schema: FormSchema) -> List[SchemaIssue]:
    issues: List[SchemaIssue] = []

    counts = Counter(f.id for f in schema.fields)
    for field_id, n in counts.items():
        if n > 1:
            issues.append(SchemaIssue(
                code="duplicate_field_id",
                fieldId=field_id,
                detail=f"Field id '{field_id}' is used by {n} fields",
            ))

    for f in schema.fields:
        if not f.is_derived:
            continue
        for parent_id in f.derivedConfig.parentFields:
            if parent_id not in counts:
                issues.append(SchemaIssue(
                    code="missing_parent_field",
                    fieldId=f.id,
                    detail=f"Parent field '{parent_id}' does not exist",
                ))

    try:
        resolve_evaluation_order(schema.fields)
    except DerivedFieldCycleError as e:
        issues.append(SchemaIssue(code="derived_cycle", fieldId=e.cycle[0], detail=str(e)))

    return issues
