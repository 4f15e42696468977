from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Sequence

from formforge.schemas import (
    EmailRule,
    FormField,
    MaxLengthRule,
    MinLengthRule,
    PasswordRule,
    RequiredRule,
    ValidationError,
)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
DIGIT_PATTERN = re.compile(r"[0-9]")
PASSWORD_MIN_LENGTH = 8


def _is_blank(value: Any) -> bool:
    # empty lists and dicts are answers, not missing values
    if value is None or isinstance(value, bool):
        return value is not True
    if isinstance(value, (int, float)):
        return value == 0 or math.isnan(value)
    if isinstance(value, str):
        return value.strip() == ""
    return False


def validate_field(value: Any, rules: Sequence[Any], label: str) -> Optional[str]:
    """
    Apply ``rules`` in order and return the message of the first failure.

    Length, email and password rules only look at strings; for any other
    value they pass.
    """
    for rule in rules:
        if isinstance(rule, RequiredRule):
            if _is_blank(value):
                return f"{label} is required"

        elif isinstance(rule, MinLengthRule):
            if isinstance(value, str) and len(value) < rule.value:
                return f"{label} must be at least {rule.value} characters long"

        elif isinstance(rule, MaxLengthRule):
            if isinstance(value, str) and len(value) > rule.value:
                return f"{label} must be no more than {rule.value} characters long"

        elif isinstance(rule, EmailRule):
            if isinstance(value, str) and not EMAIL_PATTERN.fullmatch(value):
                return f"{label} must be a valid email address"

        elif isinstance(rule, PasswordRule):
            if isinstance(value, str):
                if len(value) < PASSWORD_MIN_LENGTH:
                    return f"{label} must be at least {PASSWORD_MIN_LENGTH} characters long"
                if not DIGIT_PATTERN.search(value):
                    return f"{label} must contain at least one number"

    return None


def validate_form(data: Dict[str, Any], fields: Sequence[FormField]) -> List[ValidationError]:
    """One error per failing field, in schema order. Derived fields are skipped."""
    errors: List[ValidationError] = []

    for field in fields:
        if field.is_derived:
            continue
        message = validate_field(data.get(field.id), field.validationRules, field.label)
        if message:
            errors.append(ValidationError(fieldId=field.id, message=message))

    return errors
