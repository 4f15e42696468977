from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from formforge.expressions import DEFAULT_MAX_STEPS, evaluate_expression
from formforge.schemas import FormField

logger = logging.getLogger(__name__)

FormData = Dict[str, Any]
DateLike = Union[date, datetime]

# same prefix a browser number parser accepts: sign, digits, fraction, exponent
NUMBER_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class DerivedFieldCycleError(ValueError):
    """Raised when derived fields depend on each other in a loop."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Derived fields form a cycle: {' -> '.join(cycle)}")


def _to_number(x: Any) -> float:
    # leading numeric prefix counts ("12px" -> 12); anything else contributes 0
    if isinstance(x, bool):
        return 0.0
    if isinstance(x, (int, float)):
        n = float(x)
    elif isinstance(x, str):
        match = NUMBER_PREFIX.match(x.lstrip())
        if not match:
            return 0.0
        n = float(match.group(0))
    else:
        return 0.0
    return 0.0 if math.isnan(n) else n


def _to_text(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, bool):
        return "true" if x else "false"
    if isinstance(x, float) and x.is_integer():
        return str(int(x))
    if isinstance(x, (list, tuple)):
        return ",".join(_to_text(item) for item in x)
    return str(x)


def _parse_date(x: Any) -> Optional[date]:
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    if not isinstance(x, str):
        return None
    try:
        return date.fromisoformat(x)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(x.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _completed_years(born: date, today: date) -> int:
    # truncates toward zero, so future dates count down in whole years too
    if born > today:
        return -_completed_years(today, born)
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def _today(now: Optional[DateLike]) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def parent_values(field: FormField, data: FormData) -> List[Any]:
    """Parent values in listed order; ids missing from the record are dropped."""
    config = field.derivedConfig
    if config is None:
        return []
    return [data[parent_id] for parent_id in config.parentFields if parent_id in data]


def compute_derived_value(
    field: FormField,
    data: FormData,
    now: Optional[DateLike] = None,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> Any:
    """
    Compute the value of one derived field from ``data``.

    Returns None for a field that is not derived. Every failure (unparseable
    date, broken custom logic, unknown computation type) degrades to "".
    """
    if not field.is_derived:
        return None

    config = field.derivedConfig
    values = parent_values(field, data)
    if not values:
        return ""

    kind = config.computationType

    if kind == "age":
        born = _parse_date(values[0]) if values[0] else None
        if born is None:
            return ""
        return _completed_years(born, _today(now))

    if kind == "sum":
        return sum(_to_number(v) for v in values)

    if kind == "concat":
        return " ".join(_to_text(v) for v in values)

    if kind == "custom":
        try:
            return evaluate_expression(config.customLogic or "", values, max_steps=max_steps)
        except Exception as e:
            logger.debug(f"Custom logic for field '{field.id}' failed: {e}")
            return ""

    return ""


def resolve_evaluation_order(fields: Sequence[FormField]) -> List[FormField]:
    """
    Order derived fields so that derived parents come before their children.

    Fields keep their schema order otherwise. Raises DerivedFieldCycleError
    when a derived field (transitively) depends on itself.
    """
    derived = {f.id: f for f in fields if f.is_derived}
    ordered: List[FormField] = []
    state: Dict[str, str] = {}

    def visit(field: FormField, path: List[str]):
        status = state.get(field.id)
        if status == "done":
            return
        if status == "visiting":
            raise DerivedFieldCycleError(path[path.index(field.id):] + [field.id])

        state[field.id] = "visiting"
        path.append(field.id)
        for parent_id in field.derivedConfig.parentFields:
            parent = derived.get(parent_id)
            if parent is not None:
                visit(parent, path)
        path.pop()
        state[field.id] = "done"
        ordered.append(field)

    for field in fields:
        if field.is_derived:
            visit(field, [])
    return ordered


def update_derived_fields(
    fields: Sequence[FormField],
    data: FormData,
    now: Optional[DateLike] = None,
    resolve_dependencies: bool = False,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> FormData:
    """
    Return a copy of ``data`` with every derived field recomputed.

    By default this is a single pass in schema order where each derived field
    reads its parents from ``data`` as passed in, so a derived parent
    contributes its previous value. With ``resolve_dependencies`` the fields
    are evaluated in dependency order and read already updated parents.
    """
    updated = dict(data)

    if resolve_dependencies:
        for field in resolve_evaluation_order(fields):
            updated[field.id] = compute_derived_value(field, updated, now, max_steps)
        return updated

    for field in fields:
        if field.is_derived:
            updated[field.id] = compute_derived_value(field, data, now, max_steps)
    return updated


def update_derived_fields_until_stable(
    fields: Sequence[FormField],
    data: FormData,
    now: Optional[DateLike] = None,
    max_passes: Optional[int] = None,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> FormData:
    """Repeat the single pass until no field changes or ``max_passes`` is hit."""
    if max_passes is None:
        max_passes = sum(1 for f in fields if f.is_derived) + 1

    current = data
    for _ in range(max_passes):
        updated = update_derived_fields(fields, current, now=now, max_steps=max_steps)
        if not has_changes(current, updated):
            return updated
        current = updated

    logger.warning(f"Derived fields still changing after {max_passes} passes")
    return current


_MISSING = object()


def has_changes(previous: FormData, updated: FormData) -> bool:
    """Shallow per-field comparison: identical objects or equal values are unchanged."""
    for key in set(previous) | set(updated):
        before = previous.get(key, _MISSING)
        after = updated.get(key, _MISSING)
        if before is not after and before != after:
            return True
    return False
