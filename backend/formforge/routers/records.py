import logging

from fastapi import APIRouter, HTTPException

from formforge.builder import initial_record
from formforge.config import settings
from formforge.derived import DerivedFieldCycleError, has_changes, update_derived_fields
from formforge.routers.forms import load_form
from formforge.schemas import EvaluateIn, EvaluateOut, ValidateIn, ValidateOut
from formforge.validation import validate_form

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/forms", tags=["records"])


@router.get("/{form_id}/record")
async def get_initial_record(form_id: str):
    """Record a new fill starts from: default values plus computed derived fields."""
    form = await load_form(form_id)
    return update_derived_fields(
        form.fields,
        initial_record(form.fields),
        max_steps=settings.CUSTOM_LOGIC_MAX_STEPS,
    )


@router.post("/{form_id}/evaluate", response_model=EvaluateOut)
async def evaluate_record(form_id: str, body: EvaluateIn):
    """
    Recompute derived fields for the submitted values.

    Validation errors are included only when ``validate`` (or ``showValidation``) is set, the
    same way the editing surface only shows them on submit intent.
    """
    form = await load_form(form_id)
    try:
        values = update_derived_fields(
            form.fields,
            body.values,
            now=body.now,
            resolve_dependencies=body.resolveDependencies,
            max_steps=settings.CUSTOM_LOGIC_MAX_STEPS,
        )
    except DerivedFieldCycleError as e:
        raise HTTPException(status_code=400, detail=str(e))

    errors = validate_form(values, form.fields) if body.showValidation else []
    return EvaluateOut(values=values, changed=has_changes(body.values, values), errors=errors)


@router.post("/{form_id}/validate", response_model=ValidateOut)
async def validate_record(form_id: str, body: ValidateIn):
    form = await load_form(form_id)
    values = update_derived_fields(form.fields, body.values, max_steps=settings.CUSTOM_LOGIC_MAX_STEPS)
    errors = validate_form(values, form.fields)
    if errors:
        logger.debug(f"Form '{form_id}' failed validation on {len(errors)} fields")
    return ValidateOut(valid=not errors, errors=errors)
