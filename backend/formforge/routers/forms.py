import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, HTTPException

from formforge.builder import check_schema
from formforge.database import forms_collection, document_to_form
from formforge.schemas import FormSchema, FormSummary, SchemaIssue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/forms", tags=["forms"])


async def load_form(form_id: str) -> FormSchema:
    doc = await forms_collection.find_one({"_id": form_id})
    if not doc:
        raise HTTPException(status_code=404, detail="Form not found")
    return FormSchema.model_validate(document_to_form(doc))


@router.get("", response_model=List[FormSummary])
async def list_forms():
    """Get a list of all saved forms with basic info."""
    items = []
    async for doc in forms_collection.find({}, {"_id": 1, "name": 1, "createdAt": 1, "updatedAt": 1, "fields.id": 1}):
        items.append(FormSummary(
            id=str(doc["_id"]),
            name=doc.get("name", ""),
            createdAt=doc.get("createdAt"),
            updatedAt=doc.get("updatedAt"),
            fieldCount=len(doc.get("fields", [])),
        ))
    return items


@router.post("")
async def upsert_form(form: FormSchema):
    now = datetime.now(timezone.utc)
    doc = form.model_dump()
    doc["_id"] = form.id
    # Preserve createdAt of an already saved form
    existing = await forms_collection.find_one({"_id": form.id})
    if existing:
        doc["createdAt"] = existing.get("createdAt", now)
    doc["updatedAt"] = now

    issues = check_schema(form)
    for issue in issues:
        logger.warning(f"Form '{form.id}': {issue.code} on '{issue.fieldId}': {issue.detail}")

    await forms_collection.replace_one({"_id": form.id}, doc, upsert=True)
    logger.info(f"Saved form '{form.id}' with {len(form.fields)} fields")
    return {"status": "ok", "formId": form.id, "issues": [i.model_dump() for i in issues]}


@router.get("/{form_id}", response_model=FormSchema)
async def get_form(form_id: str):
    return await load_form(form_id)


@router.get("/{form_id}/diagnostics", response_model=List[SchemaIssue])
async def get_diagnostics(form_id: str):
    """Report duplicate field ids, missing parent fields and derived cycles."""
    form = await load_form(form_id)
    return check_schema(form)


@router.delete("/{form_id}")
async def delete_form(form_id: str):
    result = await forms_collection.delete_one({"_id": form_id})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Form not found")
    logger.info(f"Deleted form '{form_id}'")
    return {"status": "ok", "formId": form_id}
