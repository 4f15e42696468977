from motor.motor_asyncio import AsyncIOMotorClient
from formforge.config import settings

client = AsyncIOMotorClient(settings.MONGO_URI)
db = client[settings.DB_NAME]

forms_collection = db.forms


def document_to_form(doc: dict) -> dict:
    """Stored form document -> FormSchema payload (``_id`` becomes ``id``)."""
    doc = dict(doc)
    doc["id"] = doc.pop("_id")
    return doc
