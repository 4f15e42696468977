import copy
from types import SimpleNamespace

import pytest

from formforge.schemas import FormSchema


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def __aiter__(self):
        self._it = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class FakeAsyncCollection:
    """In-memory stand-in for the motor ``forms`` collection."""

    def __init__(self):
        self.docs = {}

    def find(self, query=None, projection=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs.values()])

    async def find_one(self, query):
        return copy.deepcopy(self.docs.get(query["_id"]))

    async def replace_one(self, query, doc, upsert=False):
        self.docs[query["_id"]] = copy.deepcopy(doc)

    async def delete_one(self, query):
        removed = self.docs.pop(query["_id"], None)
        return SimpleNamespace(deleted_count=0 if removed is None else 1)


class FakeSyncCollection:
    """In-memory stand-in for a pymongo collection."""

    def __init__(self):
        self.docs = {}

    def find(self, query=None):
        return [copy.deepcopy(d) for d in self.docs.values()]

    def find_one(self, query):
        return copy.deepcopy(self.docs.get(query["_id"]))

    def replace_one(self, query, doc, upsert=False):
        self.docs[query["_id"]] = copy.deepcopy(doc)


PROFILE_FORM = {
    "id": "profile",
    "name": "Profile",
    "createdAt": "2024-01-01T00:00:00Z",
    "updatedAt": "2024-01-02T00:00:00Z",
    "fields": [
        {"id": "first", "type": "text", "label": "First name", "required": True,
         "validationRules": [{"type": "required"}], "order": 0},
        {"id": "last", "type": "text", "label": "Last name", "order": 1},
        {"id": "full_name", "type": "text", "label": "Full name", "order": 2,
         "derivedConfig": {"isDerived": True, "parentFields": ["first", "last"],
                           "computationType": "concat"}},
        {"id": "birth", "type": "date", "label": "Birth date", "order": 3},
        {"id": "age", "type": "number", "label": "Age", "order": 4,
         "validationRules": [{"type": "required"}],
         "derivedConfig": {"isDerived": True, "parentFields": ["birth"],
                           "computationType": "age"}},
        {"id": "email", "type": "text", "label": "Email", "order": 5,
         "validationRules": [{"type": "required"}, {"type": "email"}]},
        {"id": "country", "type": "select", "label": "Country", "order": 6,
         "defaultValue": "ca",
         "options": [{"label": "Canada", "value": "ca"}, {"label": "France", "value": "fr"}]},
    ],
}


@pytest.fixture
def profile_form():
    return FormSchema.model_validate(copy.deepcopy(PROFILE_FORM))


@pytest.fixture
def profile_payload():
    return copy.deepcopy(PROFILE_FORM)


@pytest.fixture
def forms_store(monkeypatch):
    store = FakeAsyncCollection()
    monkeypatch.setattr("formforge.routers.forms.forms_collection", store)
    return store


@pytest.fixture
def client(forms_store):
    from fastapi.testclient import TestClient
    from formforge.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def sync_store():
    return FakeSyncCollection()
