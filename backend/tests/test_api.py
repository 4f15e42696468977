def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_save_and_load_form(client, forms_store, profile_payload):
    r = client.post("/api/forms", json=profile_payload)
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "formId": "profile", "issues": []}
    assert "profile" in forms_store.docs

    r = client.get("/api/forms/profile")
    assert r.status_code == 200
    form = r.json()
    assert form["id"] == "profile"
    assert [f["id"] for f in form["fields"]] == [f["id"] for f in profile_payload["fields"]]
    assert form["fields"][4]["derivedConfig"]["computationType"] == "age"


def test_save_keeps_created_at(client, forms_store, profile_payload):
    client.post("/api/forms", json=profile_payload)
    created = forms_store.docs["profile"]["createdAt"]

    profile_payload["name"] = "Profile v2"
    profile_payload["createdAt"] = "2030-01-01T00:00:00Z"
    client.post("/api/forms", json=profile_payload)

    assert forms_store.docs["profile"]["createdAt"] == created
    assert forms_store.docs["profile"]["name"] == "Profile v2"


def test_save_reports_schema_issues(client, profile_payload):
    profile_payload["fields"][2]["derivedConfig"]["parentFields"] = ["first", "ghost"]
    r = client.post("/api/forms", json=profile_payload)
    assert r.status_code == 200
    issues = r.json()["issues"]
    assert len(issues) == 1
    assert issues[0]["code"] == "missing_parent_field"
    assert issues[0]["fieldId"] == "full_name"

    r = client.get("/api/forms/profile/diagnostics")
    assert r.json() == issues


def test_save_rejects_invalid_schema(client, profile_payload):
    profile_payload["fields"][0]["validationRules"] = [{"type": "phone"}]
    r = client.post("/api/forms", json=profile_payload)
    assert r.status_code == 422


def test_list_and_delete_forms(client, profile_payload):
    client.post("/api/forms", json=profile_payload)
    r = client.get("/api/forms")
    assert r.status_code == 200
    items = r.json()
    assert len(items) == 1
    assert items[0]["id"] == "profile"
    assert items[0]["name"] == "Profile"
    assert items[0]["fieldCount"] == len(profile_payload["fields"])

    r = client.delete("/api/forms/profile")
    assert r.status_code == 200
    assert client.get("/api/forms").json() == []
    assert client.delete("/api/forms/profile").status_code == 404


def test_unknown_form_is_404(client):
    assert client.get("/api/forms/nope").status_code == 404
    assert client.post("/api/forms/nope/evaluate", json={"values": {}}).status_code == 404


def test_initial_record(client, profile_payload):
    client.post("/api/forms", json=profile_payload)
    r = client.get("/api/forms/profile/record")
    assert r.status_code == 200
    assert r.json() == {"country": "ca", "full_name": "", "age": ""}


def test_evaluate_computes_derived_fields(client, profile_payload):
    client.post("/api/forms", json=profile_payload)
    r = client.post("/api/forms/profile/evaluate", json={
        "values": {"first": "Jane", "last": "Doe", "birth": "2000-01-01"},
        "now": "2024-06-15",
    })
    assert r.status_code == 200
    body = r.json()
    assert body["values"]["full_name"] == "Jane Doe"
    assert body["values"]["age"] == 24
    assert body["changed"] is True
    assert body["errors"] == []


def test_evaluate_reports_no_change_for_settled_record(client, profile_payload):
    client.post("/api/forms", json=profile_payload)
    values = {"first": "Jane", "last": "Doe", "full_name": "Jane Doe", "age": ""}
    r = client.post("/api/forms/profile/evaluate", json={"values": values})
    assert r.json()["changed"] is False


def test_evaluate_with_validation(client, profile_payload):
    client.post("/api/forms", json=profile_payload)
    r = client.post("/api/forms/profile/evaluate", json={
        "values": {"first": "  ", "email": "jane@"},
        "validate": True,
    })
    errors = r.json()["errors"]
    assert errors == [
        {"fieldId": "first", "message": "First name is required"},
        {"fieldId": "email", "message": "Email must be a valid email address"},
    ]


def test_evaluate_with_dependency_cycle_is_400(client, profile_payload):
    profile_payload["fields"][2]["derivedConfig"]["parentFields"] = ["age"]
    profile_payload["fields"][4]["derivedConfig"]["parentFields"] = ["full_name"]
    client.post("/api/forms", json=profile_payload)
    r = client.post("/api/forms/profile/evaluate", json={"values": {}, "resolveDependencies": True})
    assert r.status_code == 400
    assert "cycle" in r.json()["detail"]


def test_validate_endpoint(client, profile_payload):
    client.post("/api/forms", json=profile_payload)
    r = client.post("/api/forms/profile/validate", json={"values": {"first": "Jane", "email": "jane@example.com"}})
    assert r.json() == {"valid": True, "errors": []}

    r = client.post("/api/forms/profile/validate", json={"values": {}})
    body = r.json()
    assert body["valid"] is False
    assert [e["fieldId"] for e in body["errors"]] == ["first", "email"]


def test_evaluate_accepts_show_validation_flag(client, profile_payload):
    """The editing surface's own flag name turns validation on as well."""
    client.post("/api/forms", json=profile_payload)
    r = client.post("/api/forms/profile/evaluate", json={
        "values": {"first": ""},
        "showValidation": True,
    })
    assert [e["fieldId"] for e in r.json()["errors"]] == ["first", "email"]

    r = client.post("/api/forms/profile/evaluate", json={"values": {"first": ""}})
    assert r.json()["errors"] == []
