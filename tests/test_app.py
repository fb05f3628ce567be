import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import app as app_module
from db import init_db, make_engine
from settings import settings

from conftest import (
    COMPLIANT_CONTRACT,
    NON_COMPLIANT_CONTRACT,
    TERMINATION,
    VIOLATION_REPLY,
    FakeChatProvider,
)

ANALYST_REPLY = '[{"policyNumber": "POL-001", "violation": "30 days is below 90", "text": "thirty (30) days written notice"}]'

POLICIES_JSON = [
    {"number": "POL-001", "description": TERMINATION.description},
    {"number": "POL-005", "description": "All payments must be in USD", "enabled": False},
]


@pytest.fixture
def fake():
    return FakeChatProvider(analyst_reply=ANALYST_REPLY, verdicts={TERMINATION.description: VIOLATION_REPLY})


@pytest.fixture
def client(fake, monkeypatch):
    engine = make_engine("sqlite:///:memory:")
    init_db(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr(settings, "HISTORY_ENABLED", True)
    monkeypatch.setattr(settings, "HISTORY_MAX_ENTRIES", 2)
    monkeypatch.setattr(settings, "POLICY_TEMPLATES_FILE", None)
    app_module.app.dependency_overrides[app_module.get_db] = override_db
    app_module.app.dependency_overrides[app_module.get_provider_loader] = lambda: (lambda: fake)
    try:
        yield TestClient(app_module.app)
    finally:
        app_module.app.dependency_overrides.clear()
        engine.dispose()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_analyze_contract_flags_violation(client, fake):
    r = client.post("/analyze-contract", json={"contractText": NON_COMPLIANT_CONTRACT, "policies": POLICIES_JSON})
    assert r.status_code == 200
    assert r.json() == {
        "flaggedClauses": [
            {"policyNumber": "POL-001", "violation": "30 days is below 90", "text": "thirty (30) days written notice"}
        ]
    }
    # disabled POL-005 never reached the verifier
    assert len(fake.verifier_calls()) == 1


def test_analyze_contract_compliant(client):
    r = client.post("/analyze-contract", json={
        "contractText": COMPLIANT_CONTRACT,
        "policies": [{"number": "POL-005", "description": "All payments must be in USD"}],
    })
    assert r.status_code == 200
    assert r.json() == {"flaggedClauses": []}


def test_analyze_contract_empty_text_is_400(client, fake):
    r = client.post("/analyze-contract", json={"contractText": "   ", "policies": POLICIES_JSON})
    assert r.status_code == 400
    assert r.json() == {"error": "Contract text is required"}
    assert fake.calls == []


def test_analyze_contract_all_disabled_is_400(client):
    policies = [{"number": "POL-001", "description": "x", "enabled": False}]
    r = client.post("/analyze-contract", json={"contractText": "text", "policies": policies})
    assert r.status_code == 400


def test_analyze_contract_by_template(client, fake):
    r = client.post("/analyze-contract", json={"contractText": NON_COMPLIANT_CONTRACT, "templateId": "minimal"})
    assert r.status_code == 200
    assert len(fake.verifier_calls()) == 3


def test_analyze_contract_unknown_template_is_400(client):
    r = client.post("/analyze-contract", json={"contractText": "text", "templateId": "nope"})
    assert r.status_code == 400
    assert "nope" in r.json()["error"]


def test_unexpected_failure_is_500_with_error_body(client):
    class Broken(FakeChatProvider):
        def chat(self, **kw):
            if "POLICY REQUIREMENT" in kw["messages"][-1].content:
                raise RuntimeError("verifier exploded")
            return "[]"

    app_module.app.dependency_overrides[app_module.get_provider_loader] = lambda: Broken
    r = client.post("/analyze-contract", json={"contractText": "text", "policies": POLICIES_JSON})
    assert r.status_code == 500
    assert r.json() == {"error": "verifier exploded"}


def test_history_is_bounded_and_newest_first(client):
    for name in ("a.txt", "b.txt", "c.txt"):
        client.post("/analyze-contract", json={
            "contractText": NON_COMPLIANT_CONTRACT, "policies": POLICIES_JSON, "contractName": name,
        })
    r = client.get("/history")
    assert r.status_code == 200
    entries = r.json()
    assert [e["contractName"] for e in entries] == ["c.txt", "b.txt"]
    assert entries[0]["flaggedClauses"][0]["policyNumber"] == "POL-001"

    assert len(client.get("/history", params={"limit": 1}).json()) == 1

    r = client.delete("/history")
    assert r.json() == {"deleted": 2}
    assert client.get("/history").json() == []


def test_history_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "HISTORY_ENABLED", False)
    client.post("/analyze-contract", json={"contractText": NON_COMPLIANT_CONTRACT, "policies": POLICIES_JSON})
    assert client.get("/history").json() == []


def test_parse_file_txt(client):
    r = client.post("/parse-file", files={"file": ("contract.txt", b"TERMINATION\n30 days", "text/plain")})
    assert r.status_code == 200
    assert r.json() == {"text": "TERMINATION\n30 days"}


def test_parse_file_rejects_pdf(client):
    r = client.post("/parse-file", files={"file": ("contract.pdf", b"%PDF-1.7", "application/pdf")})
    assert r.status_code == 400
    assert "not yet supported" in r.json()["error"]


def test_parse_file_empty(client):
    r = client.post("/parse-file", files={"file": ("empty.txt", b"  \n ", "text/plain")})
    assert r.status_code == 400


def test_parse_file_missing(client):
    r = client.post("/parse-file")
    assert r.status_code == 400
    assert r.json() == {"error": "No file provided"}


def test_policy_templates(client):
    r = client.get("/policy-templates")
    ids = [t["id"] for t in r.json()]
    assert ids == ["saas-standard", "financial", "healthcare", "enterprise", "minimal"]

    r = client.get("/policy-templates/healthcare")
    assert r.status_code == 200
    assert len(r.json()["policies"]) == 12

    assert client.get("/policy-templates/unknown").status_code == 404


def test_provider_config_error_is_500_with_error_body(client):
    def bad_loader():
        raise ValueError("Unknown provider: foo")

    app_module.app.dependency_overrides[app_module.get_provider_loader] = lambda: bad_loader
    r = client.post("/analyze-contract", json={"contractText": "text", "policies": POLICIES_JSON})
    assert r.status_code == 500
    assert r.json() == {"error": "Unknown provider: foo"}


def test_input_errors_win_over_provider_config_errors(client):
    def bad_loader():
        raise ValueError("Unknown provider: foo")

    app_module.app.dependency_overrides[app_module.get_provider_loader] = lambda: bad_loader
    r = client.post("/analyze-contract", json={"contractText": "  ", "policies": POLICIES_JSON})
    assert r.status_code == 400
    assert r.json() == {"error": "Contract text is required"}
