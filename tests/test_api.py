import uuid

import pytest
from fastapi.testclient import TestClient

from main import app
from models import utcnow


@pytest.fixture(scope="module")
def client():
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def business(client):
    resp = client.post("/api/businesses", json={
        "name": f"Shop {uuid.uuid4().hex[:8]}",
        "type": "RETAIL",
        "size": "SMALL",
        "user_id": f"user-{uuid.uuid4().hex[:8]}",
    })
    assert resp.status_code == 201
    return resp.json()


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_create_and_fetch_business(client, business):
    assert business["subscription"]["plan"] == "FREE"
    resp = client.get(f"/api/businesses/{business['id']}")
    assert resp.status_code == 200
    assert resp.json()["name"] == business["name"]
    listed = client.get(f"/api/businesses/user/{business['user_id']}").json()
    assert [b["id"] for b in listed] == [business["id"]]


def test_duplicate_business_is_conflict(client, business):
    resp = client.post("/api/businesses", json={
        "name": business["name"],
        "type": "SERVICE",
        "size": "MICRO",
        "user_id": business["user_id"],
    })
    assert resp.status_code == 409
    body = resp.json()
    assert body["status"] == 409
    assert body["error"]["code"] == "CONFLICT"
    assert body["error"]["message"] == "Business with this name already exists"


def test_invalid_body_is_400(client):
    resp = client.post("/api/businesses", json={"name": "A", "type": "RETAIL", "size": "SMALL", "user_id": "u"})
    assert resp.status_code == 400
    assert resp.json()["error"]["message"].startswith("name:")


def test_unknown_business_and_route(client):
    resp = client.get("/api/businesses/987654")
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Business not found"

    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


def test_request_id_is_echoed(client):
    resp = client.get("/api/businesses/987654", headers={"X-Request-ID": "abc123"})
    assert resp.json()["error"]["code"] == "REQ_abc123"


def test_ledger_and_summary(client, business):
    today = utcnow().replace(microsecond=0)
    for type_, amount in (("REVENUE", 1000), ("EXPENSE", 800)):
        resp = client.post("/api/financials", json={
            "business_id": business["id"],
            "type": type_,
            "amount": amount,
            "currency": "USD",
            "date": today.isoformat(),
            "category": "General",
        })
        assert resp.status_code == 201

    summary = client.get(f"/api/financials/summary/{business['id']}", params={"months": 1}).json()
    assert summary["total_revenue"] == 1000
    assert summary["monthly_metrics"][0]["profit"] == 200

    resp = client.get(f"/api/financials/summary/{business['id']}", params={"months": 61})
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Invalid months value. Must be between 1 and 60"

    insights = client.get(f"/api/financials/insights/{business['id']}").json()
    assert insights["performance"]["profit_margin"] == pytest.approx(20.0)

    records = client.get(f"/api/financials/business/{business['id']}", params={
        "start_date": "2000-01-01T00:00:00",
        "end_date": "2100-01-01T00:00:00",
    }).json()
    assert len(records) == 2


def test_negative_amount_is_rejected(client, business):
    resp = client.post("/api/financials", json={
        "business_id": business["id"],
        "type": "REVENUE",
        "amount": -1,
        "currency": "USD",
        "date": "2024-01-01T00:00:00",
        "category": "General",
    })
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "amount: Amount must be greater than 0"


def test_advice_flow(client, business):
    generated = client.post(f"/api/advice/generate/{business['id']}")
    assert generated.status_code == 201
    advice = generated.json()
    assert advice

    advice_id = advice[0]["id"]
    resp = client.patch(f"/api/advice/{advice_id}/status", json={"status": "IMPLEMENTED"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "IMPLEMENTED"
    resp = client.patch(f"/api/advice/{advice_id}/status", json={"status": "DISMISSED"})
    assert resp.status_code == 409

    page = client.get(f"/api/advice/implemented/{business['id']}", params={"page": 1, "limit": 10}).json()
    assert page["pagination"]["total"] == 1
    effectiveness = client.get(f"/api/advice/effectiveness/{business['id']}").json()
    assert effectiveness["effectiveness"] > 0
    assert client.get(f"/api/advice/trends/{business['id']}").status_code == 200

    catalog = client.post(f"/api/advice/catalog/{business['id']}").json()
    assert len(catalog) == 5
    found = client.get(f"/api/advice/search/{business['id']}", params={"q": "loyalty"}).json()
    assert [a["title"] for a in found] == ["Implement customer retention program"]


def test_reports(client, business):
    resp = client.post(f"/api/analytics/reports/{business['id']}", json={"include_analytics": True})
    assert resp.status_code == 200
    assert resp.json()["analytics"] is not None
    history = client.get(f"/api/analytics/reports/{business['id']}/history", params={"limit": 5}).json()
    assert len(history) == 1

    resp = client.get(f"/api/analytics/{business['id']}/GROWTH_METRICS", params={"period": "2000-01-01T00:00:00"})
    assert resp.status_code == 200
    assert len(resp.json()["monthly_growth"]) == 12

    resp = client.get(f"/api/analytics/{business['id']}/PERFORMANCE_KPI", params={"period": "2000-01-01T00:00:00"})
    assert resp.status_code == 200
    assert set(resp.json()) == {"profit_margin", "revenue_growth", "expense_ratio"}


def test_currencies(client):
    codes = [c["code"] for c in client.get("/api/currencies").json()]
    assert "USD" in codes
    assert "DEM" not in codes
    assert client.get("/api/currencies/historical").status_code == 200
    assert client.get("/api/currencies/gbp").json()["code"] == "GBP"
    assert client.get("/api/currencies/ABC").status_code == 404
    assert client.post("/api/currencies/refresh").json()["updated"] == 7


def test_documents(client, business):
    base = f"/api/businesses/{business['id']}/documents"
    resp = client.post(base, files={"file": ("invoice.pdf", b"%PDF-1.4", "application/pdf")})
    assert resp.status_code == 201
    document = resp.json()

    download = client.get(f"{base}/{document['id']}/download")
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4"

    assert client.delete(f"{base}/{document['id']}").status_code == 204
    assert client.get(base).json() == []

    empty = client.post(base, files={"file": ("empty.pdf", b"", "application/pdf")})
    assert empty.status_code == 400


def test_download_with_missing_blob_is_404(client, business):
    base = f"/api/businesses/{business['id']}/documents"
    document = client.post(base, files={"file": ("invoice.pdf", b"%PDF-1.4", "application/pdf")}).json()
    client.app.state.services.business.storage.remove(document["file_path"])

    resp = client.get(f"{base}/{document['id']}/download")
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Document file not found"


def test_delete_business(client, business):
    assert client.delete(f"/api/businesses/{business['id']}").status_code == 204
    assert client.get(f"/api/businesses/{business['id']}").status_code == 404


def test_app_password(client, monkeypatch):
    monkeypatch.setenv("APP_PASSWORD", "s3cret")
    resp = client.get("/api/currencies")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "UNAUTHORIZED"
    assert client.get("/api/currencies", headers={"X-App-Password": "s3cret"}).status_code == 200
