from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tiergate.api.deps import require_gate
from tiergate.main import create_app


class UnreachableDatabase:
    @asynccontextmanager
    async def session(self):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))
        yield  # pragma: no cover

    async def create_all(self) -> None:
        return None

    async def dispose(self) -> None:
        return None


def _headers(tier: str | None = "free", user_id: str = "user-1", **extra: str) -> dict[str, str]:
    headers = {"X-User-Id": user_id, **extra}
    if tier is not None:
        headers["X-User-Tier"] = tier
    return headers


@pytest.fixture
def app(settings, database):
    return create_app(settings, database=database)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_missing_user_is_unauthorised(client):
    response = client.get("/v1/entitlements")

    assert response.status_code == 401
    assert response.json()["detail"] == {"error": "auth_required"}


def test_unknown_tier_is_unprocessable(client):
    response = client.get("/v1/gates/resumes", headers=_headers("pro"))

    assert response.status_code == 422
    assert response.json()["error"] == "unknown_tier"


def test_empty_tier_header_is_not_treated_as_free(client):
    response = client.get("/v1/gates/coverLetters", headers=_headers(""))

    assert response.status_code == 422
    assert response.json()["error"] == "unknown_tier"


def test_missing_tier_defaults_to_free(client):
    response = client.get("/v1/entitlements", headers=_headers(tier=None))

    assert response.status_code == 200
    body = response.json()
    assert body["tier"] == "free"
    assert body["quota"] == 1
    assert body["watermark_required"] is True
    assert body["current_count"] == 0


def test_admit_records_usage_then_returns_payment_required(client):
    first = client.post("/v1/gates/resumes/admit", headers=_headers())
    assert first.status_code == 200
    assert first.json()["allowed"] is True

    second = client.post("/v1/gates/resumes/admit", headers=_headers())
    assert second.status_code == 402
    assert second.json() == {
        "error": "quota_exceeded",
        "feature": "resumes",
        "message": "You've reached your limit of 1 resumes this month. Upgrade to Basic to create more.",
        "upgradeTarget": "basic",
        "currentUsage": 1,
        "limit": 1,
    }

    usage = client.get("/v1/usage/resumes", headers=_headers())
    assert usage.status_code == 200
    assert usage.json()["count"] == 1
    assert usage.json()["limit"] == 1
    assert usage.json()["unlimited"] is False


def test_evaluate_reports_without_consuming(client):
    decision = client.get("/v1/gates/coverLetters", headers=_headers())

    assert decision.status_code == 200
    assert decision.json()["allowed"] is False
    assert decision.json()["reason"] == "flag"
    assert decision.json()["upgrade_target"] == "basic"

    assert client.get("/v1/usage/resumes", headers=_headers()).json()["count"] == 0


def test_flag_and_template_denials_are_forbidden(client):
    flag = client.post("/v1/gates/coverLetters/admit", headers=_headers())
    assert flag.status_code == 403
    assert flag.json()["error"] == "feature_not_allowed"

    template = client.post("/v1/gates/template:premium/admit", headers=_headers("basic"))
    assert template.status_code == 403
    assert template.json()["error"] == "tier_required"
    assert template.json()["upgradeTarget"] == "professional"


def test_admit_amount_is_bounded(client):
    response = client.post("/v1/gates/resumes/admit?amount=0", headers=_headers("basic"))

    assert response.status_code == 422


def test_accept_language_selects_message_locale(client):
    client.post("/v1/gates/resumes/admit", headers=_headers())

    response = client.post(
        "/v1/gates/resumes/admit",
        headers=_headers(**{"Accept-Language": "de-DE,de;q=0.9,en;q=0.5"}),
    )

    assert response.status_code == 402
    assert response.json()["message"].startswith("Sie haben Ihr Limit von 1 Lebensläufe")


def test_require_gate_guards_custom_routes(app):
    @app.post("/resumes", dependencies=[Depends(require_gate("resumes"))])
    async def create_resume():
        return {"created": True}

    client = TestClient(app)

    assert client.post("/resumes", headers=_headers("basic")).json() == {"created": True}
    for _ in range(4):
        client.post("/resumes", headers=_headers("basic"))
    blocked = client.post("/resumes", headers=_headers("basic"))

    assert blocked.status_code == 402
    assert blocked.json()["upgradeTarget"] == "professional"


def test_store_outage_returns_service_unavailable(settings):
    client = TestClient(create_app(settings, database=UnreachableDatabase()))

    admit = client.post("/v1/gates/resumes/admit", headers=_headers())
    assert admit.status_code == 503
    assert admit.json()["error"] == "usage_store_unavailable"

    usage = client.get("/v1/usage/resumes", headers=_headers())
    assert usage.status_code == 503
    assert usage.json()["error"] == "usage_store_unavailable"
