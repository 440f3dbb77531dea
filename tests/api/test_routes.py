"""HTTP surface: TestClient with the DB, cache, processor and registry overridden."""
from unittest.mock import MagicMock, patch

import pybreaker
import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_processor, get_settlements, get_status_cache
from app.core.config import settings
from app.db.session import get_db
from app.main import app
from app.models.payment import Payment
from app.models.profile import ClientProfile
from app.paywall.cache import StatusCache
from app.services.payments.models import ProcessorStatus

CLIENT = {"X-Client-Id": "c1"}
AIRTEL = {"purpose": "subscription", "method": "mobile_money", "phone": "0977123456", "operator": "airtel"}


@pytest.fixture
def processor(make_processor):
    return make_processor([ProcessorStatus("pending")], reference="ref_mm")


@pytest.fixture
def settlements():
    registry = MagicMock()
    registry.is_running.return_value = False
    registry.cancel.return_value = True
    return registry


@pytest.fixture
def client(session_factory, processor, settlements):
    cache = StatusCache(ttl_seconds=300)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_status_cache] = lambda: cache
    app.dependency_overrides[get_processor] = lambda: processor
    app.dependency_overrides[get_settlements] = lambda: settlements
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_ready(self, client):
        with patch("app.api.routes.health.redis.Redis.from_url") as from_url, patch(
            "app.api.routes.health.get_circuit_breaker", return_value=pybreaker.CircuitBreaker()
        ):
            resp = client.get("/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ready", "payments": "ok"}
        from_url.return_value.ping.assert_called_once()

    def test_not_ready_when_redis_down(self, client):
        with patch("app.api.routes.health.redis.Redis.from_url") as from_url:
            from_url.return_value.ping.side_effect = ConnectionError("refused")
            resp = client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "not_ready"

    def test_metrics(self, client):
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "access_decisions_total" in resp.text


class TestAccess:
    def test_anonymous_access(self, client):
        body = client.get("/access").json()
        assert body["can_view_more"] is True
        assert body["daily_views_limit"] == 3

    def test_fourth_provider_is_forbidden(self, client):
        for provider in ("a", "b", "c"):
            assert client.post(f"/providers/{provider}/view", headers=CLIENT).status_code == 200

        resp = client.post("/providers/d/view", headers=CLIENT)

        assert resp.status_code == 403
        assert resp.json()["reason"] == "quota_exhausted"
        assert client.get("/access", headers=CLIENT).json()["daily_views_count"] == 3
        assert client.post("/providers/a/view", headers=CLIENT).json()["reason"] == "already_viewed"

    def test_contact_locked(self, client):
        assert client.get("/providers/p1/contact", headers=CLIENT).json() == {"provider_id": "p1", "unlocked": False}

    def test_cancel_without_subscription(self, client):
        assert client.post("/subscription/cancel", headers=CLIENT).json() == {"cancelled": False}

    def test_cancel_requires_identity(self, client):
        assert client.post("/subscription/cancel").status_code == 401


class TestPayments:
    def test_requires_identity(self, client):
        assert client.post("/payments", json=AIRTEL).status_code == 401

    def test_mobile_money_starts_background_settlement(self, client, settlements):
        resp = client.post("/payments", json=AIRTEL, headers=CLIENT)

        assert resp.status_code == 201
        body = resp.json()
        assert body["reference"] == "ref_mm"
        assert body["status"] == "waiting_approval"
        assert body["amount"] == 100
        assert body["polling"] is True
        settlements.start.assert_called_once()

    def test_validation_error_is_422(self, client, processor):
        resp = client.post("/payments", json={**AIRTEL, "phone": "0961234567"}, headers=CLIENT)
        assert resp.status_code == 422
        assert resp.json()["field"] == "operator"
        assert processor.initiated == []

    def test_initiation_error_is_502(self, client, processor):
        processor.initiate_error = "Payments are temporarily unavailable"
        resp = client.post("/payments", json=AIRTEL, headers=CLIENT)
        assert resp.status_code == 502
        assert "temporarily unavailable" in resp.json()["detail"]

    def test_card_unlock_is_granted_before_response(self, client, settlements):
        payload = {
            "purpose": "contact_unlock",
            "method": "card",
            "provider_id": "p1",
            "card_number": "4242424242424242",
            "card_expiry": "12/49",
            "card_cvv": "123",
        }
        resp = client.post("/payments", json=payload, headers=CLIENT)

        assert resp.status_code == 201
        assert resp.json()["status"] == "completed"
        assert resp.json()["amount"] == 20
        settlements.start.assert_not_called()
        assert client.get("/providers/p1/contact", headers=CLIENT).json()["unlocked"] is True
        assert client.get("/unlocks", headers=CLIENT).json() == {"provider_ids": ["p1"]}

    def test_get_payment_is_owner_only(self, client):
        client.post("/payments", json=AIRTEL, headers=CLIENT)

        mine = client.get("/payments/ref_mm", headers=CLIENT)
        other = client.get("/payments/ref_mm", headers={"X-Client-Id": "c2"})

        assert mine.status_code == 200
        assert mine.json()["status"] == "pending"
        assert mine.json()["granted"] is False
        assert other.status_code == 404

    def test_list_payments(self, client):
        client.post("/payments", json=AIRTEL, headers=CLIENT)
        body = client.get("/payments", headers=CLIENT).json()
        assert [p["reference"] for p in body] == ["ref_mm"]

    def test_stop_polling(self, client, settlements):
        client.post("/payments", json=AIRTEL, headers=CLIENT)
        resp = client.delete("/payments/ref_mm/poll", headers=CLIENT)
        assert resp.json() == {"reference": "ref_mm", "cancelled": True}
        settlements.cancel.assert_called_once_with("ref_mm")

    def test_stop_polling_unknown(self, client):
        assert client.delete("/payments/nope/poll", headers=CLIENT).status_code == 404

    def test_retry_grant(self, client, session_factory):
        db = session_factory()
        db.add(
            Payment(
                reference="ref_done",
                user_id="c1",
                purpose="referral_access",
                payment_method="mobile_money",
                amount=30,
                status="completed",
            )
        )
        db.commit()
        db.close()

        resp = client.post("/payments/ref_done/grant", headers=CLIENT)

        assert resp.json() == {"reference": "ref_done", "granted": True}
        assert client.get("/referral/access", headers=CLIENT).json()["access_type"] == "payment"

    def test_verify_after_dialog_closed(self, client, processor, settlements):
        client.post("/payments", json=AIRTEL, headers=CLIENT)
        client.delete("/payments/ref_mm/poll", headers=CLIENT)
        processor.statuses = [ProcessorStatus("completed")]

        resp = client.post("/payments/ref_mm/verify", headers=CLIENT)

        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"
        assert resp.json()["granted"] is True
        assert client.get("/access", headers=CLIENT).json()["has_active_subscription"] is True

    def test_verify_is_owner_only(self, client, processor):
        client.post("/payments", json=AIRTEL, headers=CLIENT)
        resp = client.post("/payments/ref_mm/verify", headers={"X-Client-Id": "c2"})
        assert resp.status_code == 404
        assert processor.queries == []


class TestReferral:
    def test_no_access(self, client):
        body = client.get("/referral/access", headers=CLIENT).json()
        assert body["has_access"] is False
        assert body["access_type"] == "none"


class TestAdmin:
    def test_disabled_without_key(self, client):
        with patch.object(settings, "admin_api_key", None):
            assert client.get("/admin/payments").status_code == 403

    def test_wrong_key(self, client):
        with patch.object(settings, "admin_api_key", "secret"):
            assert client.get("/admin/payments", headers={"X-Admin-Key": "nope"}).status_code == 403

    def test_lists_payments_with_actor(self, client, session_factory):
        db = session_factory()
        db.add(ClientProfile(id="cli-1", user_id="c1", name="Chanda"))
        db.commit()
        db.close()
        client.post("/payments", json=AIRTEL, headers=CLIENT)

        with patch.object(settings, "admin_api_key", "secret"):
            resp = client.get("/admin/payments", headers={"X-Admin-Key": "secret"})

        assert resp.status_code == 200
        (row,) = resp.json()
        assert row["user_id"] == "c1"
        assert row["actor"] == {"kind": "client", "id": "cli-1", "name": "Chanda"}
