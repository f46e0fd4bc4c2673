"""
Tests for API route endpoints.

Tests: health, auth flow with rate limiting, role and account-status guards,
error envelopes, signed payment callbacks, catalogue, order placement
through delivery, admin approval and intervention, notifications inbox.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import json

import pytest

from config import settings
from services import payment_service
from tests.conftest import create_account


REGISTER_BODY = {
    "firstName": "Chidi",
    "lastName": "Eze",
    "email": "chidi@fuelgo.test",
    "password": "secret123",
    "phone": "+2348011112222",
}


def _order_body(vendor, product, quantity=10):
    return {
        "vendorId": vendor.id,
        "items": [{"productId": product.id, "quantity": quantity}],
        "deliveryAddress": {
            "street": "12 Admiralty Way",
            "city": "Lekki",
            "state": "Lagos",
            "coordinates": {"lat": 6.4474, "lng": 3.4723},
        },
        "paymentMethod": "cash",
    }


class TestHealthEndpoint:
    """Tests for GET /api/health."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_health_returns_200(self, client):
        response = await client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["database"] == "connected"
        assert data["environment"] == "test"
        assert "activeConnections" in data["realtime"]


class TestAuthEndpoints:
    """Tests for /api/auth/*."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_register_then_login_after_approval(self, client, admin_user, auth_headers):
        response = await client.post("/api/auth/register", json=REGISTER_BODY)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["status"] == "pending"
        assert body["data"]["token"]

        response = await client.post(
            "/api/auth/login", json={"email": "chidi@fuelgo.test", "password": "secret123"},
        )
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Account pending approval"

        response = await client.post(f"/api/admin/users/{user['id']}/approve", headers=auth_headers(admin_user))
        assert response.status_code == 200
        assert response.json()["data"]["user"]["status"] == "active"

        response = await client.post(
            "/api/auth/login", json={"email": "CHIDI@fuelgo.test", "password": "secret123"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["expiresInSeconds"] == settings.jwt_access_ttl_minutes * 60

        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert response.status_code == 200
        assert response.json()["data"]["email"] == "chidi@fuelgo.test"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_duplicate_registration_envelope(self, client, customer_user):
        body = dict(REGISTER_BODY, email=customer_user.email)
        response = await client.post("/api/auth/register", json=body)
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "validation"
        assert error["message"] == "User with this email already exists"
        assert error["details"]["field"] == "email"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_login_rate_limited(self, client, customer_user):
        for _ in range(settings.login_rate_limit):
            response = await client.post(
                "/api/auth/login", json={"email": customer_user.email, "password": "wrong"},
            )
            assert response.status_code == 400

        response = await client.post(
            "/api/auth/login", json={"email": customer_user.email, "password": "secret123"},
        )
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "ratelimit"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert int(response.headers["Retry-After"]) >= 1

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_change_password(self, client, customer_user, auth_headers):
        response = await client.post(
            "/api/auth/change-password",
            json={"currentPassword": "secret123", "newPassword": "brandnew456"},
            headers=auth_headers(customer_user),
        )
        assert response.status_code == 200

        response = await client.post(
            "/api/auth/login", json={"email": customer_user.email, "password": "brandnew456"},
        )
        assert response.status_code == 200


class TestGuards:
    """Authentication and role checks."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/orders")
        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_wrong_role(self, client, vendor_user, auth_headers):
        response = await client.get("/api/admin/users", headers=auth_headers(vendor_user))
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "permissiondenied"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_schema_validation_envelope(self, client, customer_user, auth_headers):
        response = await client.post("/api/orders", json={"items": []}, headers=auth_headers(customer_user))
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "validation_error"
        assert isinstance(error["details"], list)

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_suspended_token_refused(self, client, db_session, customer_user, vendor, product, auth_headers):
        headers = auth_headers(customer_user)
        customer_user.status = "suspended"
        await db_session.commit()

        response = await client.post("/api/orders", json=_order_body(vendor, product), headers=headers)
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Account has been suspended"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_pending_token_refused(self, client):
        response = await client.post("/api/auth/register", json=REGISTER_BODY)
        token = response.json()["data"]["token"]

        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Account pending approval"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_rejected_token_carries_reason(self, client, db_session, vendor_user, auth_headers):
        vendor_user.status = "rejected"
        vendor_user.rejection_reason = "Incomplete documents"
        await db_session.commit()

        response = await client.get("/api/vendor/profile", headers=auth_headers(vendor_user))
        assert response.status_code == 403
        assert response.json()["error"]["details"] == {"reason": "Incomplete documents"}


class TestPaymentCallback:
    """POST /api/payments/verify only trusts signed gateway callbacks."""

    async def _reference(self, client, customer_user, place_order, auth_headers):
        order = await place_order(payment_method="card")
        response = await client.post(
            "/api/payments/initialize", json={"orderId": order.id}, headers=auth_headers(customer_user),
        )
        assert response.status_code == 200
        return order, response.json()["data"]["reference"]

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_signed_callback_pays_order(self, client, customer_user, place_order, auth_headers):
        order, reference = await self._reference(client, customer_user, place_order, auth_headers)
        body = json.dumps({"reference": reference, "status": "success"}).encode()

        response = await client.post(
            "/api/payments/verify",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Payment-Signature": payment_service.sign_callback(body, settings.payment_webhook_secret),
            },
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "success"

        response = await client.get(f"/api/orders/{order.id}", headers=auth_headers(customer_user))
        assert response.json()["data"]["paymentStatus"] == "paid"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unsigned_callback_refused(self, client, customer_user, place_order, auth_headers):
        order, reference = await self._reference(client, customer_user, place_order, auth_headers)

        response = await client.post("/api/payments/verify", json={"reference": reference, "status": "success"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

        response = await client.get(f"/api/orders/{order.id}", headers=auth_headers(customer_user))
        assert response.json()["data"]["paymentStatus"] == "pending"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_forged_signature_refused(self, client, customer_user, place_order, auth_headers):
        _, reference = await self._reference(client, customer_user, place_order, auth_headers)
        body = json.dumps({"reference": reference, "status": "success"}).encode()

        response = await client.post(
            "/api/payments/verify",
            content=body,
            headers={
                "Content-Type": "application/json",
                "X-Payment-Signature": payment_service.sign_callback(body, "guessed-secret"),
            },
        )
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid payment signature"

class TestCatalogue:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_public_listing(self, client, vendor, product):
        response = await client.get("/api/products", params={"type": "PMS"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["pagination"]["total"] == 1
        assert data["products"][0]["pricePerUnit"] == 600.0

        response = await client.get(f"/api/vendors/{vendor.id}/products")
        assert response.status_code == 200
        assert [p["id"] for p in response.json()["data"]] == [product.id]


class TestOrderEndpoints:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_place_and_cancel(self, client, customer_user, vendor, product, auth_headers):
        headers = auth_headers(customer_user)
        response = await client.post("/api/orders", json=_order_body(vendor, product), headers=headers)
        assert response.status_code == 201
        order = response.json()["data"]["order"]
        assert order["status"] == "pending"
        assert order["totalAmount"] == 6500.0

        response = await client.get("/api/orders", headers=headers)
        assert response.json()["data"]["pagination"]["total"] == 1

        response = await client.post(f"/api/orders/{order['id']}/cancel", json={"reason": "Wrong address"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["order"]["cancellationReason"] == "Wrong address"
        assert product.available_qty == 1000.0

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_summary(self, client, customer_user, vendor, product, auth_headers):
        response = await client.post(
            "/api/orders/summary",
            json={"vendorId": vendor.id, "items": [{"productId": product.id, "quantity": 10}]},
            headers=auth_headers(customer_user),
        )
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 6500.0

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_bad_coordinates(self, client, customer_user, vendor, product, auth_headers):
        body = _order_body(vendor, product)
        body["deliveryAddress"]["coordinates"] = {"lat": 120, "lng": 3.4}
        response = await client.post("/api/orders", json=body, headers=auth_headers(customer_user))
        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "lat"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_vendor_to_driver_delivery(self, client, customer_user, vendor_user, driver, place_order, auth_headers):
        order = await place_order()

        response = await client.patch(
            f"/api/vendor/orders/{order.id}/status", json={"status": "accepted"}, headers=auth_headers(vendor_user),
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "accepted"

        response = await client.post(
            f"/api/vendor/orders/{order.id}/assign-driver", json={"driverId": driver.id},
            headers=auth_headers(vendor_user),
        )
        assert response.status_code == 200
        assert response.json()["data"]["order"]["status"] == "assigned"

        driver_headers = auth_headers(driver.user)
        for status in ("picked_up", "in_transit"):
            response = await client.patch(
                f"/api/driver/deliveries/{order.id}/status", json={"status": status}, headers=driver_headers,
            )
            assert response.status_code == 200, response.text

        response = await client.post(f"/api/driver/deliveries/{order.id}/complete", headers=driver_headers)
        assert response.status_code == 200
        delivered = response.json()["data"]["order"]
        assert delivered["status"] == "delivered"
        assert delivered["paymentStatus"] == "paid"

        response = await client.get("/api/notifications", headers=auth_headers(customer_user))
        assert response.status_code == 200
        assert response.json()["data"]["total"] >= 4

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_invalid_transition_envelope(self, client, vendor_user, place_order, auth_headers):
        order = await place_order()
        response = await client.patch(
            f"/api/vendor/orders/{order.id}/status", json={"status": "delivered"}, headers=auth_headers(vendor_user),
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "invalidtransition"
        assert error["details"] == {"from": "pending", "to": "delivered"}

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_customer_cannot_read_foreign_order(self, client, db_session, place_order, auth_headers):
        order = await place_order()
        stranger = await create_account(
            db_session, role="customer", email="stranger@fuelgo.test", phone="+2348000000099",
        )
        response = await client.get(f"/api/orders/{order.id}", headers=auth_headers(stranger))
        assert response.status_code == 404


class TestAdminEndpoints:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_intervene_reason_too_short(self, client, admin_user, place_order, auth_headers):
        order = await place_order()
        response = await client.post(
            f"/api/admin/orders/{order.id}/intervene",
            json={"action": "force_cancel", "reason": "short"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 422

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_force_cancel(self, client, admin_user, place_order, product, auth_headers):
        order = await place_order(quantity=100)
        response = await client.post(
            f"/api/admin/orders/{order.id}/intervene",
            json={"action": "force_cancel", "reason": "Customer unreachable for two hours"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 200
        assert product.available_qty == 1000.0

        response = await client.get("/api/admin/orders/analytics", headers=auth_headers(admin_user))
        assert response.json()["data"]["cancelledOrders"] == 1

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_user_export_csv(self, client, admin_user, customer_user, auth_headers):
        response = await client.get("/api/admin/users/export", params={"format": "csv"}, headers=auth_headers(admin_user))
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "ada@fuelgo.test" in response.text

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_delete_self_protected_admin(self, client, admin_user, auth_headers):
        response = await client.delete(f"/api/admin/users/{admin_user.id}", headers=auth_headers(admin_user))
        assert response.status_code == 403
