"""
API tests through FastAPI's TestClient with the in-memory backend and
payment gateway injected into the app factory.
"""

from __future__ import annotations

import io
import json

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient

from storefront import __version__
from storefront.backend.api import company as company_routes
from storefront.backend.api.app import create_app
from storefront.backend.core.dashboard import DashboardStore

WEBHOOK_SECRET = "hook-secret"


@pytest.fixture
def store() -> DashboardStore:
    return DashboardStore()


@pytest.fixture
def client(settings, backend, gateway, store):
    settings["realtime"]["webhook_secret"] = WEBHOOK_SECRET
    app = create_app(settings, backend=backend, gateway=gateway, dashboard=store)
    with TestClient(app) as test_client:
        yield test_client


def auth_header(session) -> dict[str, str]:
    return {"Authorization": f"Bearer {session.access_token}"}


class TestHealthAndErrors:
    def test_health(self, client) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_protected_route_without_token(self, client) -> None:
        response = client.get("/api/cart")
        assert response.status_code == 401
        assert response.json() == {"detail": "Authentication required.", "redirect": "/login"}

    def test_invalid_token(self, client) -> None:
        response = client.get("/api/cart", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401

    def test_unknown_product(self, client) -> None:
        response = client.get("/api/products/missing")
        assert response.status_code == 404
        assert response.json()["detail"] == "Product not found."


class TestAccountRoutes:
    def test_login(self, client, shopper) -> None:
        response = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "secret123"})
        body = response.json()
        assert response.status_code == 200
        assert body["access_token"] == shopper.access_token
        assert body["redirect"] == "/"

    def test_login_failure(self, client, shopper) -> None:
        response = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "nope-nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid login credentials"

    def test_oauth_start_uses_configured_callback(self, client) -> None:
        url = client.get("/api/auth/oauth/google").json()["url"]
        assert "provider=google" in url
        assert "localhost:3000/auth/callback" in url

    def test_profile_and_address(self, client, shopper) -> None:
        profile = client.get("/api/profile", headers=auth_header(shopper)).json()
        assert profile["needs_completion"] is False

        response = client.put(
            "/api/profile/address",
            headers=auth_header(shopper),
            json={
                "profile_name": "Asha",
                "address": {"addressLine1": "3 Lake Rd", "city": "Pune", "state": "MH", "pincode": "411003", "primaryPhone": "9876543210"},
            },
        )
        assert response.status_code == 200
        assert len(response.json()["profile"]["addresses"]) == 2

    def test_address_validation_errors(self, client, shopper) -> None:
        response = client.put(
            "/api/profile/address",
            headers=auth_header(shopper),
            json={"profile_name": "Asha", "address": {"city": "Pune"}},
        )
        assert response.status_code == 422
        assert "pincode" in response.json()["errors"]

    def test_logout_forgets_dashboard_state(self, client, company_user, store) -> None:
        client.get("/api/company/status", headers=auth_header(company_user))
        assert store.company_status("vendor-1") is not None

        response = client.post("/api/auth/logout", headers=auth_header(company_user))

        assert response.status_code == 200
        assert store.company_status("vendor-1") is None


class TestShopRoutes:
    def test_listing_and_filters(self, client, company_user, add_product) -> None:
        add_product(product_name="Deal", original_price=100.0, discount_price=50.0)
        add_product(product_name="Plain", original_price=100.0, discount_price=100.0)

        names = [p["product_name"] for p in client.get("/api/products", params={"filter": "deals"}).json()]

        assert names == ["Deal"]
        assert client.get("/api/products", params={"filter": "bogus"}).status_code == 422

    def test_cart_flow(self, client, shopper, add_product) -> None:
        product = add_product()
        headers = auth_header(shopper)

        added = client.post("/api/cart", headers=headers, json={"product_id": product["id"], "quantity": 2})
        duplicate = client.post("/api/cart", headers=headers, json={"product_id": product["id"]})
        cart = client.get("/api/cart", headers=headers).json()

        assert added.status_code == 201
        assert added.json()["title"] == "Added to cart!"
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"] == "This product is already in your cart!"
        assert cart["total"] == 399.0

        item_id = cart["items"][0]["id"]
        client.patch(f"/api/cart/{item_id}", headers=headers, json={"quantity": 10})
        assert client.get("/api/cart", headers=headers).json()["shipping_fee"] == 0.0

        client.delete(f"/api/cart/{item_id}", headers=headers)
        assert client.get("/api/cart", headers=headers).json()["items"] == []

    def test_favorites_toggle(self, client, shopper, add_product) -> None:
        product = add_product()
        headers = auth_header(shopper)
        assert client.post(f"/api/favorites/{product['id']}/toggle", headers=headers).json() == {"is_favorite": True}
        assert len(client.get("/api/favorites", headers=headers).json()) == 1
        assert client.post(f"/api/favorites/{product['id']}/toggle", headers=headers).json() == {"is_favorite": False}

    def test_reviews(self, client, shopper, add_product) -> None:
        product = add_product()
        headers = auth_header(shopper)
        url = f"/api/products/{product['id']}/reviews"

        assert client.post(url, headers=headers, json={"rating": 4, "comment": "Good"}).status_code == 201
        assert client.post(url, headers=headers, json={"rating": 5}).status_code == 409
        assert client.get(f"{url}/summary").json() == {"count": 1, "average": 4.0}

    def test_checkout(self, client, shopper, gateway, add_product) -> None:
        product = add_product()
        headers = auth_header(shopper)
        client.post("/api/cart", headers=headers, json={"product_id": product["id"]})
        form = {"source": "cart", "user_name": "Asha", "primary_phone": "9876543210", "selected_address_id": "addr-1"}

        payment = client.post("/api/checkout/payment", headers=headers, json=form)
        assert payment.status_code == 200
        assert payment.json()["amount"] == 249.0

        done = client.post("/api/checkout/complete", headers=headers, json={**form, "payment_id": "pi_123"})
        assert done.status_code == 201
        assert done.json()["redirect"] == "/orders"
        replay = client.post("/api/checkout/complete", headers=headers, json={**form, "payment_id": "pi_123"})
        assert replay.status_code == 409

        listed = client.get("/api/orders", headers=headers).json()
        assert len(listed) == 1
        assert listed[0]["items"][0]["product"]["product_name"] == "Millet Flour"
        assert client.get("/api/cart", headers=headers).json()["items"] == []

    def test_payment_failure_is_402(self, client, shopper, gateway, add_product) -> None:
        from storefront.backend.clients import PaymentResult

        gateway.result = PaymentResult(success=False, description="Card declined")
        headers = auth_header(shopper)
        client.post("/api/cart", headers=headers, json={"product_id": add_product()["id"]})

        response = client.post(
            "/api/checkout/complete",
            headers=headers,
            json={"payment_id": "pi_x", "user_name": "Asha", "primary_phone": "98", "selected_address_id": "addr-1"},
        )

        assert response.status_code == 402
        assert response.json()["detail"] == "Card declined"


class TestCompanyRoutes:
    def _form_json(self, **overrides) -> str:
        values = {
            "productName": "Herbal Soap",
            "productDescription": "Neem",
            "hsnCode": "3401",
            "originalPrice": "120",
            "discountPrice": "99",
            "stockQuantity": "40",
            "weight": "0.1",
            "length": "8",
            "width": "5",
            "height": "3",
        }
        values.update(overrides)
        return json.dumps(values)

    def test_add_product_multipart(self, client, backend, company_user) -> None:
        response = client.post(
            "/api/company/products",
            headers=auth_header(company_user),
            data={"data": self._form_json()},
            files=[("images", ("soap photo.png", b"png-bytes", "image/png"))],
        )

        assert response.status_code == 201
        body = response.json()
        assert body["redirect"] == "/company/dashboard/my-products"
        assert body["product"]["is_approved"] is False
        assert body["product"]["product_photo_urls"][0].startswith("images/co-a/soap_photo.png-")
        assert len(backend.storage.objects) == 1

    def test_add_product_validation(self, client, company_user) -> None:
        response = client.post(
            "/api/company/products",
            headers=auth_header(company_user),
            data={"data": self._form_json(hsnCode="")},
        )
        assert response.status_code == 422
        assert set(response.json()["errors"]) == {"hsn_code", "images"}

    def test_add_product_requires_company(self, client, shopper) -> None:
        response = client.post(
            "/api/company/products",
            headers=auth_header(shopper),
            data={"data": self._form_json()},
            files=[("images", ("a.png", b"x", "image/png"))],
        )
        assert response.status_code == 403
        assert response.json()["redirect"] == "/"

    def test_edit_product(self, client, company_user, add_product) -> None:
        product = add_product(product_photo_urls=["images/co-a/a.png", "images/co-a/b.png"])
        headers = auth_header(company_user)
        form = client.get(f"/api/company/products/{product['id']}/form", headers=headers).json()
        assert form["productName"] == "Millet Flour"

        response = client.put(
            f"/api/company/products/{product['id']}",
            headers=headers,
            data={"data": self._form_json(), "removed_image_urls": [form["existingProductPhotoUrls"][0]]},
        )

        assert response.status_code == 200
        assert response.json()["product"]["product_photo_urls"] == ["images/co-a/b.png"]

    def test_draft_round_trip(self, client, company_user) -> None:
        headers = auth_header(company_user)
        saved = client.put("/api/company/products/draft", headers=headers, json={"productName": "Tea", "weightUnit": "g"})
        assert saved.json()["weightUnit"] == "kg"
        assert client.get("/api/company/products/draft", headers=headers).json()["productName"] == "Tea"
        client.delete("/api/company/products/draft", headers=headers)
        assert client.get("/api/company/products/draft", headers=headers).json() is None

    def test_dashboard_is_cached_until_change_notification(self, client, company_user, add_product) -> None:
        add_product()
        headers = auth_header(company_user)

        first = client.get("/api/company/dashboard", headers=headers).json()
        second = client.get("/api/company/dashboard", headers=headers).json()
        assert first["stats"]["totalProducts"] == 1
        assert first["cached"] is False
        assert second["cached"] is True

        queued = client.post(
            "/api/realtime/webhook",
            json={"type": "INSERT", "table": "orders", "schema": "public", "record": {"id": "o1"}},
            headers={"x-webhook-secret": WEBHOOK_SECRET},
        )
        assert queued.status_code == 202
        assert queued.json()["pending"] == {"orders": 1}
        client.app.state.invalidations.flush(force=True)

        assert client.get("/api/company/dashboard", headers=headers).json()["cached"] is False

    def test_oversized_video_is_rejected(self, client, backend, company_user, monkeypatch) -> None:
        monkeypatch.setattr("storefront.backend.core.product_form.MAX_VIDEO_BYTES", 3)

        response = client.post(
            "/api/company/products",
            headers=auth_header(company_user),
            data={"data": self._form_json()},
            files=[
                ("images", ("a.png", b"png", "image/png")),
                ("video", ("big.mp4", b"123456789", "video/mp4")),
            ],
        )

        assert response.status_code == 422
        assert "video" in response.json()["errors"]
        assert backend.storage.objects == {}

    def test_upload_read_stops_past_limit(self) -> None:
        upload = UploadFile(io.BytesIO(b"x" * 100), filename="big.mp4")
        assert company_routes._media(upload, max_bytes=10).size == 11
        assert company_routes._media(UploadFile(io.BytesIO(b"abc"), filename="a.png")).content == b"abc"

    def test_form_options(self, client) -> None:
        options = client.get("/api/company/form/options").json()
        assert options["maxImages"] == 5
        assert "Organic Pet Care" in options["categories"]


class TestWebhookSecret:
    def test_secret_is_checked(self, settings, backend, gateway, store) -> None:
        settings["realtime"]["webhook_secret"] = "s3cret"
        app = create_app(settings, backend=backend, gateway=gateway, dashboard=store)
        event = {"type": "UPDATE", "table": "products"}

        with TestClient(app) as client:
            rejected = client.post("/api/realtime/webhook", json=event, headers={"x-webhook-secret": "wrong"})
            missing = client.post("/api/realtime/webhook", json=event)
            accepted = client.post("/api/realtime/webhook", json=event, headers={"x-webhook-secret": "s3cret"})

        assert rejected.status_code == 401
        assert missing.status_code == 401
        assert accepted.status_code == 202

    def test_unset_secret_refuses_every_call(self, settings, backend, gateway, store, caplog) -> None:
        settings["realtime"]["webhook_secret"] = ""
        app = create_app(settings, backend=backend, gateway=gateway, dashboard=store)
        event = {"type": "UPDATE", "table": "products"}

        with caplog.at_level("WARNING", logger="storefront.backend.api.app"):
            with TestClient(app) as client:
                blank = client.post("/api/realtime/webhook", json=event)
                guessed = client.post("/api/realtime/webhook", json=event, headers={"x-webhook-secret": ""})
                pending = client.app.state.invalidations.pending()

        assert blank.status_code == 401
        assert blank.json()["detail"] == "Webhook secret is not configured."
        assert guessed.status_code == 401
        assert pending == {}
        assert "REALTIME_WEBHOOK_SECRET not set" in caplog.text
