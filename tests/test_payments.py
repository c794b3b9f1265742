"""
Tests for the Stripe gateway wrapper (Stripe calls are monkeypatched).
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import stripe

from storefront.backend.clients import PaymentPrefill, StripeGateway
from storefront.backend.clients.payments import to_minor_units
from storefront.backend.errors import PaymentFailed


class TestStripeGateway:
    def test_minor_units(self) -> None:
        assert to_minor_units(1099.0) == 109900
        assert to_minor_units(0.29) == 29

    def test_unconfigured_gateway_refuses(self) -> None:
        gateway = StripeGateway(None)
        assert not gateway.configured
        with pytest.raises(PaymentFailed, match="not configured"):
            gateway.create_payment(10.0, "Order", PaymentPrefill(), "ref")

    def test_create_payment(self, monkeypatch) -> None:
        captured = {}

        def fake_create(**kwargs):
            captured.update(kwargs)
            return SimpleNamespace(id="pi_1", client_secret="pi_1_secret")

        monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
        gateway = StripeGateway("sk_test", currency="inr")
        handle = gateway.create_payment(
            1099.0, "Order from organicza", PaymentPrefill(name="Asha", email="a@b.c", contact="98"), "ref-1"
        )

        assert handle.payment_id == "pi_1"
        assert handle.client_secret == "pi_1_secret"
        assert captured["amount"] == 109900
        assert captured["currency"] == "inr"
        assert captured["api_key"] == "sk_test"
        assert captured["metadata"]["order_ref"] == "ref-1"
        assert captured["receipt_email"] == "a@b.c"

    def test_create_payment_records_user(self, monkeypatch) -> None:
        captured = {}
        monkeypatch.setattr(
            stripe.PaymentIntent, "create", lambda **kw: captured.update(kw) or SimpleNamespace(id="pi_1", client_secret="s")
        )
        StripeGateway("sk_test").create_payment(10.0, "Order", PaymentPrefill(), "ref-1", user_id="user-1")
        assert captured["metadata"]["user_id"] == "user-1"

    def test_confirm_success(self, monkeypatch) -> None:
        intent = SimpleNamespace(
            id="pi_1",
            status="succeeded",
            amount=109900,
            currency="inr",
            metadata=SimpleNamespace(order_ref="ref-1", user_id="user-1"),
        )
        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda pid, api_key=None: intent)

        result = StripeGateway("sk_test").confirm("pi_1")

        assert result.success
        assert result.payment_id == "pi_1"
        assert result.order_id == "ref-1"
        assert result.amount_minor == 109900
        assert result.currency == "inr"
        assert result.user_id == "user-1"

    def test_confirm_failure_carries_description(self, monkeypatch) -> None:
        intent = SimpleNamespace(
            id="pi_1",
            status="requires_payment_method",
            metadata=SimpleNamespace(),
            last_payment_error=SimpleNamespace(message="Your card was declined."),
        )
        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", lambda pid, api_key=None: intent)

        result = StripeGateway("sk_test").confirm("pi_1")

        assert not result.success
        assert result.description == "Your card was declined."
