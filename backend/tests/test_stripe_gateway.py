"""
Tests for the Stripe gateway: webhook signature checks and checkout
session parameters. No network calls are made.
"""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from app.core.errors import PaymentGatewayError, SignatureInvalid
from app.infrastructure.stripe_gateway import StripePaymentGateway
from app.services.interfaces.payment_gateway import PaymentEventType

WEBHOOK_SECRET = "whsec_test_secret"


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_event(event_type: str = "checkout.session.completed") -> str:
    return json.dumps({
        "id": "evt_123",
        "type": event_type,
        "data": {"object": {
            "id": "cs_test_abc",
            "metadata": {"purchase_type": "booking", "booking_id": "42", "party_size": "2"},
        }},
    })


@pytest.fixture
def gateway() -> StripePaymentGateway:
    return StripePaymentGateway(
        secret_key="sk_test_123",
        webhook_secret=WEBHOOK_SECRET,
        site_url="https://example.com/",
    )


def test_parse_signed_completed_event(gateway):
    payload = checkout_event()

    event = gateway.parse_event(payload.encode(), sign(payload))

    assert event.id == "evt_123"
    assert event.type == PaymentEventType.COMPLETED
    assert event.reference == "cs_test_abc"
    assert event.metadata["booking_id"] == "42"
    assert event.raw_type == "checkout.session.completed"


@pytest.mark.parametrize("raw_type,expected", [
    ("checkout.session.expired", PaymentEventType.EXPIRED),
    ("payment_intent.created", PaymentEventType.OTHER),
])
def test_event_type_mapping(gateway, raw_type, expected):
    payload = checkout_event(raw_type)
    assert gateway.parse_event(payload.encode(), sign(payload)).type == expected


@pytest.mark.parametrize("signature", [
    None,
    "",
    "garbage",
    "t=1,v1=deadbeef",
])
def test_rejects_missing_or_malformed_signature(gateway, signature):
    with pytest.raises(SignatureInvalid):
        gateway.parse_event(checkout_event().encode(), signature)


def test_rejects_wrong_secret(gateway):
    payload = checkout_event()
    with pytest.raises(SignatureInvalid):
        gateway.parse_event(payload.encode(), sign(payload, secret="whsec_other"))


def test_rejects_tampered_payload(gateway):
    payload = checkout_event()
    signature = sign(payload)
    with pytest.raises(SignatureInvalid):
        gateway.parse_event(payload.replace("42", "43").encode(), signature)


def test_rejects_stale_timestamp(gateway):
    payload = checkout_event()
    with pytest.raises(SignatureInvalid):
        gateway.parse_event(payload.encode(), sign(payload, timestamp=int(time.time()) - 3600))


def test_unconfigured_webhook_secret():
    gateway = StripePaymentGateway(secret_key="sk_test_123", webhook_secret=None, site_url="http://x")
    payload = checkout_event()
    with pytest.raises(SignatureInvalid):
        gateway.parse_event(payload.encode(), sign(payload))


@pytest.mark.asyncio
async def test_create_payable_intent(gateway, monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_new", url="https://checkout.stripe.com/c/pay/cs_test_new")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    intent = await gateway.create_payable_intent(
        amount_cents=9000,
        currency="EUR",
        metadata={"booking_id": "1"},
        description="1 session, 2 people",
        customer_email="ada@example.com",
    )

    assert intent.id == "cs_test_new"
    assert intent.redirect_url.endswith("cs_test_new")
    params = calls[0]
    assert params["api_key"] == "sk_test_123"
    assert params["line_items"][0]["price_data"]["unit_amount"] == 9000
    assert params["line_items"][0]["price_data"]["currency"] == "eur"
    assert params["metadata"] == {"booking_id": "1"}
    assert params["customer_email"] == "ada@example.com"
    assert params["success_url"].startswith("https://example.com/booking/success")
    assert params["expires_at"] >= int(time.time()) + 29 * 60


@pytest.mark.asyncio
async def test_gift_purchase_intent_returns_to_gift_pages(gateway, monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_gift", url="https://checkout.stripe.com/c/pay/cs_test_gift")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)

    await gateway.create_payable_intent(5000, "eur", {"purchase_type": "gift", "code": "ABCD-EFGH"}, "Gift")

    params = calls[0]
    assert params["line_items"][0]["price_data"]["product_data"]["name"] == "Gift certificate"
    assert params["success_url"].startswith("https://example.com/gift-certificates/success")


@pytest.mark.asyncio
async def test_stripe_error_becomes_gateway_error(gateway, monkeypatch):
    def failing_create(**params):
        raise stripe.APIConnectionError("connection refused")

    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)

    with pytest.raises(PaymentGatewayError):
        await gateway.create_payable_intent(9000, "eur", {}, "1 session, 1 person")


@pytest.mark.asyncio
async def test_unconfigured_secret_key():
    gateway = StripePaymentGateway(secret_key=None, webhook_secret=WEBHOOK_SECRET, site_url="http://x")
    with pytest.raises(PaymentGatewayError):
        await gateway.create_payable_intent(9000, "eur", {}, "1 session, 1 person")
