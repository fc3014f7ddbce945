# studygram/tests/test_billing_service.py
import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from studygram.errors import BadRequest, NotFound, ServiceMisconfigured, UpstreamFailure
from studygram.services.billing_service import (
    BillingService,
    WebhookSignatureInvalid,
    map_stripe_status,
)
from studygram.tests.conftest import make_settings


@pytest.fixture
def billing(settings, study_data, fake_stripe):
    fake_stripe.Customer.create.return_value = SimpleNamespace(id="cus_new")
    fake_stripe.checkout.Session.create.return_value = SimpleNamespace(
        id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1"
    )
    fake_stripe.billing_portal.Session.create.return_value = SimpleNamespace(
        url="https://billing.stripe.com/p/session"
    )
    return BillingService(settings, study_data, fake_stripe)


@pytest.fixture
def plan(fake_db):
    fake_db.seed("subscription_plans", {"name": "Pro", "stripe_price_id": "price_pro", "duration_months": 1})


def test_status_mapping():
    assert map_stripe_status("active") == "active"
    assert map_stripe_status("canceled") == "cancelled"
    assert map_stripe_status("past_due") == "inactive"
    assert map_stripe_status(None) == "inactive"


@pytest.mark.asyncio
async def test_checkout_creates_customer_when_missing(billing, fake_stripe, fake_db, plan):
    fake_db.seed("users", {"id": "u1", "email": "ada@example.com"})
    out = await billing.create_checkout_session("price_pro", "u1")

    assert out == {"sessionId": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}
    customer_kwargs = fake_stripe.Customer.create.call_args.kwargs
    assert customer_kwargs["email"] == "ada@example.com"
    assert customer_kwargs["metadata"] == {"userId": "u1"}
    assert customer_kwargs["api_key"] == "sk_test_stripe"
    assert fake_db.rows("users")[0]["stripe_customer_id"] == "cus_new"

    session_kwargs = fake_stripe.checkout.Session.create.call_args.kwargs
    assert session_kwargs["customer"] == "cus_new"
    assert session_kwargs["mode"] == "subscription"
    assert session_kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
    assert session_kwargs["success_url"] == "https://studygram.test/billing/success?session_id={CHECKOUT_SESSION_ID}"
    assert session_kwargs["subscription_data"] == {"metadata": {"userId": "u1", "planName": "Pro"}}


@pytest.mark.asyncio
async def test_checkout_reuses_existing_customer(billing, fake_stripe, fake_db, plan):
    fake_db.seed("users", {"id": "u1", "email": "a@b.c", "stripe_customer_id": "cus_old"})
    await billing.create_checkout_session("price_pro", "u1")
    fake_stripe.Customer.create.assert_not_called()
    assert fake_stripe.checkout.Session.create.call_args.kwargs["customer"] == "cus_old"


@pytest.mark.asyncio
async def test_checkout_errors(billing, fake_db):
    with pytest.raises(BadRequest):
        await billing.create_checkout_session(None, "u1")
    with pytest.raises(NotFound) as err:
        await billing.create_checkout_session("price_pro", "ghost")
    assert err.value.message == "User not found"

    fake_db.seed("users", {"id": "u1", "email": "a@b.c", "stripe_customer_id": "cus_old"})
    with pytest.raises(NotFound) as err:
        await billing.create_checkout_session("price_missing", "u1")
    assert err.value.message == "Subscription plan not found"


@pytest.mark.asyncio
async def test_stripe_failure_is_upstream_failure(billing, fake_stripe, fake_db, plan):
    fake_db.seed("users", {"id": "u1", "stripe_customer_id": "cus_old"})
    fake_stripe.checkout.Session.create.side_effect = RuntimeError("card_declined")
    with pytest.raises(UpstreamFailure) as err:
        await billing.create_checkout_session("price_pro", "u1")
    assert err.value.message == "card_declined"


@pytest.mark.asyncio
async def test_missing_secret_key(study_data, fake_stripe, fake_db):
    service = BillingService(make_settings(stripe_secret_key=None), study_data, fake_stripe)
    with pytest.raises(ServiceMisconfigured):
        await service.create_portal_session("cus_1")


@pytest.mark.asyncio
async def test_portal_session_default_return_url(billing, fake_stripe):
    out = await billing.create_portal_session("cus_1")
    assert out == {"url": "https://billing.stripe.com/p/session"}
    kwargs = fake_stripe.billing_portal.Session.create.call_args.kwargs
    assert kwargs["return_url"] == "https://studygram.test/billing/dashboard"
    with pytest.raises(BadRequest):
        await billing.create_portal_session(None)


def test_construct_event_checks(billing, fake_stripe):
    with pytest.raises(BadRequest) as err:
        billing.construct_event(b"{}", None)
    assert err.value.message == "No Stripe signature found"

    fake_stripe.Webhook.construct_event.side_effect = stripe.SignatureVerificationError("bad", "t=1,v1=x")
    with pytest.raises(WebhookSignatureInvalid):
        billing.construct_event(b"{}", "t=1,v1=x")


def test_construct_event_without_secret(study_data, fake_stripe):
    service = BillingService(make_settings(stripe_webhook_secret=None), study_data, fake_stripe)
    with pytest.raises(BadRequest) as err:
        service.construct_event(b"{}", "sig")
    assert err.value.message == "Webhook secret not configured"


def _subscription_event(event_type, **sub):
    obj = {
        "customer": "cus_1",
        "status": "active",
        "items": {"data": [{"price": {"id": "price_pro"}}]},
    }
    obj.update(sub)
    return {"type": event_type, "data": {"object": obj}}


@pytest.mark.asyncio
async def test_subscription_updated_sets_plan_and_status(billing, fake_db, plan):
    fake_db.seed("users", {"id": "u1", "stripe_customer_id": "cus_1"})
    out = await billing.handle_event(
        _subscription_event(
            "customer.subscription.updated",
            status="canceled",
            cancel_at_period_end=True,
            current_period_end=1704067200,
        )
    )
    assert out["action"] == "subscription_updated"
    user = fake_db.rows("users")[0]
    assert user["subscription_plan"] == "Pro"
    assert user["subscription_status"] == "cancelled"
    assert user["subscription_end_date"].startswith("2024-01-01T00:00:00")


@pytest.mark.asyncio
async def test_subscription_without_price_or_user_is_skipped(billing, fake_db, plan):
    out = await billing.handle_event(_subscription_event("customer.subscription.created"))
    assert out == {"action": "skipped", "reason": "no user"}

    fake_db.seed("users", {"id": "u1", "stripe_customer_id": "cus_1"})
    out = await billing.handle_event(_subscription_event("customer.subscription.created", items={"data": []}))
    assert out["reason"] == "no price"


@pytest.mark.asyncio
async def test_invoice_events(billing, fake_db):
    fake_db.seed("users", {"id": "u1", "stripe_customer_id": "cus_1", "subscription_status": "active"})
    fake_db.seed("usage_stats", {"user_id": "u1", "ai_queries_used": 1})

    paid = await billing.handle_event({"type": "invoice.payment_succeeded", "data": {"object": {"customer": "cus_1"}}})
    assert paid["action"] == "usage_reset"
    assert fake_db.rows("usage_stats")[0]["ai_queries_used"] == 0

    failed = await billing.handle_event({"type": "invoice.payment_failed", "data": {"object": {"customer": "cus_1"}}})
    assert failed["action"] == "subscription_inactive"
    assert fake_db.rows("users")[0]["subscription_status"] == "inactive"


@pytest.mark.asyncio
async def test_unknown_event_is_ignored(billing):
    out = await billing.handle_event({"type": "charge.refunded", "data": {"object": {}}})
    assert out["action"] == "ignored"


def test_webhook_endpoint(client, fake_stripe):
    fake_stripe.Webhook.construct_event.return_value = {"type": "ping", "data": {"object": {}}}
    r = client.post("/api/billing/webhook", content=b'{"id": "evt_1"}', headers={"stripe-signature": "t=1,v1=abc"})
    assert r.status_code == 200
    assert r.json() == {"received": True}
    args = fake_stripe.Webhook.construct_event.call_args.args
    assert args == (b'{"id": "evt_1"}', "t=1,v1=abc", "whsec_test")


def test_webhook_endpoint_bad_signature(client, fake_stripe):
    fake_stripe.Webhook.construct_event.side_effect = ValueError("Invalid payload")
    r = client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "nope"})
    assert r.status_code == 400
    assert r.text == "Webhook signature verification failed"

    r = client.post("/api/billing/webhook", content=b"{}")
    assert r.status_code == 400
    assert r.json() == {"error": "No Stripe signature found"}


def test_portal_endpoint(client, fake_stripe):
    fake_stripe.billing_portal.Session.create.return_value = SimpleNamespace(url="https://billing.stripe.com/p/x")
    r = client.post("/api/billing/portal-session", json={"customerId": "cus_1", "returnUrl": "https://studygram.test/x"})
    assert r.status_code == 200
    assert r.json() == {"url": "https://billing.stripe.com/p/x"}
    assert client.post("/api/billing/portal-session", json={}).status_code == 400


def _signed(payload: bytes, secret: str = "whsec_test") -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.mark.asyncio
async def test_signed_event_from_real_stripe_sdk_updates_user(settings, study_data, fake_db, plan):
    fake_db.seed("users", {"id": "u1", "stripe_customer_id": "cus_1", "subscription_status": "inactive"})
    payload = json.dumps(
        {
            "id": "evt_1",
            "object": "event",
            "type": "customer.subscription.updated",
            "data": {
                "object": {
                    "id": "sub_1",
                    "object": "subscription",
                    "customer": "cus_1",
                    "status": "active",
                    "cancel_at_period_end": False,
                    "items": {
                        "object": "list",
                        "data": [{"id": "si_1", "object": "subscription_item", "price": {"id": "price_pro", "object": "price"}}],
                    },
                }
            },
        }
    ).encode("utf-8")

    billing = BillingService(settings, study_data, stripe)
    event = billing.construct_event(payload, _signed(payload))
    assert isinstance(event, dict)
    assert event["data"]["object"]["items"]["data"][0]["price"]["id"] == "price_pro"

    assert await billing.process_webhook(payload, _signed(payload)) == {"received": True}
    user = fake_db.rows("users")[0]
    assert user["subscription_plan"] == "Pro"
    assert user["subscription_status"] == "active"


def test_real_sdk_rejects_wrong_secret(settings, study_data):
    payload = b'{"id": "evt_1", "object": "event", "type": "ping", "data": {"object": {}}}'
    billing = BillingService(settings, study_data, stripe)
    with pytest.raises(WebhookSignatureInvalid):
        billing.construct_event(payload, _signed(payload, secret="whsec_other"))
