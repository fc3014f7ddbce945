# studygram/services/billing_service.py
"""
Stripe subscription billing.

Handles checkout sessions, the customer portal and webhook processing.
Every Stripe call passes the API key and pinned API version explicitly,
and runs in a worker thread since the SDK is synchronous.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import stripe

from studygram.config.settings import Settings
from studygram.errors import BadRequest, NotFound, ServiceMisconfigured, UpstreamFailure
from studygram.services.lookup import Found
from studygram.services.study_data_service import StudyDataService

logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)


class WebhookSignatureInvalid(Exception):
    pass


def map_stripe_status(stripe_status: Optional[str]) -> str:
    """Map a Stripe subscription status onto active / cancelled / inactive."""
    if stripe_status == "active":
        return "active"
    if stripe_status == "canceled":
        return "cancelled"
    return "inactive"


def _first_price_id(subscription: Dict[str, Any]) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


class BillingService:

    def __init__(
        self,
        settings: Settings,
        study_data: StudyDataService,
        stripe_api: Any = stripe,
    ):
        self.settings = settings
        self.study_data = study_data
        self.stripe = stripe_api

    def _request_opts(self) -> Dict[str, Any]:
        if not self.settings.stripe_secret_key:
            raise ServiceMisconfigured("Stripe secret key not configured")
        return {
            "api_key": self.settings.stripe_secret_key,
            "stripe_version": self.settings.stripe_api_version,
        }

    async def _call_stripe(self, fn: Callable, **params: Any) -> Any:
        opts = self._request_opts()
        try:
            return await asyncio.to_thread(lambda: fn(**params, **opts))
        except Exception as exc:
            logger.exception("Stripe call %s failed: %s", getattr(fn, "__qualname__", fn), exc)
            raise UpstreamFailure(str(exc)) from exc

    # ---------------------------------------------------------------------
    # Checkout & portal
    # ---------------------------------------------------------------------
    async def create_checkout_session(
        self, price_id: Optional[str], user_id: Optional[str]
    ) -> Dict[str, Any]:
        if not price_id or not user_id:
            raise BadRequest("Price ID and User ID are required")

        user_res = await self.study_data.get_user(user_id)
        if not isinstance(user_res, Found):
            raise NotFound("User not found")
        user = user_res.value

        customer_id = user.get("stripe_customer_id")
        if not customer_id:
            customer = await self._call_stripe(
                self.stripe.Customer.create,
                email=user.get("email"),
                metadata={"userId": user["id"]},
            )
            customer_id = customer.id
            update_res = await self.study_data.update_user(
                user["id"], {"stripe_customer_id": customer_id}
            )
            if not update_res.get("ok"):
                logger.warning(
                    "Could not store stripe_customer_id for user=%s: %s",
                    user["id"],
                    update_res.get("error"),
                )

        plan_res = await self.study_data.get_plan_by_price_id(price_id)
        if not isinstance(plan_res, Found):
            raise NotFound("Subscription plan not found")
        plan = plan_res.value

        metadata = {"userId": user["id"], "planName": plan.get("name")}
        base_url = self.settings.app_url
        session = await self._call_stripe(
            self.stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{base_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{base_url}/billing/cancel",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
        logger.info("Checkout session created user=%s plan=%s", user["id"], plan.get("name"))
        return {"sessionId": session.id, "url": session.url}

    async def create_portal_session(
        self, customer_id: Optional[str], return_url: Optional[str] = None
    ) -> Dict[str, Any]:
        if not customer_id:
            raise BadRequest("Customer ID is required")
        session = await self._call_stripe(
            self.stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url or f"{self.settings.app_url}/billing/dashboard",
        )
        return {"url": session.url}

    # ---------------------------------------------------------------------
    # Webhook handling
    # ---------------------------------------------------------------------
    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the signature and return the event as plain nested dicts."""
        if not signature:
            raise BadRequest("No Stripe signature found")
        secret = self.settings.stripe_webhook_secret
        if not secret:
            raise BadRequest("Webhook secret not configured")
        try:
            event = self.stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.error("Webhook signature verification failed: %s", exc)
            raise WebhookSignatureInvalid(str(exc)) from exc
        # stripe.Event is a StripeObject, not a dict
        if isinstance(event, dict):
            return event
        return event.to_dict()

    async def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Dispatch a verified event; returns a dict describing the action taken."""
        event_type = event.get("type", "")
        data_obj = (event.get("data") or {}).get("object") or {}
        logger.info("Processing webhook event: %s", event_type)

        if event_type in SUBSCRIPTION_EVENTS:
            return await self._handle_subscription_change(data_obj)
        if event_type == "invoice.payment_succeeded":
            return await self._handle_invoice_payment_succeeded(data_obj)
        if event_type == "invoice.payment_failed":
            return await self._handle_invoice_payment_failed(data_obj)

        logger.info("Unhandled event type: %s", event_type)
        return {"action": "ignored", "event_type": event_type}

    async def process_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = self.construct_event(payload, signature)
        try:
            await self.handle_event(event)
        except Exception as exc:
            logger.exception("Error processing webhook: %s", exc)
            raise BadRequest(str(exc)) from exc
        return {"received": True}

    async def _user_for_customer(self, customer_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not customer_id:
            return None
        res = await self.study_data.get_user_by_customer_id(customer_id)
        if isinstance(res, Found):
            return res.value
        logger.error("User not found for customer ID: %s", customer_id)
        return None

    async def _handle_subscription_change(self, subscription: Dict[str, Any]) -> Dict[str, Any]:
        user = await self._user_for_customer(subscription.get("customer"))
        if not user:
            return {"action": "skipped", "reason": "no user"}

        price_id = _first_price_id(subscription)
        if not price_id:
            logger.error("No price ID found in subscription")
            return {"action": "skipped", "reason": "no price"}

        plan_res = await self.study_data.get_plan_by_price_id(price_id)
        if not isinstance(plan_res, Found):
            logger.error("Subscription plan not found for price ID: %s", price_id)
            return {"action": "skipped", "reason": "no plan"}
        plan_name = plan_res.value.get("name")

        status = map_stripe_status(subscription.get("status"))
        end_date = None
        period_end = subscription.get("current_period_end")
        if subscription.get("cancel_at_period_end") and period_end:
            end_date = datetime.fromtimestamp(int(period_end), tz=timezone.utc).isoformat()

        res = await self.study_data.update_user(
            user["id"],
            {
                "subscription_plan": plan_name,
                "subscription_status": status,
                "subscription_end_date": end_date,
            },
        )
        if not res.get("ok"):
            logger.error("Error updating user subscription: %s", res.get("error"))
            return {"action": "update_failed", "user_id": user["id"]}

        logger.info("Updated subscription for user %s: %s (%s)", user["id"], plan_name, status)
        return {
            "action": "subscription_updated",
            "user_id": user["id"],
            "plan": plan_name,
            "status": status,
        }

    async def _handle_invoice_payment_succeeded(self, invoice: Dict[str, Any]) -> Dict[str, Any]:
        user = await self._user_for_customer(invoice.get("customer"))
        if not user:
            return {"action": "skipped", "reason": "no user"}

        res = await self.study_data.reset_usage_stats(user["id"])
        if not res.get("ok"):
            logger.error("Error resetting usage stats: %s", res.get("error"))
        logger.info("Reset usage stats for user %s", user["id"])
        return {"action": "usage_reset", "user_id": user["id"]}

    async def _handle_invoice_payment_failed(self, invoice: Dict[str, Any]) -> Dict[str, Any]:
        user = await self._user_for_customer(invoice.get("customer"))
        if not user:
            return {"action": "skipped", "reason": "no user"}

        res = await self.study_data.update_user(user["id"], {"subscription_status": "inactive"})
        if not res.get("ok"):
            logger.error("Error updating subscription status: %s", res.get("error"))
        logger.warning(
            "Set subscription to inactive for user %s due to payment failure", user["id"]
        )
        return {"action": "subscription_inactive", "user_id": user["id"]}
