import json
import logging
from typing import Any, Dict, Optional

import stripe

from dropiq.errors import APIError, BadRequest, ServiceUnavailable

logger = logging.getLogger(__name__)

CAMPAIGN_PRICING = {
    "basic": {"amount": 1000, "name": "Basic", "description": "7 days featured placement", "duration": 7},
    "standard": {
        "amount": 2500,
        "name": "Standard",
        "description": "14 days featured placement + priority support",
        "duration": 14,
    },
    "premium": {
        "amount": 5000,
        "name": "Premium",
        "description": "30 days featured placement + premium placement + analytics",
        "duration": 30,
    },
}

WEBHOOK_TOLERANCE_SECONDS = 300


class PaymentGateway:
    """Stripe Checkout, refunds, billing portal and webhook verification."""

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str], app_url: str):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.app_url = app_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def require_configured(self):
        if not self.configured:
            raise ServiceUnavailable("Payment system is not configured")

    def create_checkout_session(self, airdrop, tier: str, submitted_by: Optional[str] = None):
        self.require_configured()
        pricing = CAMPAIGN_PRICING[tier]
        return stripe.checkout.Session.create(
            api_key=self.secret_key,
            mode="payment",
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": "usd",
                        "product_data": {
                            "name": f"{pricing['name']} Campaign - {airdrop.name}",
                            "description": pricing["description"],
                        },
                        "unit_amount": pricing["amount"],
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{self.app_url}/promote/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.app_url}/promote/cancel",
            metadata={"airdropId": str(airdrop.id), "tier": tier, "submittedBy": submitted_by or "anonymous"},
        )

    def retrieve_session(self, session_id: str):
        self.require_configured()
        return stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)

    def refund(self, payment_intent: str):
        self.require_configured()
        return stripe.Refund.create(
            api_key=self.secret_key,
            payment_intent=payment_intent,
            reason="requested_by_customer",
        )

    def create_portal_session(self, customer_id: str):
        self.require_configured()
        return stripe.billing_portal.Session.create(
            api_key=self.secret_key,
            customer=customer_id,
            return_url=f"{self.app_url}/pricing",
        )

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe-Signature header and return the event as plain JSON data."""
        self.require_configured()
        if not signature:
            raise BadRequest("Missing stripe signature")
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not configured")
            raise APIError("Webhook secret not configured", status_code=500)
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS)
        except (stripe.SignatureVerificationError, ValueError) as exc:
            # ValueError covers bodies that are not UTF-8 or not JSON
            logger.warning("Webhook signature verification failed: %s", exc)
            raise BadRequest("Invalid signature")
        # the verified body is handed on as plain dicts rather than StripeObject wrappers
        return json.loads(payload)
