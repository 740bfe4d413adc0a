import logging

from flask import Blueprint, g, jsonify, request

from dropiq.auth.decorators import require_auth
from dropiq.db.session import get_session
from dropiq.routes.common import ok
from dropiq.services import campaigns as campaign_service
from dropiq.services.registry import get_services

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/stripe/webhook", methods=["POST"])
def stripe_webhook():
    # Signature is computed over the raw body; do not parse JSON first
    event = get_services().payments.construct_event(request.get_data(), request.headers.get("Stripe-Signature"))
    logger.info("Stripe event received: %s", event.get("type"))
    session = get_session()
    try:
        campaign_service.handle_webhook_event(session, event)
    finally:
        session.close()
    return jsonify({"received": True})


@payments_bp.route("/subscriptions/portal", methods=["POST"])
@require_auth
def subscription_portal():
    gateway = get_services().payments
    gateway.require_configured()
    session = get_session()
    try:
        return ok(campaign_service.create_portal_session(session, gateway, g.current_user.id))
    finally:
        session.close()
