import logging

from flask import Blueprint, g, request

from dropiq.auth.decorators import require_auth, require_role
from dropiq.db.session import get_session
from dropiq.payloads import CampaignDecision, CheckoutRequest
from dropiq.routes.common import arg_int, ok, parse_body
from dropiq.services import campaigns as campaign_service
from dropiq.services.registry import get_services

logger = logging.getLogger(__name__)

campaigns_bp = Blueprint("campaigns", __name__)


@campaigns_bp.route("/campaigns", methods=["GET"])
def list_campaigns():
    session = get_session()
    try:
        result = campaign_service.list_campaigns(
            session,
            status=request.args.get("status") or None,
            tier=request.args.get("tier") or None,
            limit=arg_int("limit", 10, minimum=1, maximum=100),
        )
        return ok(result)
    finally:
        session.close()


@campaigns_bp.route("/campaigns/featured", methods=["GET"])
def featured_campaigns():
    session = get_session()
    try:
        return ok(campaign_service.featured_campaigns(session))
    finally:
        session.close()


@campaigns_bp.route("/campaigns/create-checkout-session", methods=["POST"])
@require_auth
def create_checkout_session():
    body = parse_body(CheckoutRequest)
    submitted_by = body.submitted_by or g.current_user.email or str(g.current_user.id)
    session = get_session()
    try:
        result = campaign_service.create_checkout(
            session, get_services().payments, body.airdrop_id, body.tier, submitted_by
        )
        return ok(result)
    finally:
        session.close()


@campaigns_bp.route("/admin/campaigns", methods=["GET"])
@require_role("admin")
def admin_campaigns():
    session = get_session()
    try:
        result = campaign_service.admin_list(
            session,
            status=request.args.get("status") or None,
            payment_status=request.args.get("paymentStatus") or None,
            page=arg_int("page", 1, minimum=1),
            limit=arg_int("limit", 20, minimum=1, maximum=100),
        )
        return ok(result)
    finally:
        session.close()


@campaigns_bp.route("/admin/campaigns/<int:campaign_id>/approve", methods=["POST"])
@require_role("admin")
def approve_campaign(campaign_id):
    payload = parse_body(CampaignDecision)
    session = get_session()
    try:
        return ok(campaign_service.approve_campaign(session, campaign_id, payload.approved_by, payload.notes))
    finally:
        session.close()


@campaigns_bp.route("/admin/campaigns/<int:campaign_id>/reject", methods=["POST"])
@require_role("admin")
def reject_campaign(campaign_id):
    payload = parse_body(CampaignDecision)
    session = get_session()
    try:
        result = campaign_service.reject_campaign(
            session,
            get_services().payments,
            campaign_id,
            payload.rejected_by,
            notes=payload.notes,
            refund=payload.refund,
        )
        return ok(result)
    finally:
        session.close()
