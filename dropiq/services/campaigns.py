import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, select

from dropiq.errors import BadRequest, Conflict, NotFound
from dropiq.models import Airdrop, Campaign, User
from dropiq.models.base import as_utc, utcnow
from dropiq.models.campaign import ACTIVE_CAMPAIGN_STATUSES, TIER_VALUES
from dropiq.serializers import airdrop_to_dict, campaign_to_dict
from dropiq.services.payments import CAMPAIGN_PRICING

logger = logging.getLogger(__name__)

TIER_RANK = {"premium": 3, "standard": 2, "basic": 1}


def _get_campaign(session, campaign_id: int) -> Campaign:
    campaign = session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound("Campaign not found")
    return campaign


def create_checkout(session, gateway, airdrop_id: Optional[int], tier: Optional[str], submitted_by: Optional[str] = None):
    """Open a Stripe Checkout session for a featured placement and record the pending campaign."""
    gateway.require_configured()
    if not airdrop_id or not tier:
        raise BadRequest("Missing required fields: airdropId, tier")
    if tier not in TIER_VALUES:
        raise BadRequest("Invalid tier. Must be: basic, standard, or premium")

    airdrop = session.get(Airdrop, airdrop_id)
    if airdrop is None:
        raise NotFound("Airdrop not found")

    now = utcnow()
    active = session.execute(
        select(Campaign).where(
            Campaign.airdrop_id == airdrop.id,
            Campaign.status.in_(ACTIVE_CAMPAIGN_STATUSES),
        )
    ).scalars().all()
    if any(c.end_date is None or as_utc(c.end_date) > now for c in active):
        raise Conflict("This airdrop already has an active campaign")

    pricing = CAMPAIGN_PRICING[tier]
    checkout = gateway.create_checkout_session(airdrop, tier, submitted_by)

    campaign = Campaign(
        airdrop_id=airdrop.id,
        tier=tier,
        amount=pricing["amount"],
        currency="usd",
        stripe_session_id=checkout["id"],
        start_date=now,
        end_date=now + timedelta(days=pricing["duration"]),
        submitted_by=submitted_by,
        status="pending",
        payment_status="pending",
    )
    session.add(campaign)
    session.commit()
    logger.info("Checkout session %s created for airdrop %s (%s)", checkout["id"], airdrop.slug, tier)
    return {
        "sessionId": checkout["id"],
        "url": checkout.get("url"),
        "campaign": {
            "id": campaign.id,
            "tier": campaign.tier,
            "amount": campaign.amount,
            "endDate": campaign.end_date.isoformat(),
        },
    }


def list_campaigns(session, status: Optional[str] = None, tier: Optional[str] = None, limit: int = 10):
    stmt = select(Campaign)
    if status:
        stmt = stmt.where(Campaign.status == status)
    if tier:
        stmt = stmt.where(Campaign.tier == tier)
    stmt = stmt.order_by(Campaign.created_at.desc()).limit(limit)
    campaigns = session.execute(stmt).scalars().all()
    return [campaign_to_dict(c, include_airdrop=True) for c in campaigns]


def featured_campaigns(session):
    now = utcnow()
    rows = session.execute(
        select(Campaign).where(
            Campaign.payment_status == "paid",
            Campaign.status.in_(("paid", "approved")),
        )
    ).scalars().all()
    live = [c for c in rows if c.end_date is not None and as_utc(c.end_date) > now]
    live.sort(key=lambda c: (TIER_RANK.get(c.tier, 0), as_utc(c.created_at)), reverse=True)
    campaigns = [
        {
            "id": c.id,
            "tier": c.tier,
            "endDate": as_utc(c.end_date).isoformat(),
            "airdrop": airdrop_to_dict(c.airdrop),
        }
        for c in live
    ]
    return {"campaigns": campaigns, "total": len(campaigns)}


def admin_list(session, status: Optional[str] = None, payment_status: Optional[str] = None, page: int = 1, limit: int = 20):
    page = max(page, 1)
    filters = []
    if status:
        filters.append(Campaign.status == status)
    if payment_status:
        filters.append(Campaign.payment_status == payment_status)

    total = session.execute(select(func.count(Campaign.id)).where(*filters)).scalar_one()
    campaigns = session.execute(
        select(Campaign)
        .where(*filters)
        .order_by(Campaign.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return {
        "campaigns": [campaign_to_dict(c, include_airdrop=True) for c in campaigns],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


def approve_campaign(session, campaign_id: int, approved_by: Optional[str], notes: Optional[str] = None):
    if not approved_by:
        raise BadRequest("approvedBy is required")
    campaign = _get_campaign(session, campaign_id)
    campaign.status = "approved"
    campaign.approved_at = utcnow()
    campaign.approved_by = approved_by
    if notes:
        campaign.notes = notes
    session.commit()
    logger.info("Campaign %s approved by %s", campaign.id, approved_by)
    return campaign_to_dict(campaign, include_airdrop=True)


def reject_campaign(session, gateway, campaign_id: int, rejected_by: Optional[str], notes: Optional[str] = None, refund: bool = False):
    """Reject a campaign, refunding the payment first when asked and possible.

    A failed refund is logged and the rejection still goes through.
    """
    if not rejected_by:
        raise BadRequest("rejectedBy is required")
    campaign = _get_campaign(session, campaign_id)

    refund_result = None
    if refund and campaign.payment_status == "paid" and campaign.stripe_session_id:
        try:
            checkout = gateway.retrieve_session(campaign.stripe_session_id)
            payment_intent = checkout.get("payment_intent")
            if payment_intent:
                stripe_refund = gateway.refund(payment_intent)
                refund_result = {
                    "id": stripe_refund["id"],
                    "amount": stripe_refund.get("amount"),
                    "status": stripe_refund.get("status"),
                }
                logger.info("Refund %s issued for campaign %s", stripe_refund["id"], campaign.id)
        except Exception as exc:
            logger.error("Refund failed for campaign %s: %s", campaign.id, exc)

    campaign.status = "rejected"
    campaign.rejected_at = utcnow()
    campaign.rejected_by = rejected_by
    if notes:
        campaign.notes = notes
    if refund_result:
        campaign.payment_status = "refunded"
        campaign.extra = {
            **(campaign.extra or {}),
            "refundId": refund_result["id"],
            "refundAmount": refund_result["amount"],
        }
    session.commit()
    logger.info("Campaign %s rejected by %s", campaign.id, rejected_by)
    return {"campaign": campaign_to_dict(campaign, include_airdrop=True), "refund": refund_result}


def create_portal_session(session, gateway, user_id: int):
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if not user.stripe_customer_id:
        raise NotFound("No active subscription found")
    portal = gateway.create_portal_session(user.stripe_customer_id)
    return {"url": portal["url"]}


# --- webhook -----------------------------------------------------------------


def _campaign_by_session(session, stripe_session_id: str) -> Optional[Campaign]:
    return session.execute(
        select(Campaign).where(Campaign.stripe_session_id == stripe_session_id)
    ).scalar_one_or_none()


def _on_checkout_completed(session, obj: Dict[str, Any]):
    metadata = obj.get("metadata") or {}
    if not metadata.get("airdropId") or not metadata.get("tier"):
        logger.error("Missing metadata in session: %s", obj.get("id"))
        return
    campaign = _campaign_by_session(session, obj["id"])
    if campaign is None:
        logger.error("No campaign found for checkout session %s", obj["id"])
        return
    campaign.payment_status = "paid"
    campaign.status = "paid"
    campaign.extra = {
        "stripeCustomerId": obj.get("customer"),
        "stripePaymentIntentId": obj.get("payment_intent"),
        **metadata,
    }
    airdrop = campaign.airdrop
    if airdrop.status == "pending":
        logger.info("Prioritizing vetting for paid campaign: %s", airdrop.slug)
        airdrop.extra = {
            **(airdrop.extra or {}),
            "paidCampaignId": campaign.id,
            "priority": "high",
            "submittedVia": "marketplace",
        }
    session.commit()
    logger.info("Campaign payment completed: %s for airdrop %s", campaign.id, airdrop.name)


def _on_checkout_expired(session, obj: Dict[str, Any]):
    campaign = _campaign_by_session(session, obj["id"])
    if campaign is None:
        logger.warning("Expired checkout session %s has no campaign", obj["id"])
        return
    campaign.payment_status = "failed"
    campaign.status = "rejected"
    campaign.notes = "Payment session expired"
    session.commit()
    logger.info("Checkout session expired: %s", obj["id"])


def _on_invoice_succeeded(session, obj: Dict[str, Any]):
    campaigns = session.execute(
        select(Campaign).where(Campaign.stripe_invoice_id == obj["id"])
    ).scalars().all()
    for campaign in campaigns:
        campaign.payment_status = "paid"
        campaign.status = "paid"
    session.commit()
    logger.info("Invoice payment succeeded: %s", obj["id"])


def _on_invoice_failed(session, obj: Dict[str, Any]):
    logger.warning("Invoice payment failed for subscription: %s", obj.get("subscription"))


def _subscriber(session, obj: Dict[str, Any]) -> Optional[User]:
    user_id = (obj.get("metadata") or {}).get("userId")
    if user_id:
        return session.get(User, int(user_id))
    return session.execute(
        select(User).where(User.stripe_customer_id == obj.get("customer"))
    ).scalars().first()


def _on_subscription_created(session, obj: Dict[str, Any]):
    user = _subscriber(session, obj)
    if user is None:
        logger.error("No user found for customer ID: %s", obj.get("customer"))
        return
    user.role = "premium"
    if obj.get("customer"):
        user.stripe_customer_id = obj["customer"]
    session.commit()
    logger.info("User %s upgraded to premium (subscription: %s)", user.id, obj.get("id"))


def _on_subscription_deleted(session, obj: Dict[str, Any]):
    user = _subscriber(session, obj)
    if user is None:
        logger.error("No user found for customer ID: %s", obj.get("customer"))
        return
    if user.role != "admin":
        user.role = "user"
    session.commit()
    logger.info("User %s downgraded to free (subscription deleted: %s)", user.id, obj.get("id"))


WEBHOOK_HANDLERS = {
    "checkout.session.completed": _on_checkout_completed,
    "checkout.session.expired": _on_checkout_expired,
    "invoice.payment_succeeded": _on_invoice_succeeded,
    "invoice.payment_failed": _on_invoice_failed,
    "customer.subscription.created": _on_subscription_created,
    "customer.subscription.deleted": _on_subscription_deleted,
}


def handle_webhook_event(session, event: Dict[str, Any]) -> bool:
    """Apply a verified Stripe event. Returns False for event types we ignore."""
    event_type = event.get("type")
    handler = WEBHOOK_HANDLERS.get(event_type)
    if handler is None:
        logger.info("Unhandled event type: %s", event_type)
        return False
    obj = (event.get("data") or {}).get("object") or {}
    try:
        handler(session, obj)
    except Exception:
        session.rollback()
        logger.exception("Error handling %s", event_type)
    return True
