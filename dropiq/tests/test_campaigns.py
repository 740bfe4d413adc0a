from datetime import timedelta

import pytest

from dropiq.models import Campaign, User
from dropiq.models.base import utcnow

from support import auth_headers, make_airdrop, sign_webhook, webhook_event


def _campaign(db, airdrop, tier="basic", status="paid", payment_status="paid", days_left=5, **extra):
    campaign = Campaign(
        airdrop_id=airdrop.id,
        tier=tier,
        amount=1000,
        currency="usd",
        status=status,
        payment_status=payment_status,
        start_date=utcnow(),
        end_date=utcnow() + timedelta(days=days_left),
        **extra,
    )
    db.add(campaign)
    db.commit()
    return campaign


def _post_webhook(client, event_type, obj, signature=None):
    payload = webhook_event(event_type, obj)
    return client.post(
        "/api/stripe/webhook",
        data=payload,
        content_type="application/json",
        headers={"Stripe-Signature": signature or sign_webhook(payload)},
    )


def test_checkout_creates_pending_campaign(client, db, user_token, fakes):
    airdrop = make_airdrop(db, "Alpha")
    resp = client.post(
        "/api/campaigns/create-checkout-session",
        headers=auth_headers(user_token),
        json={"airdropId": airdrop.id, "tier": "standard"},
    )
    assert resp.status_code == 200, resp.get_json()
    data = resp.get_json()["data"]
    assert data["sessionId"] == "cs_test_1"
    assert data["campaign"]["amount"] == 2500
    assert data["campaign"]["tier"] == "standard"

    campaign = db.get(Campaign, data["campaign"]["id"])
    assert (campaign.status, campaign.payment_status) == ("pending", "pending")
    assert campaign.stripe_session_id == "cs_test_1"
    assert campaign.submitted_by == "alice@example.com"
    assert fakes["payments"].checkouts == [{"id": "cs_test_1", "airdropId": airdrop.id, "tier": "standard"}]


def test_checkout_validation(client, db, user_token):
    airdrop = make_airdrop(db, "Alpha")
    headers = auth_headers(user_token)

    missing = client.post("/api/campaigns/create-checkout-session", headers=headers, json={"tier": "basic"})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Missing required fields: airdropId, tier"

    bad_tier = client.post(
        "/api/campaigns/create-checkout-session", headers=headers, json={"airdropId": airdrop.id, "tier": "gold"}
    )
    assert bad_tier.status_code == 400

    unknown = client.post(
        "/api/campaigns/create-checkout-session", headers=headers, json={"airdropId": 999, "tier": "basic"}
    )
    assert unknown.status_code == 404

    not_a_number = client.post(
        "/api/campaigns/create-checkout-session", headers=headers, json={"airdropId": "alpha", "tier": "basic"}
    )
    assert not_a_number.status_code == 400
    assert not_a_number.get_json()["error"] == "Invalid request data"
    assert any(detail.startswith("airdropId") for detail in not_a_number.get_json()["details"])


def test_checkout_conflicts_with_active_campaign(client, db, user_token, fakes):
    airdrop = make_airdrop(db, "Alpha")
    _campaign(db, airdrop, status="approved")
    resp = client.post(
        "/api/campaigns/create-checkout-session",
        headers=auth_headers(user_token),
        json={"airdropId": airdrop.id, "tier": "basic"},
    )
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "This airdrop already has an active campaign"
    assert fakes["payments"].checkouts == []


def test_checkout_allowed_after_campaign_ends(client, db, user_token):
    airdrop = make_airdrop(db, "Alpha")
    _campaign(db, airdrop, status="approved", days_left=-1)
    resp = client.post(
        "/api/campaigns/create-checkout-session",
        headers=auth_headers(user_token),
        json={"airdropId": airdrop.id, "tier": "premium"},
    )
    assert resp.status_code == 200


def test_checkout_unavailable_without_stripe(client, db, user_token, fakes):
    airdrop = make_airdrop(db, "Alpha")
    fakes["payments"].secret_key = None
    resp = client.post(
        "/api/campaigns/create-checkout-session",
        headers=auth_headers(user_token),
        json={"airdropId": airdrop.id, "tier": "basic"},
    )
    assert resp.status_code == 503
    assert resp.get_json()["error"] == "Payment system is not configured"


def test_featured_orders_by_tier_and_hides_expired(client, db):
    basic = _campaign(db, make_airdrop(db, "Basic Drop"), tier="basic")
    premium = _campaign(db, make_airdrop(db, "Premium Drop"), tier="premium")
    standard = _campaign(db, make_airdrop(db, "Standard Drop"), tier="standard")
    _campaign(db, make_airdrop(db, "Expired Drop"), tier="premium", days_left=-2)
    _campaign(db, make_airdrop(db, "Unpaid Drop"), tier="premium", status="pending", payment_status="pending")

    data = client.get("/api/campaigns/featured").get_json()["data"]
    assert [c["id"] for c in data["campaigns"]] == [premium.id, standard.id, basic.id]
    assert data["total"] == 3
    assert data["campaigns"][0]["airdrop"]["name"] == "Premium Drop"


def test_list_campaigns_filters(client, db):
    airdrop = make_airdrop(db, "Alpha")
    _campaign(db, airdrop, tier="basic", status="approved")
    _campaign(db, make_airdrop(db, "Beta"), tier="premium", status="rejected")

    approved = client.get("/api/campaigns?status=approved").get_json()["data"]
    assert [c["tier"] for c in approved] == ["basic"]
    premium = client.get("/api/campaigns?tier=premium").get_json()["data"]
    assert [c["status"] for c in premium] == ["rejected"]


def test_admin_list_paginates(client, db, admin_token):
    for i in range(3):
        _campaign(db, make_airdrop(db, f"Drop {i}"), payment_status="paid" if i else "pending")
    data = client.get("/api/admin/campaigns?paymentStatus=paid&limit=1", headers=auth_headers(admin_token)).get_json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
    assert len(data["campaigns"]) == 1


def test_admin_routes_require_admin(client, db, user_token):
    assert client.get("/api/admin/campaigns").status_code == 401
    resp = client.get("/api/admin/campaigns", headers=auth_headers(user_token))
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Insufficient permissions"


def test_approve_requires_approver(client, db, admin_token):
    campaign = _campaign(db, make_airdrop(db, "Alpha"))
    headers = auth_headers(admin_token)
    missing = client.post(f"/api/admin/campaigns/{campaign.id}/approve", headers=headers, json={})
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "approvedBy is required"

    resp = client.post(
        f"/api/admin/campaigns/{campaign.id}/approve", headers=headers, json={"approvedBy": "ops", "notes": "looks good"}
    )
    data = resp.get_json()["data"]
    assert data["status"] == "approved"
    assert data["approvedBy"] == "ops"
    assert client.post("/api/admin/campaigns/999/approve", headers=headers, json={"approvedBy": "ops"}).status_code == 404


def test_reject_with_refund(client, db, admin_token, fakes):
    campaign = _campaign(db, make_airdrop(db, "Alpha"), stripe_session_id="cs_paid")
    resp = client.post(
        f"/api/admin/campaigns/{campaign.id}/reject",
        headers=auth_headers(admin_token),
        json={"rejectedBy": "ops", "refund": True},
    )
    data = resp.get_json()["data"]
    assert resp.status_code == 200
    assert data["refund"]["id"] == "re_1"
    assert data["campaign"]["status"] == "rejected"
    assert data["campaign"]["paymentStatus"] == "refunded"
    assert fakes["payments"].refunds == ["pi_for_cs_paid"]


def test_reject_completes_when_refund_fails(client, db, admin_token, fakes):
    fakes["payments"].fail_refund = True
    campaign = _campaign(db, make_airdrop(db, "Alpha"), stripe_session_id="cs_paid")
    resp = client.post(
        f"/api/admin/campaigns/{campaign.id}/reject",
        headers=auth_headers(admin_token),
        json={"rejectedBy": "ops", "refund": True},
    )
    data = resp.get_json()["data"]
    assert resp.status_code == 200
    assert data["refund"] is None
    assert data["campaign"]["status"] == "rejected"
    assert data["campaign"]["paymentStatus"] == "paid"


def test_reject_skips_refund_for_unpaid(client, db, admin_token, fakes):
    campaign = _campaign(db, make_airdrop(db, "Alpha"), payment_status="pending", stripe_session_id="cs_x")
    client.post(
        f"/api/admin/campaigns/{campaign.id}/reject",
        headers=auth_headers(admin_token),
        json={"rejectedBy": "ops", "refund": True},
    )
    assert fakes["payments"].refunds == []


def test_webhook_rejects_bad_signatures(client):
    payload = webhook_event("checkout.session.completed", {"id": "cs_1"})
    missing = client.post("/api/stripe/webhook", data=payload, content_type="application/json")
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Missing stripe signature"

    forged = _post_webhook(client, "checkout.session.completed", {"id": "cs_1"}, signature=sign_webhook(payload, "whsec_other"))
    assert forged.status_code == 400
    assert forged.get_json()["error"] == "Invalid signature"


@pytest.mark.parametrize("body", [b"\xff\xfe{}", b"not json at all"])
def test_webhook_rejects_undecodable_bodies(client, body):
    resp = client.post(
        "/api/stripe/webhook",
        data=body,
        content_type="application/json",
        headers={"Stripe-Signature": sign_webhook(body)},
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid signature"


def test_webhook_checkout_completed_marks_paid(client, db):
    airdrop = make_airdrop(db, "Alpha", status="pending")
    campaign = _campaign(db, airdrop, status="pending", payment_status="pending", stripe_session_id="cs_live")

    resp = _post_webhook(
        client,
        "checkout.session.completed",
        {
            "id": "cs_live",
            "customer": "cus_1",
            "payment_intent": "pi_1",
            "metadata": {"airdropId": str(airdrop.id), "tier": "basic", "submittedBy": "anon"},
        },
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"received": True}

    db.expire_all()
    campaign = db.get(Campaign, campaign.id)
    assert (campaign.status, campaign.payment_status) == ("paid", "paid")
    assert campaign.extra["stripePaymentIntentId"] == "pi_1"
    assert campaign.airdrop.extra["priority"] == "high"


def test_webhook_checkout_expired_rejects_campaign(client, db):
    campaign = _campaign(db, make_airdrop(db, "Alpha"), status="pending", payment_status="pending", stripe_session_id="cs_gone")
    _post_webhook(client, "checkout.session.expired", {"id": "cs_gone"})
    db.expire_all()
    campaign = db.get(Campaign, campaign.id)
    assert (campaign.status, campaign.payment_status) == ("rejected", "failed")


def test_webhook_subscription_lifecycle(client, db, user_token, admin_token):
    alice = db.query(User).filter_by(email="alice@example.com").one()
    admin = db.query(User).filter_by(email="admin@example.com").one()

    _post_webhook(client, "customer.subscription.created", {"id": "sub_1", "customer": "cus_a", "metadata": {"userId": str(alice.id)}})
    db.expire_all()
    assert db.get(User, alice.id).role == "premium"
    assert db.get(User, alice.id).stripe_customer_id == "cus_a"

    _post_webhook(client, "customer.subscription.deleted", {"id": "sub_1", "customer": "cus_a"})
    db.expire_all()
    assert db.get(User, alice.id).role == "user"

    _post_webhook(client, "customer.subscription.deleted", {"id": "sub_2", "customer": "cus_b", "metadata": {"userId": str(admin.id)}})
    db.expire_all()
    assert db.get(User, admin.id).role == "admin"


def test_webhook_ignores_unknown_events(client):
    resp = _post_webhook(client, "charge.refunded", {"id": "ch_1"})
    assert resp.status_code == 200
    assert resp.get_json() == {"received": True}


def test_billing_portal(client, db, user_token):
    missing = client.post("/api/subscriptions/portal", headers=auth_headers(user_token))
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "No active subscription found"

    alice = db.query(User).filter_by(email="alice@example.com").one()
    alice.stripe_customer_id = "cus_a"
    db.commit()
    resp = client.post("/api/subscriptions/portal", headers=auth_headers(user_token))
    assert resp.get_json()["data"]["url"].endswith("/cus_a")
