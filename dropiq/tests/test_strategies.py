import pytest

from dropiq.models import Activity, Strategy, StrategyRating
from dropiq.services.strategies import adjust_risk_level

from support import auth_headers, register


def _create(client, token, title="Bridge farming", **overrides):
    body = {
        "title": title,
        "description": f"{title} walkthrough",
        "content": "1. Bridge\n2. Swap\n3. Wait",
        "category": "Layer 2",
        "riskLevel": "medium",
        "estimatedTime": 10,
        "potentialReward": 1000,
        "isPublic": True,
        "tags": ["l2"],
        "tips": [{"title": "Gas", "content": "Bridge on weekends", "order": 2}, {"title": "Start", "content": "Small", "order": 1}],
        "requirements": [{"type": "wallet", "description": "Funded wallet"}],
    }
    body.update(overrides)
    resp = client.post("/api/strategies", headers=auth_headers(token), json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


@pytest.fixture()
def bob_token(client):
    return register(client, email="bob@example.com", name="Bob")["token"]


@pytest.mark.parametrize(
    "level,adjustment,expected",
    [
        ("medium", "conservative", "low"),
        ("low", "conservative", "low"),
        ("high", "aggressive", "extreme"),
        ("extreme", "aggressive", "extreme"),
        ("high", "moderate", "high"),
    ],
)
def test_adjust_risk_level(level, adjustment, expected):
    assert adjust_risk_level(level, adjustment) == expected


def test_create_strategy(client, db, user_token):
    data = _create(client, user_token)
    assert data["riskLevel"] == "medium"
    assert [t["title"] for t in data["tips"]] == ["Start", "Gas"]
    assert data["requirements"][0]["isRequired"] is True
    assert data["metrics"] == {"copies": 0}
    assert db.query(Activity).filter_by(type="strategy_created", strategy_id=data["id"]).count() == 1


def test_create_strategy_validation(client, user_token):
    assert client.post("/api/strategies", json={"title": "x"}).status_code == 401
    resp = client.post("/api/strategies", headers=auth_headers(user_token), json={"title": "x", "riskLevel": "yolo"})
    assert resp.status_code == 400


def test_list_hides_private_strategies_from_others(client, user_token, bob_token):
    _create(client, user_token, "Public one")
    private = _create(client, user_token, "Secret one", isPublic=False)
    me = client.get("/api/auth/me", headers=auth_headers(user_token)).get_json()["data"]

    anonymous = client.get("/api/strategies").get_json()["data"]
    assert [s["title"] for s in anonymous["strategies"]] == ["Public one"]

    own = client.get(f"/api/strategies?authorId={me['id']}", headers=auth_headers(user_token)).get_json()["data"]
    assert own["total"] == 2

    other = client.get(f"/api/strategies?authorId={me['id']}", headers=auth_headers(bob_token)).get_json()["data"]
    assert other["total"] == 1

    assert client.get(f"/api/strategies/{private['id']}", headers=auth_headers(bob_token)).status_code == 404
    assert client.get(f"/api/strategies/{private['id']}", headers=auth_headers(user_token)).status_code == 200


def test_list_search_and_sort(client, user_token, bob_token):
    first = _create(client, user_token, "Bridge farming")
    second = _create(client, user_token, "NFT minting")
    client.post(f"/api/strategies/{second['id']}/like", headers=auth_headers(bob_token))

    search = client.get("/api/strategies?search=BRIDGE").get_json()["data"]
    assert [s["id"] for s in search["strategies"]] == [first["id"]]

    by_likes = client.get("/api/strategies?sortBy=likes&sortOrder=desc").get_json()["data"]
    assert [s["id"] for s in by_likes["strategies"]] == [second["id"], first["id"]]

    paged = client.get("/api/strategies?limit=1&offset=1&sortBy=title&sortOrder=asc").get_json()["data"]
    assert [s["title"] for s in paged["strategies"]] == ["NFT minting"]
    assert (paged["total"], paged["limit"], paged["offset"]) == (2, 1, 1)


def test_get_counts_views(client, user_token):
    created = _create(client, user_token)
    client.get(f"/api/strategies/{created['id']}")
    data = client.get(f"/api/strategies/{created['id']}").get_json()["data"]
    assert data["views"] == 2
    assert data["comments"] == []
    assert client.get("/api/strategies/999").status_code == 404


def test_only_author_can_modify(client, db, user_token, bob_token):
    created = _create(client, user_token)
    url = f"/api/strategies/{created['id']}"

    forbidden = client.put(url, headers=auth_headers(bob_token), json={"title": "Mine now"})
    assert forbidden.status_code == 403
    assert client.delete(url, headers=auth_headers(bob_token)).status_code == 403

    updated = client.put(url, headers=auth_headers(user_token), json={"title": "Renamed", "riskLevel": "high"})
    data = updated.get_json()["data"]
    assert (data["title"], data["riskLevel"], data["category"]) == ("Renamed", "high", "Layer 2")

    assert client.delete(url, headers=auth_headers(user_token)).status_code == 200
    assert db.get(Strategy, created["id"]) is None


def test_update_rejects_null_for_required_fields(client, user_token):
    created = _create(client, user_token)
    url = f"/api/strategies/{created['id']}"

    for field in ("title", "content", "isPublic"):
        resp = client.put(url, headers=auth_headers(user_token), json={field: None})
        assert resp.status_code == 400, field
        assert any(f"{field} cannot be null" in detail for detail in resp.get_json()["details"])

    cleared = client.put(url, headers=auth_headers(user_token), json={"estimatedProfit": None})
    assert cleared.status_code == 200
    assert cleared.get_json()["data"]["title"] == created["title"]


def test_like_toggles(client, user_token, bob_token):
    created = _create(client, user_token)
    url = f"/api/strategies/{created['id']}/like"
    assert client.post(url, headers=auth_headers(bob_token)).get_json()["data"] == {"liked": True, "likes": 1}
    detail = client.get(f"/api/strategies/{created['id']}", headers=auth_headers(bob_token)).get_json()["data"]
    assert detail["likedByMe"] is True
    assert client.post(url, headers=auth_headers(bob_token)).get_json()["data"] == {"liked": False, "likes": 0}


def test_rating_is_one_per_user(client, db, user_token, bob_token):
    created = _create(client, user_token)
    url = f"/api/strategies/{created['id']}/rating"
    client.post(url, headers=auth_headers(bob_token), json={"rating": 2})
    resp = client.post(url, headers=auth_headers(bob_token), json={"rating": 4, "review": "Solid"})
    assert resp.get_json()["data"]["rating"] == 4
    client.post(url, headers=auth_headers(user_token), json={"rating": 5})

    assert db.query(StrategyRating).filter_by(strategy_id=created["id"]).count() == 2
    detail = client.get(f"/api/strategies/{created['id']}").get_json()["data"]
    assert (detail["averageRating"], detail["ratingCount"]) == (4.5, 2)

    assert client.post(url, headers=auth_headers(bob_token), json={"rating": 6}).status_code == 400


def test_comments(client, user_token, bob_token):
    created = _create(client, user_token)
    url = f"/api/strategies/{created['id']}/comments"

    first = client.post(url, headers=auth_headers(bob_token), json={"content": "Worked for me"})
    assert first.status_code == 201
    reply = client.post(
        url, headers=auth_headers(user_token), json={"content": "Glad to hear", "parentId": first.get_json()["data"]["id"]}
    )
    assert reply.get_json()["data"]["parentId"] == first.get_json()["data"]["id"]

    orphan = client.post(url, headers=auth_headers(user_token), json={"content": "?", "parentId": 999})
    assert orphan.status_code == 404
    assert orphan.get_json()["error"] == "Parent comment not found"

    listed = client.get(url).get_json()["data"]
    assert [c["content"] for c in listed] == ["Glad to hear", "Worked for me"]
    assert listed[1]["user"]["name"] == "Bob"


def test_share_counts(client, user_token, bob_token):
    created = _create(client, user_token)
    resp = client.post(f"/api/strategies/{created['id']}/share", headers=auth_headers(bob_token), json={"platform": "twitter"})
    assert resp.get_json()["data"]["shares"] == 1
    assert resp.get_json()["data"]["platform"] == "twitter"


def test_trending_orders_by_likes(client, user_token, bob_token):
    quiet = _create(client, user_token, "Quiet")
    popular = _create(client, user_token, "Popular")
    _create(client, user_token, "Hidden", isPublic=False)
    client.post(f"/api/strategies/{popular['id']}/like", headers=auth_headers(bob_token))

    trending = client.get("/api/strategies/trending").get_json()["data"]
    assert [s["id"] for s in trending] == [popular["id"], quiet["id"]]


def test_copy_strategy(client, db, user_token, bob_token):
    original = _create(client, user_token)
    resp = client.post(
        "/api/strategies/copy",
        headers=auth_headers(bob_token),
        json={
            "originalStrategyId": original["id"],
            "settings": {
                "title": "My bridge plan",
                "description": "Faster",
                "riskAdjustment": "aggressive",
                "timelineMultiplier": 1.5,
                "budgetMultiplier": 2,
                "includeTips": False,
                "customNotes": "Use the cheap bridge",
            },
        },
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["message"] == "Strategy copied successfully"
    copy = body["data"]

    assert copy["isPublic"] is False
    assert copy["originalStrategyId"] == original["id"]
    assert copy["riskLevel"] == "high"
    assert copy["estimatedTime"] == 15
    assert copy["potentialReward"] == 2000
    assert copy["tags"] == ["l2", "personalized", "copy"]
    assert copy["tips"] == []
    assert len(copy["requirements"]) == 1
    assert copy["content"].startswith("# Personalized Strategy Copy")
    assert "**Adjusted Risk Level:** high" in copy["content"]
    assert "Extended to **150%** of the original timeline." in copy["content"]
    assert "Use the cheap bridge" in copy["content"]
    assert copy["content"].endswith(original["content"])
    assert copy["metadata"]["originalTitle"] == "Bridge farming"

    db.expire_all()
    assert db.get(Strategy, original["id"]).metrics["copies"] == 1
    assert db.query(Activity).filter_by(type="strategy_copied").count() == 1

    copied = client.get("/api/strategies/copied", headers=auth_headers(bob_token)).get_json()["data"]
    assert [s["id"] for s in copied] == [copy["id"]]
    assert client.get("/api/strategies/copied", headers=auth_headers(user_token)).get_json()["data"] == []


def test_copy_validation(client, user_token, bob_token):
    private = _create(client, user_token, "Private", isPublic=False)
    settings = {"title": "Mine", "description": "Mine"}

    hidden = client.post(
        "/api/strategies/copy", headers=auth_headers(bob_token), json={"originalStrategyId": private["id"], "settings": settings}
    )
    assert hidden.status_code == 404

    too_slow = client.post(
        "/api/strategies/copy",
        headers=auth_headers(bob_token),
        json={"originalStrategyId": private["id"], "settings": dict(settings, timelineMultiplier=5)},
    )
    assert too_slow.status_code == 400
