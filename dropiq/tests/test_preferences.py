from datetime import timedelta

import pytest

from dropiq.models import ChainPreference, PreferenceEvolution, UserBehaviorEvent
from dropiq.models.base import utcnow
from dropiq.scoring.chain_preference import CHAIN_PROFILES, characteristic_score, interaction_trend, score_chain
from dropiq.scoring.risk_profile import RISK_QUESTIONS, assess_risk_tolerance, risk_category

from support import auth_headers, register


def _answers(value=3, **overrides):
    answers = {key: value for key in RISK_QUESTIONS}
    answers.update(overrides)
    return answers


def test_middle_answers_score_balanced():
    result = assess_risk_tolerance(_answers(3))
    assert result["riskToleranceScore"] == 60
    assert result["riskCategory"] == "balanced"
    assert result["financialCapacity"] == "medium"
    assert result["lossAcceptance"] == 18
    assert result["timeHorizon"] == "medium"
    assert result["experienceLevel"] == "intermediate"
    assert (result["technicalKnowledge"], result["securityConsciousness"]) == (6, 6)
    assert result["confidenceScore"] == 0.9
    assert result["recommendations"][0] == "Maintain a balanced portfolio of risk levels"
    assert [f["weight"] for f in result["riskFactors"]] == [15, 20, 15, 10, 15, 15, 5, 5]


def test_top_answers_score_aggressive():
    result = assess_risk_tolerance(_answers(5))
    assert result["riskToleranceScore"] == 100
    assert result["riskCategory"] == "aggressive"
    assert result["financialCapacity"] == "very_high"
    assert result["lossAcceptance"] == 30
    assert result["timeHorizon"] == "long"
    assert result["experienceLevel"] == "expert"
    assert result["confidenceScore"] == 1.0
    assert len(result["recommendations"]) == 3


def test_beginner_gets_extra_recommendations():
    result = assess_risk_tolerance(_answers(5, investmentExperience=1))
    assert result["riskToleranceScore"] == 88
    assert result["experienceLevel"] == "beginner"
    assert result["financialCapacity"] == "medium"
    assert result["confidenceScore"] == 0.8
    assert result["recommendations"][-2:] == [
        "Start with testnet interactions to learn the process",
        "Follow educational content about DeFi security",
    ]


@pytest.mark.parametrize(
    "score,category",
    [
        (0, "conservative"),
        (20, "conservative"),
        (21, "moderate"),
        (40, "moderate"),
        (41, "balanced"),
        (60, "balanced"),
        (61, "growth"),
        (80, "growth"),
        (81, "aggressive"),
        (100, "aggressive"),
    ],
)
def test_risk_category_bands(score, category):
    assert risk_category(score) == category


def _interaction(days_ago, success=True, gas=10):
    return {"gasSpent": gas, "success": success, "timestamp": utcnow() - timedelta(days=days_ago)}


def test_unused_chain_scores_from_its_traits():
    pref = score_chain("polygon", [], None, utcnow())
    assert pref["preferenceScore"] == 25
    assert pref["usageFrequency"] == 0
    assert pref["lastUsedAt"] is None
    assert pref["trend"] == "stable"
    assert pref["recommendation"] == "Polygon may not be the best fit for your current profile."


def test_chain_score_from_interactions():
    interactions = [_interaction(1), _interaction(2), _interaction(3), _interaction(4, success=False)]
    pref = score_chain("polygon", interactions, None, utcnow())
    assert pref["preferenceScore"] == 67
    assert pref["successRate"] == 75
    assert pref["avgGasCost"] == 10
    assert pref["totalGasSpent"] == 40
    assert pref["trend"] == "increasing"
    assert pref["recommendation"] == "Good choice! Polygon aligns well with your preferences."
    assert {f["factor"]: f["score"] for f in pref["preferenceFactors"]} == {
        "usage_frequency": 40,
        "success_rate": 75,
        "gas_efficiency": 95,
        "chain_characteristics": 50,
        "recency": 98,
    }


def test_characteristics_follow_the_risk_profile():
    adventurous = {"riskToleranceScore": 80, "financialCapacity": "low", "technicalKnowledge": 4}
    careful = {"riskToleranceScore": 30, "financialCapacity": "high", "technicalKnowledge": 8}
    assert characteristic_score(CHAIN_PROFILES["zksync"], adventurous) == 100
    assert characteristic_score(CHAIN_PROFILES["eth"], careful) == 100
    assert characteristic_score(CHAIN_PROFILES["base"], careful) == 82
    assert characteristic_score(CHAIN_PROFILES["base"], None) == 50


def test_trend_needs_three_interactions():
    assert interaction_trend([_interaction(1), _interaction(2)]) == "stable"
    assert interaction_trend([_interaction(d) for d in range(6)]) == "stable"


# HTTP


def _assess(client, token, answers):
    return client.post("/api/preferences/risk-assessment", headers=auth_headers(token), json={"answers": answers})


def test_risk_assessment_round_trip(client, db, user_token):
    missing = client.get("/api/preferences/risk-assessment", headers=auth_headers(user_token))
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "No risk profile found for this user"

    resp = _assess(client, user_token, _answers(3))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()["data"]["riskCategory"] == "balanced"

    stored = client.get("/api/preferences/risk-assessment", headers=auth_headers(user_token)).get_json()["data"]
    assert stored["riskToleranceScore"] == 60
    assert stored["riskCategory"] == "balanced"
    assert stored["confidenceScore"] == 0.9
    assert len(stored["recommendations"]) == 3
    assert db.query(PreferenceEvolution).count() == 0

    _assess(client, user_token, _answers(5))
    evolution = db.query(PreferenceEvolution).one()
    assert evolution.category == "risk"
    assert evolution.old_value["riskToleranceScore"] == 60
    assert evolution.new_value["riskToleranceScore"] == 100


@pytest.mark.parametrize(
    "answers",
    [
        _answers(3, investmentExperience=6),
        _answers(3, riskCapacity=0),
        {key: 3 for key in RISK_QUESTIONS[:-1]},
        _answers(3, timeHorizon=2.5),
    ],
)
def test_risk_assessment_validation(client, user_token, answers):
    resp = _assess(client, user_token, answers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid request data"
    assert resp.get_json()["details"][0].startswith("answers.")


def test_risk_assessment_requires_auth(client):
    assert client.post("/api/preferences/risk-assessment", json={"answers": _answers()}).status_code == 401


def test_low_security_answers_create_an_insight(client, user_token):
    _assess(client, user_token, _answers(1))
    insights = client.get("/api/preferences/insights", headers=auth_headers(user_token)).get_json()["data"]
    assert [i["title"] for i in insights] == ["Security Awareness Gap"]
    assert insights[0]["type"] == "risk_pattern"
    assert insights[0]["isRead"] is False


def _chain_event(db, user_id, chain_id, days_ago, success=True, gas=10, event_type="chain_interaction"):
    db.add(
        UserBehaviorEvent(
            user_id=user_id,
            event_type=event_type,
            event_data={"chainId": chain_id, "gasSpent": gas, "success": success},
            timestamp=utcnow() - timedelta(days=days_ago),
        )
    )


def test_chain_preference_analysis(client, db):
    alice = register(client)
    for days in (1, 2, 3):
        _chain_event(db, alice["user"]["id"], "polygon", days)
    _chain_event(db, alice["user"]["id"], "polygon", 4, success=False)
    _chain_event(db, alice["user"]["id"], "solana", 1)
    _chain_event(db, alice["user"]["id"], "polygon", 1, event_type="page_view")
    db.commit()

    resp = client.post("/api/preferences/chain-preferences", headers=auth_headers(alice["token"]))
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data[0]["chainId"] == "polygon"
    assert data[0]["preferenceScore"] == 67
    assert data[0]["usageFrequency"] == 4
    assert {p["chainId"] for p in data} == set(CHAIN_PROFILES)
    scores = [p["preferenceScore"] for p in data]
    assert scores == sorted(scores, reverse=True)

    stored = client.get("/api/preferences/chain-preferences", headers=auth_headers(alice["token"])).get_json()["data"]
    assert stored[0]["chainId"] == "polygon"
    assert stored[0]["lastUsedAt"] is not None
    assert db.query(ChainPreference).count() == len(CHAIN_PROFILES)

    insights = client.get(
        "/api/preferences/insights?type=chain_behavior", headers=auth_headers(alice["token"])
    ).get_json()["data"]
    assert [i["title"] for i in insights] == ["Limited Chain Diversity"]


def test_chains_endpoint_caches_until_refresh(client, db, user_token):
    first = client.get("/api/preferences/chains", headers=auth_headers(user_token)).get_json()
    assert first["analyzed"] is True
    assert len(first["data"]) == len(CHAIN_PROFILES)

    again = client.get("/api/preferences/chains", headers=auth_headers(user_token)).get_json()
    assert again["cached"] is True

    refreshed = client.get("/api/preferences/chains?refresh=true", headers=auth_headers(user_token)).get_json()
    assert refreshed["analyzed"] is True


def test_manual_chain_interactions_keep_running_totals(client, db, user_token):
    def record(gas, success):
        return client.post(
            "/api/preferences/chains",
            headers=auth_headers(user_token),
            json={"action": "manual_interaction", "chainId": "base", "data": {"gasSpent": gas, "success": success}},
        )

    first = record(12, True)
    assert first.status_code == 200
    assert first.get_json()["message"] == "Chain preference updated successfully"
    data = record(4, False).get_json()["data"]
    assert data["chainName"] == "Base"
    assert data["usageFrequency"] == 2
    assert data["totalGasSpent"] == 16
    assert data["avgGasCost"] == 8
    assert data["successRate"] == 50
    assert db.query(UserBehaviorEvent).filter_by(event_type="chain_interaction").count() == 2


def test_manual_chain_preference_update(client, db, user_token):
    body = {"action": "update_preference", "chainId": "eth", "data": {"preferenceScore": 90}}
    resp = client.post("/api/preferences/chains", headers=auth_headers(user_token), json=body)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["preferenceScore"] == 90
    evolution = db.query(PreferenceEvolution).one()
    assert evolution.category == "chain"
    assert evolution.old_value == {"chainId": "eth", "preferenceScore": None}

    recs = client.post(
        "/api/preferences/chains", headers=auth_headers(user_token), json={"action": "get_recommendations"}
    ).get_json()["data"]
    assert [r["type"] for r in recs] == ["continue_exploring", "similar_chains"]
    assert recs[1]["reason"] == "Similar to your favorite chain Ethereum"


@pytest.mark.parametrize(
    "body",
    [
        {"action": "fly"},
        {"action": "manual_interaction"},
        {"action": "update_preference", "chainId": "eth", "data": {"preferenceScore": 150}},
        {"action": "manual_interaction", "chainId": "eth", "data": {"gasSpent": -1}},
    ],
)
def test_chain_action_validation(client, user_token, body):
    resp = client.post("/api/preferences/chains", headers=auth_headers(user_token), json=body)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid request data"


def test_risk_aligned_chain_recommendations(client, user_token):
    _assess(client, user_token, _answers(1))
    recs = client.post(
        "/api/preferences/chains", headers=auth_headers(user_token), json={"action": "get_recommendations"}
    ).get_json()["data"]
    assert recs == [
        {
            "type": "risk_aligned",
            "chains": [
                {"chainId": "eth", "chainName": "Ethereum", "reason": "Risk level 20 matches your profile"},
                {"chainId": "arbitrum", "chainName": "Arbitrum", "reason": "Risk level 35 matches your profile"},
            ],
            "reason": "Aligned with your risk tolerance",
        }
    ]


def test_preference_profile_completeness(client, user_token):
    empty = client.get("/api/preferences/profile", headers=auth_headers(user_token)).get_json()["data"]
    assert empty["riskProfile"] is None
    assert empty["chainPreferences"] == []
    assert empty["activityPattern"] is None
    assert empty["completeness"] == {
        "score": 0,
        "level": "basic",
        "missingComponents": ["risk_assessment", "chain_preferences", "activity_pattern"],
    }

    _assess(client, user_token, _answers(1))
    resp = client.post("/api/preferences/profile", headers=auth_headers(user_token), json={"action": "analyze_all"})
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Comprehensive analysis completed"
    assert resp.get_json()["data"]["riskProfile"]["riskToleranceScore"] == 20

    full = client.get("/api/preferences/profile", headers=auth_headers(user_token)).get_json()["data"]
    assert full["completeness"] == {"score": 70, "level": "advanced", "missingComponents": ["activity_pattern"]}
    assert [i["title"] for i in full["insights"]][-1] == "Security Awareness Gap"


def test_preference_profile_actions(client, user_token):
    refresh = client.post("/api/preferences/profile", headers=auth_headers(user_token), json={"action": "refresh_insights"})
    assert refresh.status_code == 200
    assert refresh.get_json()["message"] == "Insights refresh triggered"
    assert client.post("/api/preferences/profile", headers=auth_headers(user_token), json={"action": "nap"}).status_code == 400


def test_marking_insights_read(client, user_token):
    _assess(client, user_token, _answers(1))
    client.post("/api/preferences/chain-preferences", headers=auth_headers(user_token))
    insights = client.get("/api/preferences/insights", headers=auth_headers(user_token)).get_json()["data"]
    assert len(insights) == 2

    first = insights[0]["id"]
    resp = client.post(
        "/api/preferences/insights", headers=auth_headers(user_token), json={"action": "mark_read", "insightId": first}
    )
    assert resp.get_json()["message"] == "Insight marked as read"
    unread = client.get("/api/preferences/insights?unread=true", headers=auth_headers(user_token)).get_json()["data"]
    assert [i["id"] for i in unread] == [insights[1]["id"]]

    resp = client.post("/api/preferences/insights", headers=auth_headers(user_token), json={"action": "mark_all_read"})
    assert resp.get_json()["data"] == {"updated": 1}
    assert client.get("/api/preferences/insights?unread=true", headers=auth_headers(user_token)).get_json()["data"] == []


def test_insights_belong_to_their_owner(client, user_token):
    _assess(client, user_token, _answers(1))
    insight_id = client.get("/api/preferences/insights", headers=auth_headers(user_token)).get_json()["data"][0]["id"]
    mallory = register(client, email="mallory@example.com")

    resp = client.post(
        "/api/preferences/insights",
        headers=auth_headers(mallory["token"]),
        json={"action": "mark_read", "insightId": insight_id},
    )
    assert resp.status_code == 404
    missing_id = client.post("/api/preferences/insights", headers=auth_headers(user_token), json={"action": "mark_read"})
    assert missing_id.status_code == 400
