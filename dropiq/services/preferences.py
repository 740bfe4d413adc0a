import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update

from dropiq.errors import NotFound
from dropiq.models import ActivityPattern, ChainPreference, PreferenceEvolution, PreferenceInsight, RiskProfile, UserBehaviorEvent
from dropiq.models.base import as_utc, utcnow
from dropiq.scoring.chain_preference import (
    CHAIN_PROFILES,
    DEFAULT_CHAIN,
    chain_display_name,
    chain_insights,
    risk_aligned_chains,
    score_chain,
    similar_chains,
)
from dropiq.scoring.risk_profile import assess_risk_tolerance, risk_category, risk_insights, risk_recommendations
from dropiq.serializers import activity_pattern_to_dict, chain_preference_to_dict, insight_to_dict, risk_profile_to_dict

logger = logging.getLogger(__name__)

RISK_INSIGHT_TTL = timedelta(days=30)
CHAIN_INSIGHT_TTL = timedelta(days=14)
CHAIN_EVENT_TYPES = ("airdrop_interact", "wallet_connect", "task_complete", "chain_interaction")
INSIGHT_LIST_LIMIT = 20
PROFILE_INSIGHT_LIMIT = 5
PROFILE_EVOLUTION_LIMIT = 10


def profile_completeness(risk_profile, chain_preferences, activity_pattern) -> Dict[str, Any]:
    """Risk assessment counts 40 points, chain preferences and activity 30 each."""
    score = 0
    missing = []
    if risk_profile:
        score += 40
    else:
        missing.append("risk_assessment")
    if chain_preferences:
        score += 30
    else:
        missing.append("chain_preferences")
    if activity_pattern and activity_pattern.get("dailyActiveMinutes", 0) > 0:
        score += 30
    else:
        missing.append("activity_pattern")

    if score >= 90:
        level = "complete"
    elif score >= 70:
        level = "advanced"
    elif score >= 40:
        level = "intermediate"
    else:
        level = "basic"
    return {"score": score, "level": level, "missingComponents": missing}


def _risk_snapshot(values: Dict[str, Any]) -> Dict[str, Any]:
    keys = ("riskToleranceScore", "financialCapacity", "lossAcceptance", "timeHorizon", "experienceLevel")
    return {k: values[k] for k in keys}


def _interaction(event) -> Dict[str, Any]:
    data = event.event_data or {}
    gas = data.get("gasSpent") or 0
    return {
        "chainId": data.get("chainId") or DEFAULT_CHAIN,
        "gasSpent": gas if isinstance(gas, (int, float)) else 0,
        "success": data.get("success") is not False,
        "timestamp": as_utc(event.timestamp),
    }


def _insight_rows(user_id: int, items, insight_type: str, category: str, ttl: timedelta) -> List[PreferenceInsight]:
    return [
        PreferenceInsight(
            user_id=user_id,
            insight_type=insight_type,
            category=category,
            title=item["title"],
            description=item["description"],
            confidence=item["confidence"],
            actionable=item["actionable"],
            valid_until=utcnow() + ttl,
        )
        for item in items
    ]


class PreferenceService:
    """Risk tolerance, chain preferences and the combined preference profile."""

    def __init__(self, activity):
        self.activity = activity

    # Risk assessment

    def assess_risk(self, session, user_id: int, answers: Dict[str, int]) -> Dict[str, Any]:
        result = assess_risk_tolerance(answers)
        row = session.execute(select(RiskProfile).where(RiskProfile.user_id == user_id)).scalar_one_or_none()
        if row is not None:
            session.add(
                PreferenceEvolution(
                    user_id=user_id,
                    category="risk",
                    old_value=_risk_snapshot(self._risk_values(row)),
                    new_value=_risk_snapshot(result),
                    change_reason="user_assessment_update",
                    trigger="risk_assessment_questionnaire",
                )
            )
        else:
            row = RiskProfile(user_id=user_id)
            session.add(row)

        row.risk_tolerance_score = result["riskToleranceScore"]
        row.assessment_data = dict(answers)
        row.financial_capacity = result["financialCapacity"]
        row.loss_acceptance = result["lossAcceptance"]
        row.time_horizon = result["timeHorizon"]
        row.experience_level = result["experienceLevel"]
        row.technical_knowledge = result["technicalKnowledge"]
        row.security_consciousness = result["securityConsciousness"]
        row.risk_factors = result["riskFactors"]
        row.confidence_score = result["confidenceScore"]
        row.last_assessment_at = utcnow()

        session.add_all(_insight_rows(user_id, risk_insights(result), "risk_pattern", "risk", RISK_INSIGHT_TTL))
        session.commit()
        logger.info("Risk profile for user %s scored %s (%s)", user_id, result["riskToleranceScore"], result["riskCategory"])
        return result

    @staticmethod
    def _risk_values(row: RiskProfile) -> Dict[str, Any]:
        return {
            "riskToleranceScore": row.risk_tolerance_score,
            "financialCapacity": row.financial_capacity,
            "lossAcceptance": row.loss_acceptance,
            "timeHorizon": row.time_horizon,
            "experienceLevel": row.experience_level,
            "technicalKnowledge": row.technical_knowledge,
        }

    def get_risk_profile(self, session, user_id: int) -> Optional[Dict[str, Any]]:
        row = session.execute(select(RiskProfile).where(RiskProfile.user_id == user_id)).scalar_one_or_none()
        if row is None:
            return None
        data = risk_profile_to_dict(row)
        data["riskCategory"] = risk_category(row.risk_tolerance_score)
        data["recommendations"] = risk_recommendations(data["riskCategory"], row.experience_level)
        return data

    # Chain preferences

    def _chain_interactions(self, session, user_id: int) -> Dict[str, List[Dict[str, Any]]]:
        events = session.execute(
            select(UserBehaviorEvent)
            .where(UserBehaviorEvent.user_id == user_id, UserBehaviorEvent.event_type.in_(CHAIN_EVENT_TYPES))
            .order_by(UserBehaviorEvent.timestamp.desc())
        ).scalars()
        by_chain: Dict[str, List[Dict[str, Any]]] = {cid: [] for cid in CHAIN_PROFILES}
        for event in events:
            interaction = _interaction(event)
            if interaction["chainId"] in by_chain:
                by_chain[interaction["chainId"]].append(interaction)
        return by_chain

    def analyze_chains(self, session, user_id: int) -> List[Dict[str, Any]]:
        """Score every known chain from the user's recorded interactions and store the result."""
        risk = session.execute(select(RiskProfile).where(RiskProfile.user_id == user_id)).scalar_one_or_none()
        risk_values = self._risk_values(risk) if risk else None
        now = utcnow()
        scored = [
            score_chain(chain_id, interactions, risk_values, now)
            for chain_id, interactions in self._chain_interactions(session, user_id).items()
        ]
        preferences = sorted((p for p in scored if p["preferenceScore"] > 0), key=lambda p: -p["preferenceScore"])

        existing = {
            row.chain_id: row
            for row in session.execute(select(ChainPreference).where(ChainPreference.user_id == user_id)).scalars()
        }
        for pref in preferences:
            row = existing.get(pref["chainId"])
            if row is None:
                row = ChainPreference(user_id=user_id, chain_id=pref["chainId"], chain_name=pref["chainName"])
                session.add(row)
            row.preference_score = pref["preferenceScore"]
            row.usage_frequency = pref["usageFrequency"]
            row.total_gas_spent = pref["totalGasSpent"]
            row.success_rate = pref["successRate"]
            row.avg_gas_cost = pref["avgGasCost"]
            row.last_used_at = datetime.fromisoformat(pref["lastUsedAt"]) if pref["lastUsedAt"] else None
            row.factors = pref["preferenceFactors"]
            row.trend = pref["trend"]
            row.recommendation = pref["recommendation"]

        session.add_all(_insight_rows(user_id, chain_insights(preferences), "chain_behavior", "chain", CHAIN_INSIGHT_TTL))
        session.commit()
        logger.info("Chain preferences analyzed for user %s across %s chains", user_id, len(preferences))
        return preferences

    def get_chain_preferences(self, session, user_id: int) -> List[Dict[str, Any]]:
        rows = session.execute(
            select(ChainPreference)
            .where(ChainPreference.user_id == user_id)
            .order_by(ChainPreference.preference_score.desc(), ChainPreference.chain_id.asc())
        ).scalars()
        return [chain_preference_to_dict(r) for r in rows]

    def record_chain_interaction(self, session, user_id: int, chain_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Fold one manual interaction into the stored aggregates and log it as a behavior event."""
        gas = float(data.get("gasSpent") or 0)
        success = bool(data.get("success"))
        row = session.execute(
            select(ChainPreference).where(ChainPreference.user_id == user_id, ChainPreference.chain_id == chain_id)
        ).scalar_one_or_none()
        if row is None:
            row = ChainPreference(
                user_id=user_id,
                chain_id=chain_id,
                chain_name=data.get("chainName") or chain_display_name(chain_id),
                usage_frequency=0,
                total_gas_spent=0,
                success_rate=0,
            )
            session.add(row)

        previous = row.usage_frequency or 0
        row.usage_frequency = previous + 1
        row.total_gas_spent = (row.total_gas_spent or 0) + gas
        row.avg_gas_cost = row.total_gas_spent / row.usage_frequency
        row.success_rate = ((row.success_rate or 0) * previous + (100 if success else 0)) / row.usage_frequency
        row.last_used_at = utcnow()

        session.add(
            UserBehaviorEvent(
                user_id=user_id,
                event_type="chain_interaction",
                event_data={
                    "chainId": chain_id,
                    "interactionType": data.get("interactionType"),
                    "gasSpent": gas,
                    "success": success,
                },
            )
        )
        session.commit()
        return chain_preference_to_dict(row)

    def update_chain_preference(self, session, user_id: int, chain_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        row = session.execute(
            select(ChainPreference).where(ChainPreference.user_id == user_id, ChainPreference.chain_id == chain_id)
        ).scalar_one_or_none()
        old_score = row.preference_score if row is not None else None
        if row is None:
            row = ChainPreference(user_id=user_id, chain_id=chain_id, chain_name=data.get("chainName") or chain_display_name(chain_id))
            session.add(row)
        row.preference_score = data["preferenceScore"]
        if data.get("factors") is not None:
            row.factors = data["factors"]
        session.add(
            PreferenceEvolution(
                user_id=user_id,
                category="chain",
                old_value={"chainId": chain_id, "preferenceScore": old_score},
                new_value={"chainId": chain_id, "preferenceScore": row.preference_score},
                change_reason="user_manual_update",
                trigger="preference_api",
            )
        )
        session.commit()
        return chain_preference_to_dict(row)

    def chain_recommendations(self, session, user_id: int) -> List[Dict[str, Any]]:
        current = self.get_chain_preferences(session, user_id)
        recommendations = []
        favourites = [p for p in current if p["preferenceScore"] > 70]
        if favourites:
            recommendations.append({
                "type": "continue_exploring",
                "chains": [{"chainId": p["chainId"], "chainName": p["chainName"]} for p in favourites[:3]],
                "reason": "You have strong preferences for these chains",
            })
        if current:
            top = current[0]
            similar = similar_chains(top["chainId"])
            if similar:
                recommendations.append({
                    "type": "similar_chains",
                    "chains": similar[:2],
                    "reason": f"Similar to your favorite chain {top['chainName']}",
                })
        risk = session.execute(select(RiskProfile).where(RiskProfile.user_id == user_id)).scalar_one_or_none()
        if risk is not None:
            recommendations.append({
                "type": "risk_aligned",
                "chains": risk_aligned_chains(risk.risk_tolerance_score)[:2],
                "reason": "Aligned with your risk tolerance",
            })
        return recommendations

    # Combined profile and insights

    def _activity_pattern(self, session, user_id: int) -> Optional[Dict[str, Any]]:
        row = session.execute(select(ActivityPattern).where(ActivityPattern.user_id == user_id)).scalar_one_or_none()
        return activity_pattern_to_dict(row) if row is not None else None

    def profile(self, session, user_id: int) -> Dict[str, Any]:
        risk = self.get_risk_profile(session, user_id)
        chains = self.get_chain_preferences(session, user_id)
        activity = self._activity_pattern(session, user_id)
        insights = session.execute(
            select(PreferenceInsight)
            .where(PreferenceInsight.user_id == user_id, PreferenceInsight.is_read.is_(False))
            .order_by(PreferenceInsight.created_at.desc(), PreferenceInsight.id.desc())
            .limit(PROFILE_INSIGHT_LIMIT)
        ).scalars()
        evolution = session.execute(
            select(PreferenceEvolution)
            .where(PreferenceEvolution.user_id == user_id)
            .order_by(PreferenceEvolution.created_at.desc(), PreferenceEvolution.id.desc())
            .limit(PROFILE_EVOLUTION_LIMIT)
        ).scalars()
        return {
            "riskProfile": risk,
            "chainPreferences": chains,
            "activityPattern": activity,
            "insights": [insight_to_dict(i) for i in insights],
            "evolutionHistory": [
                {
                    "category": e.category,
                    "oldValue": e.old_value,
                    "newValue": e.new_value,
                    "changeReason": e.change_reason,
                    "trigger": e.trigger,
                    "createdAt": e.created_at.isoformat() if e.created_at else None,
                }
                for e in evolution
            ],
            "completeness": profile_completeness(risk, chains, activity),
            "lastUpdated": utcnow().isoformat(),
        }

    def analyze_all(self, session, user_id: int) -> Dict[str, Any]:
        chains = self.analyze_chains(session, user_id)
        activity = self.activity.analyze(session, user_id)
        return {
            "riskProfile": self.get_risk_profile(session, user_id),
            "chainPreferences": chains,
            "activityPattern": activity["pattern"],
        }

    def list_insights(self, session, user_id: int, insight_type: Optional[str] = None, unread_only: bool = False):
        query = select(PreferenceInsight).where(PreferenceInsight.user_id == user_id)
        if insight_type:
            query = query.where(PreferenceInsight.insight_type == insight_type)
        if unread_only:
            query = query.where(PreferenceInsight.is_read.is_(False))
        rows = session.execute(
            query.order_by(PreferenceInsight.created_at.desc(), PreferenceInsight.id.desc()).limit(INSIGHT_LIST_LIMIT)
        ).scalars()
        return [insight_to_dict(r) for r in rows]

    def mark_insight_read(self, session, user_id: int, insight_id: int):
        insight = session.get(PreferenceInsight, insight_id)
        if insight is None or insight.user_id != user_id:
            raise NotFound("Insight not found")
        insight.is_read = True
        session.commit()

    def mark_all_insights_read(self, session, user_id: int) -> int:
        updated = session.execute(
            update(PreferenceInsight)
            .where(PreferenceInsight.user_id == user_id, PreferenceInsight.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        ).rowcount
        session.commit()
        return updated or 0
