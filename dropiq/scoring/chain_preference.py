import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from dropiq.models.base import as_utc

# characteristics are rated 1-10
CHAIN_PROFILES = {
    "eth": {"name": "Ethereum", "gasCost": 9, "speed": 3, "security": 10, "maturity": 10, "airdropFrequency": 8, "averageReward": 9, "difficulty": 7},
    "polygon": {"name": "Polygon", "gasCost": 3, "speed": 8, "security": 8, "maturity": 8, "airdropFrequency": 9, "averageReward": 6, "difficulty": 4},
    "bsc": {"name": "Binance Smart Chain", "gasCost": 2, "speed": 9, "security": 7, "maturity": 7, "airdropFrequency": 8, "averageReward": 5, "difficulty": 3},
    "arbitrum": {"name": "Arbitrum", "gasCost": 4, "speed": 8, "security": 9, "maturity": 6, "airdropFrequency": 7, "averageReward": 8, "difficulty": 6},
    "optimism": {"name": "Optimism", "gasCost": 4, "speed": 8, "security": 9, "maturity": 6, "airdropFrequency": 7, "averageReward": 8, "difficulty": 6},
    "avalanche": {"name": "Avalanche", "gasCost": 3, "speed": 9, "security": 8, "maturity": 5, "airdropFrequency": 6, "averageReward": 6, "difficulty": 5},
    "base": {"name": "Base", "gasCost": 3, "speed": 8, "security": 8, "maturity": 4, "airdropFrequency": 6, "averageReward": 7, "difficulty": 4},
    "zksync": {"name": "zkSync", "gasCost": 2, "speed": 9, "security": 8, "maturity": 4, "airdropFrequency": 8, "averageReward": 8, "difficulty": 5},
}
DEFAULT_CHAIN = "eth"

PREFERENCE_WEIGHTS = {
    "usage_frequency": 30,
    "success_rate": 25,
    "gas_efficiency": 20,
    "chain_characteristics": 15,
    "recency": 10,
}

# rough risk level per chain for risk-aligned suggestions
CHAIN_RISK_LEVELS = (
    ("eth", 20),
    ("arbitrum", 35),
    ("optimism", 35),
    ("polygon", 40),
    ("bsc", 50),
    ("avalanche", 55),
    ("base", 55),
    ("zksync", 60),
)

SIMILAR_CHAINS = {
    "eth": ("arbitrum", "optimism", "polygon"),
    "arbitrum": ("eth", "optimism", "base"),
    "optimism": ("eth", "arbitrum", "base"),
    "base": ("optimism", "arbitrum", "eth"),
    "polygon": ("eth", "bsc", "zksync"),
    "bsc": ("polygon", "avalanche"),
    "avalanche": ("eth", "polygon", "bsc"),
    "zksync": ("eth", "arbitrum", "polygon"),
}


def chain_display_name(chain_id: str) -> str:
    profile = CHAIN_PROFILES.get(chain_id)
    return profile["name"] if profile else f"Chain {chain_id}"


def characteristic_score(chain: Dict[str, Any], risk_profile: Optional[Dict[str, Any]]) -> float:
    """How well a chain's traits suit the user's risk profile, 0-100 (50 without a profile)."""
    score = 50
    if not risk_profile:
        return score
    if risk_profile["riskToleranceScore"] > 70:
        score += (10 - chain["maturity"]) * 3
        score += chain["difficulty"] * 2
    else:
        score += chain["security"] * 3
        score += chain["maturity"] * 2
    if risk_profile.get("financialCapacity") == "low":
        score += (10 - chain["gasCost"]) * 4
    if (risk_profile.get("technicalKnowledge") or 0) < 5:
        score += (10 - chain["difficulty"]) * 3
    return min(100, max(0, score))


def interaction_trend(interactions: List[Dict[str, Any]]) -> str:
    """Compare the three latest interactions with the three before them."""
    if len(interactions) < 3:
        return "stable"
    ordered = sorted(interactions, key=lambda i: i["timestamp"])
    recent = ordered[-3:]
    older = ordered[-6:-3]
    if not older:
        return "increasing"
    if len(recent) > len(older) * 1.5:
        return "increasing"
    if len(recent) < len(older) * 0.5:
        return "decreasing"
    return "stable"


def chain_recommendation(chain_name: str, score: float) -> str:
    if score > 80:
        return f"Excellent match! {chain_name} suits your profile perfectly."
    if score > 60:
        return f"Good choice! {chain_name} aligns well with your preferences."
    if score > 40:
        return f"Consider {chain_name} if you want to explore new options."
    return f"{chain_name} may not be the best fit for your current profile."


def score_chain(
    chain_id: str,
    interactions: List[Dict[str, Any]],
    risk_profile: Optional[Dict[str, Any]],
    now: datetime,
) -> Dict[str, Any]:
    """Weighted preference for one chain from the user's interactions on it.

    Each interaction is a dict with ``gasSpent``, ``success`` and an aware
    ``timestamp``. A chain never used scores gas efficiency from its typical
    gas cost and gets no recency credit.
    """
    chain = CHAIN_PROFILES[chain_id]
    count = len(interactions)
    successes = sum(1 for i in interactions if i["success"])
    success_rate = successes / count * 100 if count else 0
    total_gas = sum(i["gasSpent"] for i in interactions)
    avg_gas = total_gas / count if count else chain["gasCost"] * 10
    if count:
        last_used = max(as_utc(i["timestamp"]) for i in interactions)
        recency = max(0, 100 - (now - last_used).days * 2)
    else:
        last_used = None
        recency = 0

    factor_scores = {
        "usage_frequency": min(100, count * 10),
        "success_rate": success_rate,
        "gas_efficiency": max(0, 100 - avg_gas / 2),
        "chain_characteristics": characteristic_score(chain, risk_profile),
        "recency": recency,
    }
    total = sum(factor_scores[name] * weight / 100 for name, weight in PREFERENCE_WEIGHTS.items())
    # halves round up
    score = math.floor(total + 0.5)
    return {
        "chainId": chain_id,
        "chainName": chain["name"],
        "preferenceScore": score,
        "usageFrequency": count,
        "totalGasSpent": total_gas,
        "successRate": round(success_rate, 2),
        "avgGasCost": round(avg_gas, 4),
        "lastUsedAt": last_used.isoformat() if last_used else None,
        "preferenceFactors": [
            {"factor": name, "weight": weight, "score": round(factor_scores[name], 2)}
            for name, weight in PREFERENCE_WEIGHTS.items()
        ],
        "trend": interaction_trend(interactions),
        "recommendation": chain_recommendation(chain["name"], score),
    }


def chain_insights(preferences: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    insights = []
    pricey = [p["chainName"] for p in preferences if p["avgGasCost"] > 50 and p["preferenceScore"] > 70]
    if pricey:
        insights.append({
            "title": "High Gas Cost Preference",
            "description": f"You frequently use {', '.join(pricey)} despite high gas costs. Consider optimizing for efficiency.",
            "confidence": 0.8,
            "actionable": ["Explore Layer 2 alternatives for similar opportunities with lower costs."],
        })
    used = [p for p in preferences if p["usageFrequency"] > 0]
    if len(used) < 3:
        insights.append({
            "title": "Limited Chain Diversity",
            "description": "You primarily use one or two blockchains. Diversifying could expose you to more opportunities.",
            "confidence": 0.9,
            "actionable": ["Explore airdrops on other compatible chains to maximize your opportunities."],
        })
    struggling = [p["chainName"] for p in preferences if p["successRate"] < 50 and p["usageFrequency"] > 5]
    if struggling:
        insights.append({
            "title": "Low Success Rate Detected",
            "description": f"Your success rate on {', '.join(struggling)} is below 50%.",
            "confidence": 0.8,
            "actionable": ["Review your approach on these chains or focus on ones where you have better success."],
        })
    return insights


def risk_aligned_chains(risk_score: float) -> List[Dict[str, Any]]:
    return [
        {"chainId": cid, "chainName": chain_display_name(cid), "reason": f"Risk level {level} matches your profile"}
        for cid, level in CHAIN_RISK_LEVELS
        if level <= risk_score + 20
    ]


def similar_chains(chain_id: str) -> List[Dict[str, Any]]:
    return [
        {"chainId": cid, "chainName": chain_display_name(cid), "reason": "Similar technology and ecosystem"}
        for cid in SIMILAR_CHAINS.get(chain_id, ())
    ]
