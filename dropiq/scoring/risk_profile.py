from typing import Any, Dict, List

# questionnaire answers are 1-5; weights sum to 1
RISK_WEIGHTS = {
    "investmentExperience": 0.15,
    "riskCapacity": 0.20,
    "timeHorizon": 0.15,
    "technicalKnowledge": 0.10,
    "securityPriority": 0.15,
    "lossTolerance": 0.15,
    "diversificationUnderstanding": 0.05,
    "volatilityComfort": 0.05,
}
RISK_QUESTIONS = tuple(RISK_WEIGHTS)

RISK_CATEGORY_BANDS = (
    (20, "conservative"),
    (40, "moderate"),
    (60, "balanced"),
    (80, "growth"),
    (100, "aggressive"),
)


def risk_category(score: float) -> str:
    for upper, name in RISK_CATEGORY_BANDS:
        if score <= upper:
            return name
    return "aggressive"


def financial_capacity(risk_capacity: int, investment_experience: int) -> str:
    combined = (risk_capacity + investment_experience) / 2
    if combined <= 2:
        return "low"
    if combined <= 3:
        return "medium"
    if combined <= 4:
        return "high"
    return "very_high"


def loss_acceptance(loss_tolerance: int, risk_capacity: int) -> int:
    """Acceptable loss in percent: up to 20 from tolerance plus up to 10 from capacity."""
    return round(loss_tolerance / 5 * 20 + risk_capacity / 5 * 10)


def time_horizon(answer: int) -> str:
    if answer <= 2:
        return "short"
    if answer <= 4:
        return "medium"
    return "long"


def experience_level(answer: int) -> str:
    if answer <= 1:
        return "beginner"
    if answer <= 3:
        return "intermediate"
    if answer <= 4:
        return "advanced"
    return "expert"


def answer_consistency(answers: Dict[str, int]) -> float:
    """0.5 baseline raised when related answers agree with each other."""
    score = 0.5
    if abs(answers["investmentExperience"] - answers["technicalKnowledge"]) <= 1:
        score += 0.2
    if abs(answers["riskCapacity"] - answers["lossTolerance"]) <= 1:
        score += 0.2
    if answers["securityPriority"] >= 4:
        score += 0.1
    return round(min(1.0, score), 2)


def risk_recommendations(category: str, experience: str) -> List[str]:
    if category == "conservative":
        tips = [
            "Focus on established projects with low risk scores",
            "Never invest more than you can afford to lose",
            "Use hardware wallets for all interactions",
        ]
    elif category == "aggressive":
        tips = [
            "Consider higher-risk, higher-reward opportunities",
            "Diversify across multiple risk categories",
            "Set clear stop-loss limits",
        ]
    else:
        tips = [
            "Maintain a balanced portfolio of risk levels",
            "Research each project thoroughly before participating",
            "Start with smaller investments to test the waters",
        ]
    if experience == "beginner":
        tips += [
            "Start with testnet interactions to learn the process",
            "Follow educational content about DeFi security",
        ]
    return tips[:5]


def assess_risk_tolerance(answers: Dict[str, int]) -> Dict[str, Any]:
    """Score a completed risk questionnaire.

    ``answers`` must hold every key of ``RISK_QUESTIONS`` as an integer 1-5.
    The weighted score is the answers rescaled to 0-100 and combined with
    ``RISK_WEIGHTS``. Knowledge and security answers are also reported on a
    1-10 scale.
    """
    weighted = 0.0
    factors = []
    for key, weight in RISK_WEIGHTS.items():
        score = answers[key] / 5 * 100
        weighted += score * weight
        factors.append({"factor": key, "weight": round(weight * 100), "score": round(score)})

    score = min(100, max(0, round(weighted)))
    category = risk_category(score)
    experience = experience_level(answers["investmentExperience"])
    return {
        "riskToleranceScore": score,
        "riskCategory": category,
        "financialCapacity": financial_capacity(answers["riskCapacity"], answers["investmentExperience"]),
        "lossAcceptance": loss_acceptance(answers["lossTolerance"], answers["riskCapacity"]),
        "timeHorizon": time_horizon(answers["timeHorizon"]),
        "experienceLevel": experience,
        "technicalKnowledge": round(answers["technicalKnowledge"] / 5 * 10),
        "securityConsciousness": round(answers["securityPriority"] / 5 * 10),
        "recommendations": risk_recommendations(category, experience),
        "riskFactors": factors,
        "confidenceScore": answer_consistency(answers),
    }


def risk_insights(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    insights = []
    if result["riskToleranceScore"] > 70 and result["experienceLevel"] == "beginner":
        insights.append({
            "title": "High Risk Tolerance, Low Experience",
            "description": "You show high risk tolerance but have limited experience. "
            "Consider starting with lower-risk projects to build experience.",
            "confidence": 0.8,
            "actionable": ["Focus on educational content and start with established projects."],
        })
    if result["securityConsciousness"] < 6:
        insights.append({
            "title": "Security Awareness Gap",
            "description": "Your security awareness score suggests room for improvement in protecting your assets.",
            "confidence": 0.9,
            "actionable": ["Complete the security best practices guide before participating in airdrops."],
        })
    return insights
