from .eligibility import ELIGIBILITY_THRESHOLD, score_eligibility
from .link_check import check_link
from .security import analyze_security, extract_domain, is_typosquat, levenshtein, recommendation_for

__all__ = [
    "ELIGIBILITY_THRESHOLD",
    "score_eligibility",
    "check_link",
    "analyze_security",
    "extract_domain",
    "is_typosquat",
    "levenshtein",
    "recommendation_for",
]
