import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

SEVERITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}
URL_FLAG_POINTS = {"critical": 40, "high": 25, "medium": 15, "low": 5}
BLACKLIST_POINTS = 80

POPULAR_DOMAINS = (
    "ethereum.org",
    "uniswap.org",
    "pancakeswap.finance",
    "sushi.com",
    "curve.fi",
    "aave.com",
    "compound.finance",
    "metamask.io",
    "opensea.io",
    "discord.com",
    "telegram.org",
    "twitter.com",
)
SUSPICIOUS_PARAMS = ("private_key", "seed", "mnemonic", "secret", "phrase")
SUSPICIOUS_TLDS = (".tk", ".ml", ".ga", ".cf", ".gq", ".top", ".click", ".download")
IP_PATTERN = re.compile(r"^\d+\.\d+\.\d+\.\d+$")
LEADING_INT = re.compile(r"\s*[+-]?\d+")


@dataclass
class DomainPattern:
    type: str
    severity: str
    pattern: re.Pattern


DOMAIN_PATTERNS = (
    DomainPattern("WALLET_KEYWORD", "medium", re.compile(r"wallet", re.I)),
    DomainPattern("AIRDROP_KEYWORD", "medium", re.compile(r"airdrop", re.I)),
    DomainPattern("FREE_CRYPTO_PROMISE", "high", re.compile(r"free.*crypto", re.I)),
    DomainPattern("TOKEN_CLAIM", "medium", re.compile(r"claim.*token", re.I)),
    DomainPattern("NUMBERS_IN_DOMAIN", "medium", re.compile(r"[0-9]+\.")),
)


@dataclass
class GoPlusCheck:
    type: str
    severity: str
    points: int
    message: Callable[[Dict[str, Any]], str]
    condition: Callable[[Dict[str, Any]], bool]


def _leading_int(raw) -> Optional[int]:
    """Integer prefix of a GoPlus string field ("10.5" -> 10), None when there is none."""
    match = LEADING_INT.match(str(raw))
    return int(match.group(0)) if match else None


def _tax_above(key: str, limit: int) -> Callable[[Dict[str, Any]], bool]:
    def check(data: Dict[str, Any]) -> bool:
        raw = data.get(key)
        if not raw:
            return False
        value = _leading_int(raw)
        return value is not None and value > limit

    return check


GOPLUS_CHECKS = (
    GoPlusCheck(
        "UNLIMITED_APPROVAL", "high", 30,
        lambda d: "This contract can spend an unlimited amount of your tokens",
        lambda d: d.get("approval_risk") == "1",
    ),
    GoPlusCheck(
        "HONEYPOT_RISK", "critical", 50,
        lambda d: "You may not be able to sell tokens from this contract",
        lambda d: d.get("honeypot_risk") == "1",
    ),
    GoPlusCheck(
        "ANTI_WHALE_MECHANISM", "medium", 20,
        lambda d: "This contract limits large token sales",
        lambda d: d.get("is_anti_whale") == "1",
    ),
    GoPlusCheck(
        "HONEYPOT", "critical", 60,
        lambda d: "This contract appears to be a honeypot",
        lambda d: d.get("is_honeypot") == "1",
    ),
    GoPlusCheck(
        "HIGH_BUY_TAX", "medium", 15,
        lambda d: f"High buy tax: {d.get('buy_tax')}%",
        _tax_above("buy_tax", 10),
    ),
    GoPlusCheck(
        "HIGH_SELL_TAX", "medium", 15,
        lambda d: f"High sell tax: {d.get('sell_tax')}%",
        _tax_above("sell_tax", 10),
    ),
)


def levenshtein(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def is_typosquat(domain: str) -> bool:
    """Within edit distance 1-2 of a popular domain without being that domain."""
    return any(0 < levenshtein(domain, popular) <= 2 for popular in POPULAR_DOMAINS)


def extract_domain(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.hostname:
        return None
    return parsed.hostname.lower()


def _flag(flag_type: str, message: str, severity: str) -> Dict[str, str]:
    return {"type": flag_type, "message": message, "severity": severity}


def url_red_flags(url: str, domain: str) -> List[Dict[str, str]]:
    flags = []
    if not url.startswith("https://"):
        flags.append(_flag("NO_HTTPS", "Not using HTTPS - data may not be encrypted", "medium"))

    params = parse_qs(urlparse(url).query, keep_blank_values=True)
    for param in SUSPICIOUS_PARAMS:
        if param in params:
            flags.append(_flag("SUSPICIOUS_PARAMS", f"Contains suspicious parameter: {param}", "critical"))

    if len(domain) > 50:
        flags.append(_flag("LONG_DOMAIN", "Unusually long domain name", "medium"))
    if IP_PATTERN.match(domain):
        flags.append(_flag("IP_ADDRESS", "Using IP address instead of domain name", "high"))
    if domain.endswith(SUSPICIOUS_TLDS):
        flags.append(_flag("SUSPICIOUS_TLD", "Uses suspicious top-level domain", "high"))
    if is_typosquat(domain):
        flags.append(_flag("TYPOSQUATTING", "Domain appears to be imitating a popular website", "high"))

    for rule in DOMAIN_PATTERNS:
        if rule.pattern.search(domain):
            label = rule.type.replace("_", " ", 1).lower()
            flags.append(_flag(rule.type, f"Suspicious pattern detected in domain: {label}", rule.severity))
    return flags


def recommendation_for(score: int) -> str:
    if score >= 70:
        return "AVOID"
    if score >= 30:
        return "CAUTION"
    return "SAFE"


def analyze_security(
    contract_address: Optional[str] = None,
    url: Optional[str] = None,
    blacklist_lookup: Optional[Callable[[str, str], Optional[Any]]] = None,
    token_security: Optional[Callable[[str], Optional[Dict[str, Any]]]] = None,
) -> Dict[str, Any]:
    """Score a contract address and/or URL from 0 (safe) to 100 (avoid).

    `blacklist_lookup(type, value)` returns a blacklist entry (anything with a
    `source` attribute) or None. `token_security(address)` returns the GoPlus
    token record or None; it is only consulted when nothing was blacklisted.
    """
    red_flags: List[Dict[str, str]] = []
    score = 0
    analysis = {"blacklistCheck": False, "goPlusAnalysis": None, "phishingCheck": False, "additionalChecks": []}
    domain = extract_domain(url)

    if contract_address and blacklist_lookup:
        entry = blacklist_lookup("contract_address", contract_address.lower())
        if entry is not None:
            red_flags.append(_flag(
                "BLACKLISTED_CONTRACT",
                f"This contract address is on our blacklist ({entry.source})",
                "critical",
            ))
            analysis["blacklistCheck"] = True
            score += BLACKLIST_POINTS

    if domain and blacklist_lookup:
        entry = blacklist_lookup("domain", domain)
        if entry is not None:
            red_flags.append(_flag("BLACKLISTED_DOMAIN", f"This domain is on our blacklist ({entry.source})", "critical"))
            analysis["blacklistCheck"] = True
            score += BLACKLIST_POINTS

    if contract_address and not analysis["blacklistCheck"] and token_security:
        data = token_security(contract_address)
        analysis["goPlusAnalysis"] = data
        if data:
            for check in GOPLUS_CHECKS:
                if check.condition(data):
                    red_flags.append(_flag(check.type, check.message(data), check.severity))
                    score += check.points

    if url and domain and not analysis["blacklistCheck"]:
        flags = url_red_flags(url, domain)
        red_flags.extend(flags)
        analysis["phishingCheck"] = bool(flags)
        score += sum(URL_FLAG_POINTS[f["severity"]] for f in flags)

    score = min(score, 100)
    # sorted() is stable, so flags keep insertion order within a severity
    red_flags = sorted(red_flags, key=lambda f: -SEVERITY_ORDER[f["severity"]])
    return {
        "riskScore": score,
        "recommendation": recommendation_for(score),
        "redFlags": red_flags,
        "analysis": analysis,
    }
