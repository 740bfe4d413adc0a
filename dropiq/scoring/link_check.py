import re
from urllib.parse import parse_qs, urlparse

from dropiq.scoring.security import IP_PATTERN, extract_domain

KNOWN_PHISHING_DOMAINS = (
    "phishing-site.com",
    "fake-airdrop.com",
    "scam-token.net",
    "malicious-wallet.org",
    "steal-wallet.xyz",
    "fake-dapp.io",
    "crypto-scam.site",
    "wallet-drainer.net",
)

TRUSTED_DOMAINS = (
    "ethereum.org",
    "polygon.technology",
    "bscscan.com",
    "arbiscan.io",
    "optimistic.etherscan.io",
    "basescan.org",
    "etherscan.io",
    "app.uniswap.org",
    "pancakeswap.finance",
    "app.sushi.com",
    "curve.fi",
    "aave.com",
    "compound.finance",
    "makerdao.com",
    "dydx.exchange",
)

WARNING_PATTERNS = (
    (re.compile(r"wallet", re.I), 'Contains "wallet" in domain - be cautious'),
    (re.compile(r"airdrop", re.I), 'Contains "airdrop" - verify authenticity'),
    (re.compile(r"free.*crypto", re.I), "Promises free crypto - likely suspicious"),
    (re.compile(r"claim.*token", re.I), "Token claiming site - verify carefully"),
    (re.compile(r"connect.*wallet", re.I), "Wallet connection required - ensure legitimacy"),
    (re.compile(r"[0-9]+\."), "Uses numbers in domain - common in phishing"),
    (re.compile(r"-"), "Uses hyphens in domain - verify authenticity"),
)
SECRET_PARAMS = ("private_key", "seed", "mnemonic", "secret")
PHISHING_TLDS = (".tk", ".ml", ".ga", ".cf", ".gq")
RISK_RANK = {"low": 0, "medium": 1, "high": 2}


def _escalate(current: str, level: str) -> str:
    return level if RISK_RANK[level] > RISK_RANK[current] else current


def check_link(url: str) -> dict:
    domain = extract_domain(url)
    if domain is None:
        return {
            "isSafe": False,
            "reason": "Invalid URL format",
            "riskLevel": "high",
            "warnings": ["The provided URL is not a valid web address"],
        }

    if any(bad in domain or domain in bad for bad in KNOWN_PHISHING_DOMAINS):
        return {
            "isSafe": False,
            "reason": "This domain is known for phishing activities",
            "riskLevel": "high",
            "warnings": [
                "This website has been reported for phishing attempts",
                "Users have lost funds to this domain",
                "Proceed with extreme caution or avoid entirely",
            ],
        }

    if any(domain == trusted or domain.endswith(f".{trusted}") for trusted in TRUSTED_DOMAINS):
        return {"isSafe": True, "reason": "This is a known and trusted domain", "riskLevel": "low", "warnings": []}

    warnings = []
    is_safe = True
    risk = "low"

    for pattern, warning in WARNING_PATTERNS:
        if pattern.search(domain):
            warnings.append(warning)
            risk = _escalate(risk, "medium")

    if not url.startswith("https://"):
        warnings.append("Not using HTTPS - data may not be encrypted")
        risk = _escalate(risk, "medium")

    params = parse_qs(urlparse(url).query, keep_blank_values=True)
    for param in SECRET_PARAMS:
        if param in params:
            warnings.append(f"Contains suspicious parameter: {param}")
            risk = _escalate(risk, "high")
            is_safe = False

    if len(domain) > 50:
        warnings.append("Unusually long domain name")
        risk = _escalate(risk, "medium")

    if IP_PATTERN.match(domain):
        warnings.append("Using IP address instead of domain name")
        risk = _escalate(risk, "high")
        is_safe = False

    if domain.endswith(PHISHING_TLDS):
        warnings.append("Uses suspicious top-level domain")
        risk = _escalate(risk, "high")
        is_safe = False

    if not warnings:
        return {
            "isSafe": True,
            "reason": "No obvious security threats detected, but always exercise caution",
            "riskLevel": "low",
            "warnings": ["Always verify the authenticity of websites before connecting your wallet"],
        }

    return {
        "isSafe": is_safe,
        "reason": "Some caution advised" if is_safe else "Security risks detected",
        "riskLevel": risk,
        "warnings": warnings,
    }
