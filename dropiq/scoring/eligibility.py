from typing import Any, Dict, Iterable, List, Optional

ELIGIBILITY_THRESHOLD = 30


def _lower(value) -> Optional[str]:
    return value.lower() if isinstance(value, str) else None


def _lowered_list(values) -> List[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return [v.lower() for v in values if isinstance(v, str)]


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def score_eligibility(
    requirements: Optional[Dict[str, Any]],
    transactions: Iterable[Dict[str, Any]],
    token_balances: Iterable[Dict[str, Any]],
    nft_holdings: Iterable[Dict[str, Any]],
) -> Dict[str, Any]:
    """Heuristic confidence that a wallet qualifies for an airdrop.

    Each satisfied requirement adds a fixed number of points; the sum is
    clamped to 100 and a wallet is eligible from 30 points up.
    """
    if not requirements:
        return {"isEligible": False, "confidenceScore": 0, "reason": "No requirements defined"}

    transactions = list(transactions or [])
    token_balances = list(token_balances or [])
    nft_holdings = list(nft_holdings or [])
    score = 0
    reasons = []

    contracts = _lowered_list(requirements.get("contracts"))
    if contracts:
        if any((_lower(tx.get("to")) or _lower(tx.get("from"))) in contracts for tx in transactions):
            score += 40
            reasons.append("Interacted with required contracts")

    min_balance = requirements.get("minBalance")
    if isinstance(min_balance, dict) and min_balance.get("token"):
        token = _lower(min_balance.get("token"))
        holding = next((t for t in token_balances if _lower(t.get("contractAddress")) == token), None)
        if holding is not None and _to_float(holding.get("balance") or 0) >= _to_float(min_balance.get("amount")):
            score += 30
            reasons.append("Holds required token balance")

    collection = _lower(requirements.get("nftCollection"))
    if collection:
        if any(_lower((nft.get("contract") or {}).get("address")) == collection for nft in nft_holdings):
            score += 30
            reasons.append("Holds required NFT collection")

    min_transactions = _to_float(requirements.get("minTransactions"))
    if min_transactions > 0:
        tx_count = len(transactions)
        if tx_count >= min_transactions:
            score += 20
            reasons.append(f"Sufficient transaction activity ({tx_count} transactions)")

    dexes = _lowered_list(requirements.get("dexUsage"))
    if dexes and any(_lower(tx.get("to")) in dexes for tx in transactions):
        score += 25
        reasons.append("Used required DEX protocols")

    bridges = _lowered_list(requirements.get("bridgeUsage"))
    if bridges and any(_lower(tx.get("to")) in bridges for tx in transactions):
        score += 25
        reasons.append("Used required bridge protocols")

    score = max(0, min(score, 100))
    return {
        "isEligible": score >= ELIGIBILITY_THRESHOLD,
        "confidenceScore": score,
        "reason": ", ".join(reasons) if reasons else "No matching requirements found",
    }
