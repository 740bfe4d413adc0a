import logging
from typing import Dict, Iterable, List

import requests
from sqlalchemy import select

from dropiq.models import Airdrop
from dropiq.models.base import utcnow
from dropiq.scoring import score_eligibility
from dropiq.services.chain_data import CHAIN_NAMES, chain_name

logger = logging.getLogger(__name__)


def _fetch(fetcher, address: str, chain_id: int, label: str, default):
    try:
        return fetcher(address)
    except (requests.RequestException, RuntimeError, ValueError) as exc:
        logger.error("Error fetching %s on chain %s: %s", label, chain_id, exc)
        return default


def supported_chains(provider) -> List[Dict]:
    configured = set(provider.supported_chains())
    return [
        {"chainId": cid, "name": name, "configured": cid in configured}
        for cid, name in CHAIN_NAMES.items()
    ]


def analyze_wallet(session, provider, address: str, chain_ids: Iterable[int]) -> Dict:
    """Score a wallet against every approved airdrop that declares requirements.

    Chains are walked one at a time; a chain without a client is skipped. A data
    source that fails on one chain counts as empty; the other sources still score.
    """
    chain_ids = list(chain_ids)
    airdrops = [
        a
        for a in session.execute(select(Airdrop).where(Airdrop.status == "approved")).scalars()
        if a.requirements
    ]

    eligible: List[Dict] = []
    token_balances: List[Dict] = []
    nft_holdings: List[Dict] = []
    totals = {"transactions": 0, "tokens": 0, "nfts": 0}
    analyzed = []

    for chain_id in chain_ids:
        client = provider.get_client(chain_id)
        if client is None:
            logger.warning("Skipping chain %s - no Alchemy client available", chain_id)
            continue
        transactions = _fetch(client.get_transaction_history, address, chain_id, "transaction history", [])
        tokens = _fetch(client.get_token_balances, address, chain_id, "token balances", [])
        nfts = _fetch(client.get_nft_holdings, address, chain_id, "NFT holdings", {"nfts": [], "totalCount": 0})

        analyzed.append(chain_id)
        totals["transactions"] += len(transactions)
        totals["tokens"] += len(tokens)
        totals["nfts"] += nfts.get("totalCount", len(nfts.get("nfts", [])))
        name = chain_name(chain_id)
        token_balances.extend({**t, "chainId": chain_id, "chainName": name} for t in tokens)
        nft_holdings.extend({**n, "chainId": chain_id, "chainName": name} for n in nfts.get("nfts", []))

        for airdrop in airdrops:
            result = score_eligibility(airdrop.requirements, transactions, tokens, nfts.get("nfts", []))
            if result["isEligible"]:
                eligible.append(
                    {
                        "airdropId": airdrop.id,
                        "projectName": airdrop.name,
                        "slug": airdrop.slug,
                        "chainId": chain_id,
                        "confidenceScore": result["confidenceScore"],
                        "reason": result["reason"],
                        "requirements": airdrop.requirements,
                    }
                )

    # first hit per airdrop wins, then best confidence first
    seen = set()
    unique = []
    for item in eligible:
        if item["airdropId"] in seen:
            continue
        seen.add(item["airdropId"])
        unique.append(item)
    unique.sort(key=lambda item: item["confidenceScore"], reverse=True)

    return {
        "address": address,
        "eligibleAirdrops": unique,
        "tokenBalances": token_balances,
        "nftHoldings": nft_holdings,
        "analysisSummary": {
            "totalChains": len(chain_ids),
            "analyzedChains": analyzed,
            "totalTransactions": totals["transactions"],
            "totalTokens": totals["tokens"],
            "totalNfts": totals["nfts"],
            "analysisTimestamp": utcnow().isoformat(),
        },
    }
