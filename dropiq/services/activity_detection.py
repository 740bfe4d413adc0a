import logging
from collections import defaultdict
from typing import Any, Dict, List

import requests
from sqlalchemy import select

from dropiq.models import Activity, Airdrop, UserAirdropStatus, Wallet
from dropiq.models.base import utcnow

logger = logging.getLogger(__name__)

WALLET_CHAIN_IDS = {
    "ethereum": 1,
    "polygon": 137,
    "bsc": 56,
    "arbitrum": 42161,
    "optimism": 10,
    "base": 8453,
}


def _contract_index(statuses) -> Dict[str, List[UserAirdropStatus]]:
    index = defaultdict(list)
    for status in statuses:
        requirements = status.airdrop.requirements if status.airdrop else None
        contracts = requirements.get("contracts") if isinstance(requirements, dict) else None
        for address in contracts or []:
            if isinstance(address, str):
                index[address.lower()].append(status)
    return index


class ActivityDetector:
    """Moves "interested" airdrops to "in_progress" once a wallet touches a required contract."""

    def __init__(self, chain_data, alerts):
        self.chain_data = chain_data
        self.alerts = alerts

    def _transactions(self, wallet: Wallet) -> List[Dict[str, Any]]:
        chain_id = WALLET_CHAIN_IDS.get((wallet.chain or "ethereum").lower())
        client = self.chain_data.get_client(chain_id) if chain_id else None
        if client is None:
            logger.warning("No chain client for wallet %s on %s", wallet.address, wallet.chain)
            return []
        try:
            return client.get_transaction_history(wallet.address)
        except (requests.RequestException, RuntimeError, ValueError) as exc:
            logger.error("Error fetching transactions for wallet %s: %s", wallet.address, exc)
            return []

    def detect(self, session, user_id: int) -> Dict[str, Any]:
        statuses = session.execute(
            select(UserAirdropStatus)
            .join(Airdrop, UserAirdropStatus.airdrop_id == Airdrop.id)
            .where(UserAirdropStatus.user_id == user_id, UserAirdropStatus.status == "interested")
        ).scalars().all()
        wallets = session.execute(select(Wallet).where(Wallet.user_id == user_id)).scalars().all()
        summary = {"airdropsChecked": len(statuses), "walletsChecked": len(wallets), "detected": []}
        index = _contract_index(statuses)
        if not index or not wallets:
            logger.info("Nothing to check for user %s (%s airdrops, %s wallets)", user_id, len(statuses), len(wallets))
            return summary

        matched = {}
        for wallet in wallets:
            for tx in self._transactions(wallet):
                for side in ("to", "from"):
                    address = tx.get(side)
                    if not isinstance(address, str):
                        continue
                    for status in index.get(address.lower(), []):
                        matched.setdefault(status.id, (status, address.lower(), tx.get("hash"), wallet.address))

        now = utcnow()
        for status, contract, tx_hash, wallet_address in matched.values():
            status.status = "in_progress"
            status.started_at = now
            detail = {
                "airdropId": status.airdrop_id,
                "contractAddress": contract,
                "transactionHash": tx_hash,
                "walletAddress": wallet_address,
                "detectedAt": now.isoformat(),
            }
            session.add(Activity(type="airdrop_activity_detected", user_id=user_id, extra=detail))
            summary["detected"].append(detail)
        session.commit()

        for detail in summary["detected"]:
            self.alerts.send_targeted_alert(
                user_id,
                {
                    "type": "activity_detected",
                    "severity": "info",
                    "title": "Airdrop Activity Detected",
                    "message": 'We detected activity on your wallet for the airdrop. Your status has been updated to "In Progress".',
                    "metadata": detail,
                },
            )
        logger.info("Detected %s airdrop activities for user %s", len(summary["detected"]), user_id)
        return summary
