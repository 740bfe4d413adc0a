import logging
from decimal import Decimal
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

ALCHEMY_NETWORKS = {
    1: "eth-mainnet",
    137: "polygon-mainnet",
    56: "bnb-mainnet",
    42161: "arb-mainnet",
    10: "opt-mainnet",
    8453: "base-mainnet",
}

CHAIN_NAMES = {
    1: "Ethereum",
    137: "Polygon",
    56: "BSC",
    42161: "Arbitrum",
    10: "Optimism",
    8453: "Base",
}

TRANSFER_CATEGORIES = ["external", "internal", "erc20", "erc721", "erc1155"]


def chain_name(chain_id: int) -> str:
    return CHAIN_NAMES.get(chain_id, f"Chain {chain_id}")


def format_units(value: int, decimals: int) -> str:
    """Render an integer amount of base units as a plain decimal string."""
    amount = Decimal(value).scaleb(-decimals) if decimals else Decimal(value)
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class AlchemyClient:
    """Thin JSON-RPC / NFT API client for one Alchemy network."""

    def __init__(self, chain_id: int, api_key: str, timeout: float = 10):
        self.chain_id = chain_id
        self.network = ALCHEMY_NETWORKS[chain_id]
        self.api_key = api_key
        self.timeout = timeout
        self.rpc_url = f"https://{self.network}.g.alchemy.com/v2/{api_key}"
        self.nft_url = f"https://{self.network}.g.alchemy.com/nft/v3/{api_key}"

    def _rpc(self, method: str, params: list):
        resp = requests.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        if body.get("error"):
            raise RuntimeError(f"{method} failed: {body['error']}")
        return body.get("result") or {}

    def get_transaction_history(self, address: str) -> List[Dict]:
        result = self._rpc(
            "alchemy_getAssetTransfers",
            [
                {
                    "fromBlock": "0x0",
                    "fromAddress": address,
                    "category": TRANSFER_CATEGORIES,
                    "maxCount": "0x3e8",
                    "order": "desc",
                }
            ],
        )
        return result.get("transfers") or []

    def get_token_metadata(self, contract_address: str) -> Dict:
        return self._rpc("alchemy_getTokenMetadata", [contract_address])

    def get_token_balances(self, address: str) -> List[Dict]:
        """Non-zero ERC-20 balances with decimals applied.

        ``balance`` is in whole-token units as a decimal string; the untouched
        on-chain integer is kept under ``rawBalance``.
        """
        result = self._rpc("alchemy_getTokenBalances", [address, "erc20"])
        tokens = []
        for entry in result.get("tokenBalances") or []:
            raw = entry.get("tokenBalance") or "0x0"
            try:
                balance = int(raw, 16)
            except (TypeError, ValueError):
                continue
            if balance == 0:
                continue
            contract = entry.get("contractAddress")
            metadata = self.get_token_metadata(contract)
            decimals = metadata.get("decimals")
            if not isinstance(decimals, int):
                decimals = 0
            tokens.append({
                "contractAddress": contract,
                "name": metadata.get("name"),
                "symbol": metadata.get("symbol"),
                "decimals": decimals,
                "rawBalance": str(balance),
                "balance": format_units(balance, decimals),
            })
        return tokens

    def get_nft_holdings(self, address: str) -> Dict:
        resp = requests.get(
            f"{self.nft_url}/getNFTsForOwner",
            params={"owner": address, "pageSize": 100},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        nfts = data.get("ownedNfts") or []
        return {"nfts": nfts, "totalCount": data.get("totalCount", len(nfts))}


class ChainDataProvider:
    """Per-chain Alchemy clients, created lazily and cached by chain id."""

    def __init__(self, api_keys: Dict[int, Optional[str]], timeout: float = 10):
        self.api_keys = api_keys or {}
        self.timeout = timeout
        self._clients: Dict[int, AlchemyClient] = {}

    def supported_chains(self) -> List[int]:
        return [cid for cid in ALCHEMY_NETWORKS if self.api_keys.get(cid)]

    def get_client(self, chain_id: int) -> Optional[AlchemyClient]:
        if chain_id in self._clients:
            return self._clients[chain_id]
        api_key = self.api_keys.get(chain_id)
        if chain_id not in ALCHEMY_NETWORKS or not api_key:
            logger.warning("No Alchemy configuration found for chain %s", chain_id)
            return None
        client = AlchemyClient(chain_id, api_key, timeout=self.timeout)
        self._clients[chain_id] = client
        return client
