import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class TokenSecurityClient:
    """GoPlus token security lookups (Ethereum mainnet endpoint)."""

    def __init__(self, base_url: str, timeout: float = 10):
        self.base_url = base_url
        self.timeout = timeout

    def fetch(self, contract_address: str) -> Optional[Dict[str, Any]]:
        try:
            resp = requests.get(self.base_url, params={"contract_addresses": contract_address}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("GoPlus lookup failed for %s: %s", contract_address, exc)
            return None
        result = data.get("result") or {}
        return result.get(contract_address.lower()) or result.get(contract_address)

    __call__ = fetch
