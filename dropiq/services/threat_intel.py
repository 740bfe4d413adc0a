import logging
from datetime import timedelta
from typing import Dict, List, Optional
from urllib.parse import urlparse

import requests
from sqlalchemy import delete, select

from dropiq.models import BlacklistEntry
from dropiq.models.base import utcnow

logger = logging.getLogger(__name__)

PHISHING_LIST_URL = "https://raw.githubusercontent.com/malware-traffic-analysis.net/phishing-urls/master/phishing-urls.txt"
SCAM_CONTRACTS_URL = "https://raw.githubusercontent.com/scamsScanners/ScamTokens/main/blacklist.txt"
CHAINABUSE_URL = "https://api.chainabuse.com/v0/reports"
THREAT_SOURCE = "github_threat_intelligence"
RETENTION_DAYS = 30
# values per IN (...) query when checking for existing entries
LOOKUP_CHUNK_SIZE = 500


def _is_contract(value: str) -> bool:
    return value.startswith("0x") and len(value) == 42


def _domain_from_line(line: str) -> Optional[str]:
    candidate = line if line.startswith("http") else f"https://{line}"
    try:
        host = urlparse(candidate).hostname
    except ValueError:
        host = None
    if host:
        return host.lower()
    return line.lower() if "." in line else None


class ThreatIntelFeed:
    """Public threat lists: curated GitHub lists and ChainAbuse reports."""

    def __init__(self, timeout: float = 10, chainabuse_api_key: Optional[str] = None):
        self.timeout = timeout
        self.chainabuse_api_key = chainabuse_api_key

    def _lines(self, url: str) -> List[str]:
        resp = requests.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return [line.strip() for line in resp.text.splitlines() if line.strip() and not line.strip().startswith("#")]

    def fetch_phishing_domains(self) -> List[str]:
        return [d for d in (_domain_from_line(line) for line in self._lines(PHISHING_LIST_URL)) if d]

    def fetch_scam_contracts(self) -> List[str]:
        return [line.lower() for line in self._lines(SCAM_CONTRACTS_URL) if _is_contract(line)]

    def fetch_chainabuse(self) -> List[str]:
        headers = {"Accept": "application/json"}
        if self.chainabuse_api_key:
            headers["Authorization"] = f"Bearer {self.chainabuse_api_key}"
        resp = requests.get(CHAINABUSE_URL, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        threats = []
        for report in resp.json().get("data") or []:
            for indicator in report.get("indicators") or []:
                if indicator.get("type") in ("domain", "address") and indicator.get("value"):
                    threats.append(indicator["value"].lower())
        return threats

    def collect(self) -> Dict[str, set]:
        """Union of every source; a failing source is logged and skipped."""
        domains, contracts = set(), set()
        for name, fetch in (
            ("phishing list", self.fetch_phishing_domains),
            ("scam contracts", self.fetch_scam_contracts),
            ("chainabuse", self.fetch_chainabuse),
        ):
            try:
                values = fetch()
            except (requests.RequestException, ValueError) as exc:
                logger.error("Threat source %s failed: %s", name, exc)
                continue
            for value in values:
                if _is_contract(value):
                    contracts.add(value)
                elif "." in value:
                    domains.add(value)
        return {"domains": domains, "contracts": contracts}


def _existing_values(session, entry_type: str, values: set) -> set:
    ordered = sorted(values)
    existing = set()
    for start in range(0, len(ordered), LOOKUP_CHUNK_SIZE):
        chunk = ordered[start:start + LOOKUP_CHUNK_SIZE]
        existing.update(
            session.execute(
                select(BlacklistEntry.value).where(BlacklistEntry.type == entry_type, BlacklistEntry.value.in_(chunk))
            ).scalars()
        )
    return existing


def update_threat_intelligence(session, feed: ThreatIntelFeed) -> Dict[str, int]:
    logger.info("Starting threat intelligence update")
    threats = feed.collect()
    added = {"domain": 0, "contract_address": 0}
    for entry_type, values in (("domain", threats["domains"]), ("contract_address", threats["contracts"])):
        if not values:
            continue
        existing = _existing_values(session, entry_type, values)
        for value in sorted(values - existing):
            session.add(BlacklistEntry(type=entry_type, value=value, source=THREAT_SOURCE))
            added[entry_type] += 1
    session.flush()

    cutoff = utcnow() - timedelta(days=RETENTION_DAYS)
    removed = session.execute(
        delete(BlacklistEntry)
        .where(BlacklistEntry.source == THREAT_SOURCE, BlacklistEntry.created_at < cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount
    session.commit()
    stats = {"domainsAdded": added["domain"], "contractsAdded": added["contract_address"], "removed": removed or 0}
    logger.info("Threat intelligence update completed: %s", stats)
    return stats
