import hashlib
import hmac
import json
import time

from eth_account import Account
from eth_account.messages import encode_defunct

from dropiq.models import Airdrop
from dropiq.services.payments import PaymentGateway
from dropiq.services.threat_intel import ThreatIntelFeed

STRIPE_SECRET = "sk_test_dropiq"
WEBHOOK_SECRET = "whsec_dropiq_test"


class FakePaymentGateway(PaymentGateway):
    """Real webhook verification; Stripe API calls replaced with canned objects."""

    def __init__(self):
        super().__init__(STRIPE_SECRET, WEBHOOK_SECRET, "http://localhost:3000")
        self.checkouts = []
        self.refunds = []
        self.fail_refund = False

    def create_checkout_session(self, airdrop, tier, submitted_by=None):
        self.require_configured()
        session_id = f"cs_test_{len(self.checkouts) + 1}"
        self.checkouts.append({"id": session_id, "airdropId": airdrop.id, "tier": tier})
        return {"id": session_id, "url": f"https://checkout.stripe.com/c/pay/{session_id}"}

    def retrieve_session(self, session_id):
        return {"id": session_id, "payment_intent": f"pi_for_{session_id}"}

    def refund(self, payment_intent):
        if self.fail_refund:
            raise RuntimeError("card_declined")
        self.refunds.append(payment_intent)
        return {"id": f"re_{len(self.refunds)}", "amount": 1000, "status": "succeeded"}

    def create_portal_session(self, customer_id):
        return {"url": f"https://billing.stripe.com/p/session/{customer_id}"}


def sign_webhook(payload, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    timestamp = int(timestamp or time.time())
    body = payload if isinstance(payload, bytes) else payload.encode()
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class FakeChainClient:
    SOURCES = ("transactions", "tokens", "nfts")

    def __init__(self, transactions=None, tokens=None, nfts=None, error=None, failing=SOURCES):
        self.transactions = transactions or []
        self.tokens = tokens or []
        self.nfts = nfts or []
        self.error = error
        self.failing = failing

    def _maybe_fail(self, source):
        if self.error and source in self.failing:
            raise self.error

    def get_transaction_history(self, address):
        self._maybe_fail("transactions")
        return list(self.transactions)

    def get_token_balances(self, address):
        self._maybe_fail("tokens")
        return list(self.tokens)

    def get_nft_holdings(self, address):
        self._maybe_fail("nfts")
        return {"nfts": list(self.nfts), "totalCount": len(self.nfts)}


class FakeChainData:
    def __init__(self):
        self.clients = {}

    def supported_chains(self):
        return sorted(self.clients)

    def get_client(self, chain_id):
        return self.clients.get(chain_id)


class FakeTokenSecurity:
    def __init__(self):
        self.records = {}
        self.calls = []

    def __call__(self, contract_address):
        self.calls.append(contract_address)
        return self.records.get(contract_address.lower())


class FakeThreatFeed(ThreatIntelFeed):
    def __init__(self):
        super().__init__(timeout=1)
        self.domains = []
        self.contracts = []

    def fetch_phishing_domains(self):
        return list(self.domains)

    def fetch_scam_contracts(self):
        return list(self.contracts)

    def fetch_chainabuse(self):
        return []


def register(client, email="alice@example.com", password="s3cret-pass", name="Alice"):
    resp = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


def sign_message(account, message):
    signature = Account.sign_message(encode_defunct(text=message), private_key=account.key).signature.hex()
    return signature if signature.startswith("0x") else "0x" + signature


def request_nonce(client, address):
    resp = client.get(f"/api/auth/connect-wallet?address={address}")
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["data"]["message"]


def sign_in_with_wallet(client, account=None):
    account = account or Account.create()
    message = request_nonce(client, account.address)
    resp = client.post(
        "/api/auth/connect-wallet",
        json={"address": account.address, "signature": sign_message(account, message), "message": message},
    )
    return account, resp


def make_airdrop(db, name="Test Drop", slug=None, status="approved", requirements=None, hype_score=50, **extra):
    airdrop = Airdrop(
        name=name,
        slug=slug or name.lower().replace(" ", "-"),
        description=f"{name} description",
        category=extra.pop("category", "DeFi"),
        website_url=extra.pop("website_url", "https://example.org"),
        status=status,
        risk_score=extra.pop("risk_score", 10),
        hype_score=hype_score,
        requirements=requirements,
        **extra,
    )
    db.add(airdrop)
    db.commit()
    return airdrop


def webhook_event(event_type, obj):
    return json.dumps({"id": "evt_test", "type": event_type, "data": {"object": obj}})
