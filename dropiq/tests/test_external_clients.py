import pytest
import requests

from dropiq.scoring import score_eligibility
from dropiq.services.chain_data import AlchemyClient, format_units
from dropiq.services.token_security import TokenSecurityClient

WALLET = "0x" + "12" * 20
DROP = "0x" + "70" * 20
USDC = "0x" + "a0" * 20
EMPTY = "0x" + "0e" * 20


class _Response:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


@pytest.fixture()
def rpc(monkeypatch):
    """Route Alchemy JSON-RPC calls to per-method handlers."""
    handlers = {}
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append(json)
        handler = handlers[json["method"]]
        return _Response({"jsonrpc": "2.0", "id": 1, **handler(json["params"])})

    monkeypatch.setattr(requests, "post", fake_post)
    return handlers, calls


def _metadata(params):
    known = {DROP: {"name": "Drop", "symbol": "DROP", "decimals": 18}, USDC: {"name": "USD Coin", "symbol": "USDC", "decimals": 6}}
    return {"result": known.get(params[0], {"name": None, "symbol": None, "decimals": None})}


@pytest.mark.parametrize(
    "value,decimals,expected",
    [(10**18, 18, "1"), (1234500, 4, "123.45"), (5, 0, "5"), (1, 18, "0.000000000000000001"), (10**14, 18, "0.0001")],
)
def test_format_units(value, decimals, expected):
    assert format_units(value, decimals) == expected


def test_token_balances_apply_token_decimals(rpc):
    handlers, calls = rpc
    handlers["alchemy_getTokenBalances"] = lambda params: {
        "result": {
            "address": params[0],
            "tokenBalances": [
                {"contractAddress": DROP, "tokenBalance": hex(10**14)},
                {"contractAddress": EMPTY, "tokenBalance": "0x0"},
                {"contractAddress": USDC, "tokenBalance": hex(2_500_000)},
            ],
        }
    }
    handlers["alchemy_getTokenMetadata"] = _metadata

    tokens = AlchemyClient(1, "key").get_token_balances(WALLET)

    assert [(t["symbol"], t["balance"], t["rawBalance"], t["decimals"]) for t in tokens] == [
        ("DROP", "0.0001", str(10**14), 18),
        ("USDC", "2.5", "2500000", 6),
    ]
    # zero balances are dropped before any metadata lookup
    assert [c["params"][0] for c in calls if c["method"] == "alchemy_getTokenMetadata"] == [DROP, USDC]


def test_dust_balance_does_not_meet_minimum(rpc):
    handlers, _ = rpc
    handlers["alchemy_getTokenMetadata"] = _metadata
    requirements = {"minBalance": {"token": DROP, "amount": 100}}

    handlers["alchemy_getTokenBalances"] = lambda params: {
        "result": {"tokenBalances": [{"contractAddress": DROP, "tokenBalance": hex(10**14)}]}
    }
    dust = AlchemyClient(1, "key").get_token_balances(WALLET)
    assert score_eligibility(requirements, [], dust, [])["confidenceScore"] == 0

    handlers["alchemy_getTokenBalances"] = lambda params: {
        "result": {"tokenBalances": [{"contractAddress": DROP, "tokenBalance": hex(150 * 10**18)}]}
    }
    whole = AlchemyClient(1, "key").get_token_balances(WALLET)
    assert whole[0]["balance"] == "150"
    assert score_eligibility(requirements, [], whole, [])["confidenceScore"] == 30


def test_token_without_decimals_keeps_raw_amount(rpc):
    handlers, _ = rpc
    handlers["alchemy_getTokenBalances"] = lambda params: {
        "result": {"tokenBalances": [{"contractAddress": EMPTY, "tokenBalance": hex(42)}]}
    }
    handlers["alchemy_getTokenMetadata"] = _metadata
    tokens = AlchemyClient(1, "key").get_token_balances(WALLET)
    assert (tokens[0]["balance"], tokens[0]["decimals"]) == ("42", 0)


def test_transaction_history_request(rpc):
    handlers, calls = rpc
    handlers["alchemy_getAssetTransfers"] = lambda params: {
        "result": {"transfers": [{"hash": "0x1", "to": DROP}, {"hash": "0x2", "to": USDC}]}
    }
    transfers = AlchemyClient(137, "key").get_transaction_history(WALLET)
    assert [t["hash"] for t in transfers] == ["0x1", "0x2"]
    params = calls[0]["params"][0]
    assert params["fromAddress"] == WALLET
    assert params["category"] == ["external", "internal", "erc20", "erc721", "erc1155"]


def test_rpc_error_is_raised(rpc):
    handlers, _ = rpc
    handlers["alchemy_getAssetTransfers"] = lambda params: {"error": {"code": 429, "message": "rate limited"}}
    with pytest.raises(RuntimeError, match="alchemy_getAssetTransfers failed"):
        AlchemyClient(1, "key").get_transaction_history(WALLET)


def test_nft_holdings(monkeypatch):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen.update(url=url, params=params)
        return _Response({"ownedNfts": [{"contract": {"address": DROP}, "tokenId": "7"}], "totalCount": 3})

    monkeypatch.setattr(requests, "get", fake_get)
    holdings = AlchemyClient(8453, "key").get_nft_holdings(WALLET)
    assert holdings["totalCount"] == 3
    assert holdings["nfts"][0]["tokenId"] == "7"
    assert seen["url"] == "https://base-mainnet.g.alchemy.com/nft/v3/key/getNFTsForOwner"
    assert seen["params"] == {"owner": WALLET, "pageSize": 100}


def test_nft_outage_raises(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params=None, timeout=None: _Response({}, status_code=503))
    with pytest.raises(requests.HTTPError):
        AlchemyClient(1, "key").get_nft_holdings(WALLET)


# GoPlus


GOPLUS_URL = "https://api.gopluslabs.io/api/v1/token_security/1"


def test_goplus_record_is_found_by_lowercase_address(monkeypatch):
    seen = {}
    record = {"is_honeypot": "0", "buy_tax": "0.05"}

    def fake_get(url, params=None, timeout=None):
        seen.update(url=url, params=params, timeout=timeout)
        return _Response({"code": 1, "message": "OK", "result": {"0x" + "abcd" * 10: record}})

    monkeypatch.setattr(requests, "get", fake_get)
    checksummed = "0x" + "AbCd" * 10
    assert TokenSecurityClient(GOPLUS_URL, timeout=3)(checksummed) == record
    assert seen == {"url": GOPLUS_URL, "params": {"contract_addresses": checksummed}, "timeout": 3}


@pytest.mark.parametrize(
    "response",
    [
        _Response({}, status_code=500),
        _Response(ValueError("Expecting value")),
        _Response({"code": 1, "result": {}}),
        _Response({"code": 2, "result": None}),
    ],
)
def test_goplus_failures_return_none(monkeypatch, response):
    monkeypatch.setattr(requests, "get", lambda url, params=None, timeout=None: response)
    assert TokenSecurityClient(GOPLUS_URL).fetch(DROP) is None


def test_goplus_connection_error_returns_none(monkeypatch):
    def fake_get(url, params=None, timeout=None):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "get", fake_get)
    assert TokenSecurityClient(GOPLUS_URL).fetch(DROP) is None
