from datetime import timedelta

from dropiq.models import BlacklistEntry
from dropiq.models.base import utcnow
from dropiq.services import threat_intel
from dropiq.services.threat_intel import THREAT_SOURCE

from support import auth_headers

SCAM_CONTRACT = "0x" + "5c" * 20


def _blacklist(client, token, entry_type, value, **extra):
    return client.post(
        "/api/admin/blacklist",
        headers=auth_headers(token),
        json={"type": entry_type, "value": value, **extra},
    )


def test_blacklist_requires_admin(client, user_token):
    assert client.get("/api/admin/blacklist").status_code == 401
    assert client.get("/api/admin/blacklist", headers=auth_headers(user_token)).status_code == 403
    assert _blacklist(client, user_token, "domain", "evil.com").status_code == 403


def test_add_blacklist_entry_normalizes_value(client, admin_token):
    resp = _blacklist(client, admin_token, "domain", "  Evil-Site.COM ")
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert (data["type"], data["value"], data["source"]) == ("domain", "evil-site.com", "admin_manual")

    duplicate = _blacklist(client, admin_token, "domain", "evil-site.com")
    assert duplicate.status_code == 409
    assert duplicate.get_json()["error"] == "Entry already exists in blacklist"


def test_add_blacklist_entry_validation(client, admin_token):
    bad_domain = _blacklist(client, admin_token, "domain", "not a domain")
    assert bad_domain.status_code == 400
    assert bad_domain.get_json()["error"] == "Invalid domain format"

    bad_contract = _blacklist(client, admin_token, "contract_address", "0x1234")
    assert bad_contract.status_code == 400
    assert bad_contract.get_json()["error"] == "Invalid contract address format"

    bad_type = _blacklist(client, admin_token, "ip", "1.2.3.4")
    assert bad_type.status_code == 400
    assert bad_type.get_json()["error"] == "Invalid request data"


def test_list_and_delete_blacklist(client, admin_token):
    _blacklist(client, admin_token, "domain", "evil.com")
    _blacklist(client, admin_token, "domain", "drainer.io", source="community")
    created = _blacklist(client, admin_token, "contract_address", SCAM_CONTRACT).get_json()["data"]
    headers = auth_headers(admin_token)

    everything = client.get("/api/admin/blacklist", headers=headers).get_json()["data"]
    assert everything["pagination"]["total"] == 3

    domains = client.get("/api/admin/blacklist?type=domain", headers=headers).get_json()["data"]
    assert {e["value"] for e in domains["entries"]} == {"evil.com", "drainer.io"}

    community = client.get("/api/admin/blacklist?source=community", headers=headers).get_json()["data"]
    assert [e["value"] for e in community["entries"]] == ["drainer.io"]

    search = client.get("/api/admin/blacklist?search=EVIL", headers=headers).get_json()["data"]
    assert [e["value"] for e in search["entries"]] == ["evil.com"]

    deleted = client.delete(f"/api/admin/blacklist/{created['id']}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.get_json()["data"]["value"] == SCAM_CONTRACT
    assert client.delete(f"/api/admin/blacklist/{created['id']}", headers=headers).status_code == 404


def test_analyze_requires_contract_or_url(client):
    resp = client.post("/api/security/analyze", json={})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Invalid request data"


def test_analyze_blacklisted_contract(client, admin_token, fakes):
    _blacklist(client, admin_token, "contract_address", SCAM_CONTRACT)
    resp = client.post("/api/security/analyze", json={"contractAddress": SCAM_CONTRACT.upper().replace("0X", "0x")})
    data = resp.get_json()["data"]
    assert data["riskScore"] == 80
    assert data["recommendation"] == "AVOID"
    assert data["redFlags"][0]["type"] == "BLACKLISTED_CONTRACT"
    assert fakes["token_security"].calls == []


def test_analyze_uses_token_security(client, fakes):
    fakes["token_security"].records[SCAM_CONTRACT] = {"honeypot_risk": "1", "approval_risk": "1"}
    data = client.post("/api/security/analyze", json={"contractAddress": SCAM_CONTRACT}).get_json()["data"]
    assert data["riskScore"] == 80
    assert [f["type"] for f in data["redFlags"]] == ["HONEYPOT_RISK", "UNLIMITED_APPROVAL"]
    assert fakes["token_security"].calls == [SCAM_CONTRACT]


def test_analyze_url(client):
    data = client.post("/api/security/analyze", json={"url": "https://example.com"}).get_json()["data"]
    assert data["riskScore"] == 0
    assert data["recommendation"] == "SAFE"


def test_check_link_endpoint(client):
    resp = client.post("/api/security/check-link", json={"url": "https://app.uniswap.org"})
    assert resp.get_json()["data"]["isSafe"] is True
    assert client.post("/api/security/check-link", json={}).status_code == 400


def test_threat_intelligence_update(client, db, admin_token, fakes):
    stale = utcnow() - timedelta(days=40)
    db.add_all([
        BlacklistEntry(type="domain", value="evil.com", source="admin_manual"),
        BlacklistEntry(type="domain", value="old-phish.net", source=THREAT_SOURCE, created_at=stale),
        BlacklistEntry(type="domain", value="manual-old.net", source="admin_manual", created_at=stale),
    ])
    db.commit()
    fakes["threat_feed"].domains = ["evil.com", "new-phish.io"]
    fakes["threat_feed"].contracts = [SCAM_CONTRACT]

    assert client.post("/api/admin/threat-intelligence/update", headers={}).status_code == 401
    resp = client.post("/api/admin/threat-intelligence/update", headers=auth_headers(admin_token))
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["message"] == "Threat intelligence updated"
    assert body["data"] == {"domainsAdded": 1, "contractsAdded": 1, "removed": 1}

    db.expire_all()
    values = {e.value: e.source for e in db.query(BlacklistEntry).all()}
    assert values == {
        "evil.com": "admin_manual",
        "manual-old.net": "admin_manual",
        "new-phish.io": THREAT_SOURCE,
        SCAM_CONTRACT: THREAT_SOURCE,
    }


def test_threat_update_checks_existing_entries_in_chunks(db, fakes, monkeypatch):
    monkeypatch.setattr(threat_intel, "LOOKUP_CHUNK_SIZE", 3)
    known = [f"known-{i}.io" for i in range(5)]
    db.add_all([BlacklistEntry(type="domain", value=v, source="admin_manual") for v in known])
    db.commit()
    fakes["threat_feed"].domains = known + [f"fresh-{i}.io" for i in range(6)]

    statements = []
    real_execute = db.execute

    def counting_execute(statement, *args, **kwargs):
        statements.append(str(statement))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", counting_execute)
    stats = threat_intel.update_threat_intelligence(db, fakes["threat_feed"])

    assert stats == {"domainsAdded": 6, "contractsAdded": 0, "removed": 0}
    # 11 domains at 3 per query
    assert sum(1 for s in statements if s.startswith("SELECT")) == 4
    db.expire_all()
    assert db.query(BlacklistEntry).filter(BlacklistEntry.value.like("fresh-%")).count() == 6


def test_broadcast_alert_validation(client, admin_token):
    resp = client.post(
        "/api/admin/broadcast-alert",
        headers=auth_headers(admin_token),
        json={"type": "severe", "title": "x", "message": "y"},
    )
    assert resp.status_code == 400
