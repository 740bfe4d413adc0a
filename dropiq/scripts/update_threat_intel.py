"""
Pull public phishing/scam feeds into the blacklist and age out stale feed entries.

Meant for cron; the admin endpoint POST /api/admin/threat-intelligence/update runs the same job.

Usage:
  python -m dropiq.scripts.update_threat_intel
"""
from dropiq.app import create_app
from dropiq.db.session import get_session
from dropiq.services.registry import get_services
from dropiq.services.threat_intel import update_threat_intelligence


def main():
    app = create_app({"SEED_SAMPLE_DATA": False})
    with app.app_context():
        session = get_session()
        try:
            stats = update_threat_intelligence(session, get_services().threat_feed)
        finally:
            session.close()
    print(
        f"Added {stats['domainsAdded']} domains and {stats['contractsAdded']} contracts; "
        f"removed {stats['removed']} stale entries."
    )


if __name__ == "__main__":
    main()
