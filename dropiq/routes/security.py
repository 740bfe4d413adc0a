import logging

from flask import Blueprint

from dropiq.db.session import get_session
from dropiq.payloads import CheckLinkRequest, SecurityAnalysisRequest
from dropiq.routes.common import ok, parse_body
from dropiq.scoring import analyze_security, check_link
from dropiq.services.blacklist import blacklist_lookup
from dropiq.services.registry import get_services

logger = logging.getLogger(__name__)

security_bp = Blueprint("security", __name__)


@security_bp.route("/security/analyze", methods=["POST"])
def analyze():
    payload = parse_body(SecurityAnalysisRequest)
    session = get_session()
    try:
        result = analyze_security(
            contract_address=payload.contract_address,
            url=payload.url,
            blacklist_lookup=blacklist_lookup(session),
            token_security=get_services().token_security,
        )
    finally:
        session.close()
    logger.info(
        "Security analysis for %s: score %s (%s)",
        payload.contract_address or payload.url,
        result["riskScore"],
        result["recommendation"],
    )
    return ok(result)


@security_bp.route("/security/check-link", methods=["POST"])
def check_link_view():
    payload = parse_body(CheckLinkRequest)
    return ok(check_link(payload.url))
