from flask import Blueprint

from dropiq.auth.decorators import require_auth
from dropiq.db.session import get_session
from dropiq.payloads import WalletAnalysisRequest
from dropiq.routes.common import ok, parse_body
from dropiq.services import wallet_analysis
from dropiq.services.registry import get_services

wallet_bp = Blueprint("wallet", __name__)


@wallet_bp.route("/wallet/analyze", methods=["POST"])
@require_auth
def analyze_wallet():
    payload = parse_body(WalletAnalysisRequest)
    session = get_session()
    try:
        result = wallet_analysis.analyze_wallet(session, get_services().chain_data, payload.address, payload.chain_ids)
        return ok(result)
    finally:
        session.close()


@wallet_bp.route("/wallet/chains", methods=["GET"])
def chains():
    return ok(wallet_analysis.supported_chains(get_services().chain_data))
