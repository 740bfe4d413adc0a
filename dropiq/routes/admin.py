import logging

from flask import Blueprint, g, request

from dropiq.auth.decorators import require_role
from dropiq.db.session import get_session
from dropiq.payloads import BlacklistCreateRequest, BroadcastAlertRequest
from dropiq.routes.common import arg_int, ok, parse_body
from dropiq.services import blacklist as blacklist_service
from dropiq.services.registry import get_services
from dropiq.services.threat_intel import update_threat_intelligence

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/admin/blacklist", methods=["GET"])
@require_role("admin")
def list_blacklist():
    session = get_session()
    try:
        result = blacklist_service.list_entries(
            session,
            page=arg_int("page", 1, minimum=1),
            limit=arg_int("limit", 50, minimum=1, maximum=200),
            entry_type=request.args.get("type") or None,
            search=request.args.get("search") or None,
            source=request.args.get("source") or None,
        )
        return ok(result)
    finally:
        session.close()


@admin_bp.route("/admin/blacklist", methods=["POST"])
@require_role("admin")
def add_blacklist_entry():
    payload = parse_body(BlacklistCreateRequest)
    session = get_session()
    try:
        return ok(blacklist_service.add_entry(session, payload.type, payload.value, payload.source), 201)
    finally:
        session.close()


@admin_bp.route("/admin/blacklist/<int:entry_id>", methods=["DELETE"])
@require_role("admin")
def delete_blacklist_entry(entry_id):
    session = get_session()
    try:
        return ok(blacklist_service.delete_entry(session, entry_id))
    finally:
        session.close()


@admin_bp.route("/admin/threat-intelligence/update", methods=["POST"])
@require_role("admin")
def refresh_threat_intelligence():
    logger.info("Threat intelligence update requested by user %s", g.current_user.id)
    session = get_session()
    try:
        stats = update_threat_intelligence(session, get_services().threat_feed)
        return ok(stats, message="Threat intelligence updated")
    finally:
        session.close()


@admin_bp.route("/admin/broadcast-alert", methods=["POST"])
@require_role("admin")
def broadcast_alert():
    payload = parse_body(BroadcastAlertRequest)
    alert = get_services().alerts.broadcast_security_alert(payload.model_dump(by_alias=True))
    return ok(alert, message="Security alert broadcasted successfully")
