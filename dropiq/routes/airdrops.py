from flask import Blueprint, g, request

from dropiq.auth.decorators import optional_auth, require_auth, require_role
from dropiq.db.session import get_session
from dropiq.payloads import AirdropModeration, AirdropStatusRequest, AirdropSubmission
from dropiq.routes.common import arg_int, ok, parse_body
from dropiq.services import airdrops as airdrop_service

airdrops_bp = Blueprint("airdrops", __name__)


def _viewer_id():
    user = g.get("current_user")
    return user.id if user is not None else None


@airdrops_bp.route("/airdrops", methods=["GET"])
@optional_auth
def list_airdrops():
    session = get_session()
    try:
        result = airdrop_service.list_airdrops(
            session,
            page=arg_int("page", 1, minimum=1),
            limit=arg_int("limit", 10, minimum=1, maximum=100),
            category=request.args.get("category") or None,
            search=request.args.get("search") or None,
            user_id=_viewer_id(),
        )
        return ok(result)
    finally:
        session.close()


@airdrops_bp.route("/airdrops/search", methods=["GET"])
def search_airdrops():
    session = get_session()
    try:
        return ok(airdrop_service.search_airdrops(session, request.args.get("q")))
    finally:
        session.close()


@airdrops_bp.route("/airdrops/submit", methods=["POST"])
def submit_airdrop():
    payload = parse_body(AirdropSubmission)
    session = get_session()
    try:
        return ok(airdrop_service.submit_airdrop(session, payload), 201)
    finally:
        session.close()


@airdrops_bp.route("/airdrops/<slug>", methods=["GET"])
@optional_auth
def get_airdrop(slug):
    session = get_session()
    try:
        return ok(airdrop_service.get_airdrop(session, slug, user_id=_viewer_id()))
    finally:
        session.close()


@airdrops_bp.route("/airdrops/<slug>/status", methods=["PATCH"])
@require_auth
def update_status(slug):
    payload = parse_body(AirdropStatusRequest)
    session = get_session()
    try:
        result = airdrop_service.update_user_status(
            session, g.current_user.id, slug, payload.status, notes=payload.notes, wallet_id=payload.wallet_id
        )
        return ok(result)
    finally:
        session.close()


@airdrops_bp.route("/user/progress", methods=["GET"])
@require_auth
def user_progress():
    session = get_session()
    try:
        return ok(airdrop_service.user_progress(session, g.current_user.id))
    finally:
        session.close()


@airdrops_bp.route("/admin/airdrops/<int:airdrop_id>", methods=["PATCH"])
@require_role("admin")
def moderate_airdrop(airdrop_id):
    payload = parse_body(AirdropModeration)
    session = get_session()
    try:
        return ok(airdrop_service.moderate_airdrop(session, airdrop_id, payload))
    finally:
        session.close()
