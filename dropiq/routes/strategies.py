from flask import Blueprint, g, request

from dropiq.auth.decorators import optional_auth, require_auth
from dropiq.db.session import get_session
from dropiq.payloads import (
    CommentRequest,
    CopyStrategyRequest,
    RatingRequest,
    ShareRequest,
    StrategyCreateRequest,
    StrategyUpdateRequest,
)
from dropiq.routes.common import arg_int, ok, parse_body
from dropiq.services.registry import get_services

strategies_bp = Blueprint("strategies", __name__)


def _viewer_id():
    user = g.get("current_user")
    return user.id if user is not None else None


@strategies_bp.route("/strategies", methods=["GET"])
@optional_auth
def list_strategies():
    session = get_session()
    try:
        result = get_services().strategies.list_strategies(
            session,
            viewer_id=_viewer_id(),
            category=request.args.get("category") or None,
            difficulty=request.args.get("difficulty") or None,
            risk_level=request.args.get("riskLevel") or None,
            author_id=arg_int("authorId"),
            search=request.args.get("search") or None,
            sort_by=request.args.get("sortBy", "createdAt"),
            sort_order=request.args.get("sortOrder", "desc"),
            limit=arg_int("limit", 20, minimum=1, maximum=100),
            offset=arg_int("offset", 0, minimum=0),
        )
        return ok(result)
    finally:
        session.close()


@strategies_bp.route("/strategies", methods=["POST"])
@require_auth
def create_strategy():
    payload = parse_body(StrategyCreateRequest)
    session = get_session()
    try:
        return ok(get_services().strategies.create_strategy(session, g.current_user.id, payload), 201)
    finally:
        session.close()


# Fixed paths are registered ahead of /strategies/<int:strategy_id>


@strategies_bp.route("/strategies/trending", methods=["GET"])
def trending():
    session = get_session()
    try:
        return ok(get_services().strategies.trending(session, limit=arg_int("limit", 10, minimum=1, maximum=50)))
    finally:
        session.close()


@strategies_bp.route("/strategies/copied", methods=["GET"])
@require_auth
def copied():
    session = get_session()
    try:
        return ok(get_services().strategies.copied_strategies(session, g.current_user.id))
    finally:
        session.close()


@strategies_bp.route("/strategies/copy", methods=["POST"])
@require_auth
def copy_strategy():
    payload = parse_body(CopyStrategyRequest)
    session = get_session()
    try:
        result = get_services().strategies.copy_strategy(
            session, g.current_user.id, payload.original_strategy_id, payload.settings
        )
        return ok(result, 201, message="Strategy copied successfully")
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>", methods=["GET"])
@optional_auth
def get_strategy(strategy_id):
    session = get_session()
    try:
        return ok(get_services().strategies.get_strategy(session, strategy_id, viewer_id=_viewer_id()))
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>", methods=["PUT"])
@require_auth
def update_strategy(strategy_id):
    payload = parse_body(StrategyUpdateRequest)
    session = get_session()
    try:
        return ok(get_services().strategies.update_strategy(session, strategy_id, g.current_user.id, payload))
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>", methods=["DELETE"])
@require_auth
def delete_strategy(strategy_id):
    session = get_session()
    try:
        get_services().strategies.delete_strategy(session, strategy_id, g.current_user.id)
        return ok({"id": strategy_id}, message="Strategy deleted")
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>/like", methods=["POST"])
@require_auth
def like(strategy_id):
    session = get_session()
    try:
        return ok(get_services().strategies.toggle_like(session, strategy_id, g.current_user.id))
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>/rating", methods=["POST"])
@require_auth
def rate(strategy_id):
    payload = parse_body(RatingRequest)
    session = get_session()
    try:
        result = get_services().strategies.rate_strategy(
            session, strategy_id, g.current_user.id, payload.rating, payload.review
        )
        return ok(result)
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>/comments", methods=["GET"])
@optional_auth
def list_comments(strategy_id):
    session = get_session()
    try:
        return ok(get_services().strategies.list_comments(session, strategy_id, viewer_id=_viewer_id()))
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>/comments", methods=["POST"])
@require_auth
def add_comment(strategy_id):
    payload = parse_body(CommentRequest)
    session = get_session()
    try:
        result = get_services().strategies.add_comment(
            session, strategy_id, g.current_user.id, payload.content, parent_id=payload.parent_id
        )
        return ok(result, 201)
    finally:
        session.close()


@strategies_bp.route("/strategies/<int:strategy_id>/share", methods=["POST"])
@require_auth
def share(strategy_id):
    payload = parse_body(ShareRequest)
    session = get_session()
    try:
        return ok(get_services().strategies.share_strategy(session, strategy_id, g.current_user.id, payload.platform))
    finally:
        session.close()
