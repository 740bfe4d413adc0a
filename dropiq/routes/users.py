from flask import Blueprint, g, request

from dropiq.auth.decorators import require_auth
from dropiq.db.session import get_session
from dropiq.errors import Forbidden
from dropiq.payloads import AchievementUnlockRequest, FollowRequest, ProfileUpdateRequest
from dropiq.routes.common import arg_int, ok, parse_body
from dropiq.services.registry import get_services

users_bp = Blueprint("users", __name__)


@users_bp.route("/user/profile", methods=["GET"])
@require_auth
def my_profile():
    session = get_session()
    try:
        return ok(get_services().profiles.get_profile(session, g.current_user.id, include_private=True))
    finally:
        session.close()


@users_bp.route("/user/profile", methods=["PUT"])
@require_auth
def update_profile():
    payload = parse_body(ProfileUpdateRequest)
    session = get_session()
    try:
        return ok(get_services().profiles.update_profile(session, g.current_user.id, payload))
    finally:
        session.close()


@users_bp.route("/user/profile/<int:user_id>", methods=["GET"])
def public_profile(user_id):
    session = get_session()
    try:
        return ok(get_services().profiles.get_profile(session, user_id))
    finally:
        session.close()


@users_bp.route("/user/follow", methods=["POST"])
@require_auth
def follow():
    payload = parse_body(FollowRequest)
    session = get_session()
    try:
        return ok(get_services().profiles.follow(session, g.current_user.id, payload.user_id), 201)
    finally:
        session.close()


@users_bp.route("/user/follow", methods=["DELETE"])
@require_auth
def unfollow():
    # userId may come as a query arg or in the body
    target = arg_int("userId")
    if target is None:
        target = parse_body(FollowRequest).user_id
    session = get_session()
    try:
        return ok(get_services().profiles.unfollow(session, g.current_user.id, target))
    finally:
        session.close()


@users_bp.route("/user/leaderboard", methods=["GET"])
def leaderboard():
    session = get_session()
    try:
        result = get_services().profiles.leaderboard(
            session,
            board_type=request.args.get("type", "reputation"),
            limit=arg_int("limit", 10, minimum=1, maximum=100),
        )
        return ok(result)
    finally:
        session.close()


@users_bp.route("/user/achievements", methods=["GET"])
@require_auth
def list_achievements():
    session = get_session()
    try:
        return ok(get_services().profiles.list_achievements(session, g.current_user.id))
    finally:
        session.close()


@users_bp.route("/user/achievements", methods=["POST"])
@require_auth
def unlock_achievement():
    payload = parse_body(AchievementUnlockRequest)
    session = get_session()
    try:
        return ok(get_services().profiles.unlock_achievement(session, g.current_user.id, payload.achievement_key), 201)
    finally:
        session.close()


@users_bp.route("/user/detect-activity", methods=["POST"])
@require_auth
def detect_activity():
    if g.current_user.role not in ("premium", "admin"):
        raise Forbidden("This feature is only available to premium users")
    session = get_session()
    try:
        result = get_services().activity_detection.detect(session, g.current_user.id)
    finally:
        session.close()
    return ok(result, message="Activity detection scan completed")
