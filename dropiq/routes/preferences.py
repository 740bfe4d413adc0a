from flask import Blueprint, g, request

from dropiq.auth.decorators import require_auth
from dropiq.db.session import get_session
from dropiq.errors import NotFound
from dropiq.payloads import (
    BehaviorEventRequest,
    ChainActionRequest,
    ChainInteraction,
    ChainPreferenceUpdate,
    InsightActionRequest,
    ProfileActionRequest,
    RiskAssessmentRequest,
)
from dropiq.routes.common import ok, parse_body
from dropiq.services.registry import get_services

preferences_bp = Blueprint("preferences", __name__)


@preferences_bp.route("/preferences/behavior-events", methods=["POST"])
@require_auth
def record_behavior_event():
    payload = parse_body(BehaviorEventRequest)
    session = get_session()
    try:
        return ok(get_services().activity.record_event(session, g.current_user.id, payload), 201)
    finally:
        session.close()


@preferences_bp.route("/preferences/activity-patterns", methods=["POST"])
@require_auth
def analyze_activity_patterns():
    session = get_session()
    try:
        return ok(get_services().activity.analyze(session, g.current_user.id))
    finally:
        session.close()


@preferences_bp.route("/preferences/activity-patterns", methods=["GET"])
@require_auth
def get_activity_patterns():
    session = get_session()
    try:
        result = get_services().activity.get_pattern(session, g.current_user.id)
    finally:
        session.close()
    if result is None:
        raise NotFound("No activity pattern found")
    return ok(result)


@preferences_bp.route("/preferences/risk-assessment", methods=["POST"])
@require_auth
def assess_risk():
    payload = parse_body(RiskAssessmentRequest)
    session = get_session()
    try:
        return ok(get_services().preferences.assess_risk(session, g.current_user.id, payload.answers.model_dump(by_alias=True)))
    finally:
        session.close()


@preferences_bp.route("/preferences/risk-assessment", methods=["GET"])
@require_auth
def get_risk_profile():
    session = get_session()
    try:
        profile = get_services().preferences.get_risk_profile(session, g.current_user.id)
    finally:
        session.close()
    if profile is None:
        raise NotFound("No risk profile found for this user")
    return ok(profile)


@preferences_bp.route("/preferences/chain-preferences", methods=["POST"])
@require_auth
def analyze_chain_preferences():
    session = get_session()
    try:
        return ok(get_services().preferences.analyze_chains(session, g.current_user.id))
    finally:
        session.close()


@preferences_bp.route("/preferences/chain-preferences", methods=["GET"])
@require_auth
def get_chain_preferences():
    session = get_session()
    try:
        return ok(get_services().preferences.get_chain_preferences(session, g.current_user.id))
    finally:
        session.close()


@preferences_bp.route("/preferences/chains", methods=["GET"])
@require_auth
def chains():
    """Stored chain preferences; analyzed on first use or with ``refresh=true``."""
    preferences = get_services().preferences
    refresh = request.args.get("refresh") == "true"
    session = get_session()
    try:
        stored = preferences.get_chain_preferences(session, g.current_user.id)
        if stored and not refresh:
            return ok(stored, cached=True)
        preferences.analyze_chains(session, g.current_user.id)
        return ok(preferences.get_chain_preferences(session, g.current_user.id), analyzed=True)
    finally:
        session.close()


@preferences_bp.route("/preferences/chains", methods=["POST"])
@require_auth
def chain_action():
    payload = parse_body(ChainActionRequest)
    preferences = get_services().preferences
    session = get_session()
    try:
        if payload.action == "get_recommendations":
            return ok(preferences.chain_recommendations(session, g.current_user.id))
        if payload.action == "manual_interaction":
            data = ChainInteraction.model_validate(payload.data).model_dump(by_alias=True)
            result = preferences.record_chain_interaction(session, g.current_user.id, payload.chain_id, data)
        else:
            data = ChainPreferenceUpdate.model_validate(payload.data).model_dump(by_alias=True)
            result = preferences.update_chain_preference(session, g.current_user.id, payload.chain_id, data)
        return ok(result, message="Chain preference updated successfully")
    finally:
        session.close()


@preferences_bp.route("/preferences/profile", methods=["GET"])
@require_auth
def preference_profile():
    session = get_session()
    try:
        return ok(get_services().preferences.profile(session, g.current_user.id))
    finally:
        session.close()


@preferences_bp.route("/preferences/profile", methods=["POST"])
@require_auth
def preference_profile_action():
    payload = parse_body(ProfileActionRequest)
    if payload.action == "refresh_insights":
        return ok(None, message="Insights refresh triggered")
    session = get_session()
    try:
        return ok(get_services().preferences.analyze_all(session, g.current_user.id), message="Comprehensive analysis completed")
    finally:
        session.close()


@preferences_bp.route("/preferences/insights", methods=["GET"])
@require_auth
def list_insights():
    session = get_session()
    try:
        return ok(
            get_services().preferences.list_insights(
                session,
                g.current_user.id,
                insight_type=request.args.get("type") or None,
                unread_only=request.args.get("unread") == "true",
            )
        )
    finally:
        session.close()


@preferences_bp.route("/preferences/insights", methods=["POST"])
@require_auth
def insight_action():
    payload = parse_body(InsightActionRequest)
    preferences = get_services().preferences
    session = get_session()
    try:
        if payload.action == "mark_read":
            preferences.mark_insight_read(session, g.current_user.id, payload.insight_id)
            return ok({"id": payload.insight_id}, message="Insight marked as read")
        updated = preferences.mark_all_insights_read(session, g.current_user.id)
        return ok({"updated": updated}, message="All insights marked as read")
    finally:
        session.close()
