from flask import Blueprint, g, request

from dropiq.auth.decorators import require_auth
from dropiq.db.session import get_session
from dropiq.payloads import (
    ApprovalDecisionRequest,
    AutomationSettingsRequest,
    BatchCreateRequest,
    ScheduleRequest,
    TaskCreateRequest,
    TaskUpdateRequest,
)
from dropiq.routes.common import arg_int, ok, parse_body
from dropiq.serializers import automation_settings_to_dict
from dropiq.services.registry import get_services

automation_bp = Blueprint("automation", __name__)


@automation_bp.route("/automation/tasks", methods=["GET"])
@require_auth
def list_tasks():
    session = get_session()
    try:
        result = get_services().automation.list_tasks(
            session,
            g.current_user.id,
            status=request.args.get("status") or None,
            task_type=request.args.get("taskType") or None,
            execution_mode=request.args.get("executionMode") or None,
            limit=arg_int("limit", 50, minimum=1, maximum=200),
            offset=arg_int("offset", 0, minimum=0),
        )
        return ok(result)
    finally:
        session.close()


@automation_bp.route("/automation/tasks", methods=["POST"])
@require_auth
def create_task():
    payload = parse_body(TaskCreateRequest)
    session = get_session()
    try:
        return ok(get_services().automation.create_task(session, g.current_user.id, payload), 201)
    finally:
        session.close()


@automation_bp.route("/automation/tasks/<int:task_id>", methods=["GET"])
@require_auth
def get_task(task_id):
    session = get_session()
    try:
        return ok(get_services().automation.get_task(session, task_id, g.current_user.id))
    finally:
        session.close()


@automation_bp.route("/automation/tasks/<int:task_id>", methods=["PUT"])
@require_auth
def update_task(task_id):
    payload = parse_body(TaskUpdateRequest)
    session = get_session()
    try:
        return ok(get_services().automation.update_task(session, task_id, g.current_user.id, payload))
    finally:
        session.close()


@automation_bp.route("/automation/tasks/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id):
    session = get_session()
    try:
        get_services().automation.delete_task(session, task_id, g.current_user.id)
        return ok({"id": task_id}, message="Task deleted")
    finally:
        session.close()


@automation_bp.route("/automation/tasks/<int:task_id>/execute", methods=["POST"])
@require_auth
def execute_task(task_id):
    session = get_session()
    try:
        return ok(get_services().automation.execute_task(session, task_id, g.current_user.id))
    finally:
        session.close()


@automation_bp.route("/automation/tasks/<int:task_id>/schedule", methods=["POST"])
@require_auth
def schedule_task(task_id):
    payload = parse_body(ScheduleRequest)
    session = get_session()
    try:
        return ok(get_services().automation.schedule_task(session, task_id, g.current_user.id, payload.scheduled_at))
    finally:
        session.close()


@automation_bp.route("/automation/approvals", methods=["POST"])
@require_auth
def respond_to_approval():
    payload = parse_body(ApprovalDecisionRequest)
    session = get_session()
    try:
        result = get_services().automation.respond_to_approval(
            session, payload.approval_id, g.current_user.id, payload.action, payload.reason
        )
        return ok(result)
    finally:
        session.close()


@automation_bp.route("/automation/settings", methods=["GET"])
@require_auth
def get_settings():
    session = get_session()
    try:
        settings = get_services().automation.get_settings(session, g.current_user.id)
        session.commit()
        return ok(automation_settings_to_dict(settings))
    finally:
        session.close()


@automation_bp.route("/automation/settings", methods=["PUT"])
@require_auth
def update_settings():
    payload = parse_body(AutomationSettingsRequest)
    session = get_session()
    try:
        return ok(get_services().automation.update_settings(session, g.current_user.id, payload))
    finally:
        session.close()


@automation_bp.route("/automation/batches", methods=["POST"])
@require_auth
def create_batch():
    payload = parse_body(BatchCreateRequest)
    session = get_session()
    try:
        return ok(get_services().automation.create_batch(session, g.current_user.id, payload), 201)
    finally:
        session.close()


@automation_bp.route("/automation/batches/<int:batch_id>/execute", methods=["POST"])
@require_auth
def execute_batch(batch_id):
    session = get_session()
    try:
        return ok(get_services().automation.execute_batch(session, batch_id, g.current_user.id))
    finally:
        session.close()
