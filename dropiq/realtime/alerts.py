import logging
import time
import uuid
from typing import Any, Dict, Optional

from flask import request
from flask_socketio import ConnectionRefusedError, emit, join_room, leave_room

from dropiq.auth.decorators import load_user_from_token
from dropiq.errors import Unauthorized
from dropiq.models.base import utcnow

logger = logging.getLogger(__name__)

SECURITY_ROOM = "security-alerts"
ADMIN_ROOM = "admins"
ALERT_EVENT = "security-alert"


def user_room(user_id) -> str:
    return f"user:{user_id}"


def _stamp(alert: Dict[str, Any]) -> Dict[str, Any]:
    payload = dict(alert)
    payload["timestamp"] = utcnow().isoformat()
    payload["id"] = f"alert-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
    return payload


class SecurityAlertChannel:
    """Socket.IO push channel for security alerts.

    Connections authenticate with the same bearer JWT as the HTTP API, passed
    as ``auth={"token": ...}``. Delivery is fire-and-forget; nothing is stored.
    """

    def __init__(self, socketio):
        self.socketio = socketio
        self._users: Dict[str, Dict[str, Any]] = {}
        socketio.on_event("connect", self._on_connect)
        socketio.on_event("disconnect", self._on_disconnect)
        socketio.on_event("subscribe-security-alerts", self._on_subscribe)
        socketio.on_event("unsubscribe-security-alerts", self._on_unsubscribe)

    def _on_connect(self, auth: Optional[Dict[str, Any]] = None):
        token = (auth or {}).get("token")
        if not token:
            raise ConnectionRefusedError("Authentication token required")
        try:
            user = load_user_from_token(token)
        except Unauthorized as exc:
            logger.info("Socket connection refused: %s", exc.message)
            raise ConnectionRefusedError("Authentication failed")

        self._users[request.sid] = {"userId": user.id, "role": user.role}
        join_room(user_room(user.id))
        if user.role == "admin":
            join_room(ADMIN_ROOM)
        logger.info("User %s connected: %s", user.id, request.sid)
        emit(
            "authenticated",
            {
                "message": "Successfully connected to DROPIQ security alerts",
                "userId": user.id,
                "role": user.role,
            },
        )

    def _on_disconnect(self, *args):
        info = self._users.pop(request.sid, None)
        if info:
            logger.info("User %s disconnected: %s", info["userId"], request.sid)

    def _on_subscribe(self, *args):
        join_room(SECURITY_ROOM)
        logger.debug("Socket %s subscribed to security alerts", request.sid)
        emit("subscribed", {"room": SECURITY_ROOM})

    def _on_unsubscribe(self, *args):
        leave_room(SECURITY_ROOM)
        logger.debug("Socket %s unsubscribed from security alerts", request.sid)
        emit("unsubscribed", {"room": SECURITY_ROOM})

    def broadcast_security_alert(self, alert: Dict[str, Any]) -> Dict[str, Any]:
        payload = _stamp(alert)
        self.socketio.emit(ALERT_EVENT, payload, to=SECURITY_ROOM)
        logger.info("Security alert broadcasted: %s", alert.get("title"))
        return payload

    def send_targeted_alert(self, user_id, alert: Dict[str, Any]) -> Dict[str, Any]:
        payload = _stamp(alert)
        self.socketio.emit(ALERT_EVENT, payload, to=user_room(user_id))
        logger.info("Targeted alert sent to user %s: %s", user_id, alert.get("title"))
        return payload

    @property
    def connection_count(self) -> int:
        return len(self._users)
