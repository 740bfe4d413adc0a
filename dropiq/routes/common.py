from typing import Optional, Type, TypeVar

from flask import jsonify, request
from pydantic import BaseModel

from dropiq.errors import BadRequest

M = TypeVar("M", bound=BaseModel)


def ok(data=None, status: int = 200, **extra):
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def parse_body(model: Type[M]) -> M:
    """Validate the JSON body; pydantic errors surface as 400 via the app error handlers."""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return model.model_validate(payload)


def arg_int(name: str, default: Optional[int] = None, minimum: Optional[int] = None, maximum: Optional[int] = None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f"Query parameter '{name}' must be an integer")
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value
