# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-Actor-Id"
MAX_ACTOR_ID_LENGTH = 64


def require_actor(f):
    """
    Require an actor id for audit attribution.

    The upstream auth layer authenticates the caller and forwards the
    identity in the X-Actor-Id header; this decorator only establishes
    g.actor_id. Returns 401 when the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not actor_id:
            return jsonify({"error": "Actor id required", "code": "ACTOR_REQUIRED"}), 401
        if len(actor_id) > MAX_ACTOR_ID_LENGTH:
            return jsonify({"error": "Actor id too long", "code": "VALIDATION_ERROR"}), 400

        g.actor_id = actor_id
        return f(*args, **kwargs)

    return decorated_function
