# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-User-Id"


def require_actor(f):
    """
    Require an acting user id and store it on g.

    Authentication itself is handled upstream (gateway / session layer); this
    only checks that the caller identified who is acting, so that ledger
    entries, bonds and coupons carry created_by_user_id.

    Sets:
    - g.user_id: int id of the acting user
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(ACTOR_HEADER, "").strip()

        if not raw:
            return jsonify({"error": "Authentication required"}), 401

        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": f"Invalid {ACTOR_HEADER} header"}), 401

        g.user_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function
