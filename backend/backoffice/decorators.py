# Overview: Request authentication decorators for API routes.

from functools import wraps

from flask import request, jsonify, g

from .services import api_key_service, session_service
from .services.actor import Actor

API_KEY_HEADER = "X-API-Key"


def require_auth(f):
    """
    Require a staff session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.actor: Actor for ledger operations (entry_method 'manual')

    Returns 401 if the Authorization header is missing, or the token is
    invalid, expired, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.actor = Actor.for_user(context.user.id)

        return f(*args, **kwargs)

    return decorated_function


def require_api_key(permission_code: str | None = None):
    """
    Require a mobile assistant API key, holding permission_code when one is given.

    Sets g.api_key and g.actor (entry_method 'api').
    401 when the key is missing or invalid, 403 when the scope is absent.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            plaintext_key = request.headers.get(API_KEY_HEADER)
            if not plaintext_key:
                return jsonify({"error": "API key required"}), 401

            api_key = api_key_service.validate_api_key(plaintext_key)
            if not api_key:
                return jsonify({"error": "Invalid API key"}), 401

            if permission_code and permission_code not in api_key.permission_set:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            g.api_key = api_key
            g.actor = Actor.for_api_key(api_key.id)

            return f(*args, **kwargs)

        return decorated_function
    return decorator
