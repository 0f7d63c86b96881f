# Overview: Flask API routes for API key management; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LedgerError
from ..services import api_key_service

api_keys_bp = Blueprint("api_keys", __name__, url_prefix="/api/api-keys")


@api_keys_bp.get("")
@require_auth
def list_api_keys_route():
    try:
        include_inactive = request.args.get("include_inactive") == "true"
        keys = api_key_service.list_api_keys(include_inactive=include_inactive)
        return jsonify({"items": [k.to_dict() for k in keys]}), 200
    except Exception:
        current_app.logger.exception("Failed to list API keys")
        return jsonify({"error": "Internal server error"}), 500


@api_keys_bp.post("")
@require_auth
def create_api_key_route():
    """
    Request body: {"key_name": "...", "permissions": ["read_stock", ...]}

    The plaintext key is in the response once and cannot be retrieved later.
    """
    try:
        data = request.get_json(silent=True) or {}
        api_key, plaintext_key = api_key_service.create_api_key(
            key_name=data.get("key_name"),
            permissions=data.get("permissions"),
            created_by_user_id=g.current_user.id,
        )
        return jsonify({"api_key": api_key.to_dict(), "key": plaintext_key}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create API key")
        return jsonify({"error": "Internal server error"}), 500


@api_keys_bp.delete("/<int:api_key_id>")
@require_auth
def revoke_api_key_route(api_key_id: int):
    try:
        api_key = api_key_service.revoke_api_key(api_key_id)
        return jsonify(api_key.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to revoke API key")
        return jsonify({"error": "Internal server error"}), 500
