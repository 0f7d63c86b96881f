# Overview: API key issuance and validation for the mobile assistant.

"""
API Key Service

WHY: The mobile assistant acts without a staff session. Each key carries a
set of permission scopes; every mobile endpoint requires exactly one scope.

SECURITY NOTES:
- Plaintext key returned once at creation, only its SHA-256 hash is stored
- Deactivated keys fail validation immediately
- last_used_at stamped on every successful validation
"""

import secrets

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import ApiKey
from ..time_utils import utcnow
from .session_service import hash_token

PERM_READ_STOCK = "read_stock"
PERM_READ_CUSTOMERS = "read_customers"
PERM_CREATE_SALE = "create_sale"
PERM_CREATE_PAYMENT = "create_payment"
PERM_UPDATE_STOCK = "update_stock"
PERM_READ_REPORTS = "read_reports"

ALL_PERMISSIONS = (
    PERM_READ_STOCK,
    PERM_READ_CUSTOMERS,
    PERM_CREATE_SALE,
    PERM_CREATE_PAYMENT,
    PERM_UPDATE_STOCK,
    PERM_READ_REPORTS,
)

KEY_PREFIX = "bk_"


def normalize_permissions(permissions) -> list[str]:
    """Accept a list or a comma-separated string; reject unknown scopes."""
    if permissions is None:
        return []
    if isinstance(permissions, str):
        permissions = permissions.split(",")
    if not isinstance(permissions, (list, tuple, set)):
        raise ValidationError("permissions must be a list of scope codes")

    cleaned = []
    for perm in permissions:
        code = str(perm).strip()
        if not code:
            continue
        if code not in ALL_PERMISSIONS:
            raise ValidationError(f"Unknown permission: {code}", details={"allowed": list(ALL_PERMISSIONS)})
        if code not in cleaned:
            cleaned.append(code)
    return cleaned


def create_api_key(
    key_name: str,
    permissions,
    created_by_user_id: int | None = None,
) -> tuple[ApiKey, str]:
    """
    Issue a new key.

    Returns (api_key_record, plaintext_key). The plaintext is not recoverable
    afterwards.
    """
    key_name = (key_name or "").strip()
    if not key_name:
        raise ValidationError("key_name is required")
    scopes = normalize_permissions(permissions)

    plaintext_key = KEY_PREFIX + secrets.token_hex(24)
    api_key = ApiKey(
        key_name=key_name,
        key_hash=hash_token(plaintext_key),
        permissions=",".join(scopes),
        is_active=True,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(api_key)
    db.session.commit()
    return api_key, plaintext_key


def validate_api_key(plaintext_key: str | None) -> ApiKey | None:
    """Returns the active key matching plaintext_key, stamping last_used_at."""
    if not plaintext_key:
        return None

    api_key = db.session.query(ApiKey).filter_by(
        key_hash=hash_token(plaintext_key),
        is_active=True,
    ).first()
    if not api_key:
        return None

    api_key.last_used_at = utcnow()
    db.session.commit()
    return api_key


def revoke_api_key(api_key_id: int) -> ApiKey:
    api_key = db.session.get(ApiKey, api_key_id)
    if api_key is None:
        raise NotFoundError(f"API key {api_key_id} not found")
    api_key.is_active = False
    db.session.commit()
    return api_key


def list_api_keys(include_inactive: bool = False) -> list[ApiKey]:
    q = db.session.query(ApiKey)
    if not include_inactive:
        q = q.filter(ApiKey.is_active.is_(True))
    return q.order_by(ApiKey.created_at.desc(), ApiKey.id.desc()).all()
