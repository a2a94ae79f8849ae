# rewards_api/common/auth.py
from __future__ import annotations

from functools import wraps
from typing import Iterable, Set

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from rewards_api.common.http import fail


# ---------- helpers ----------

def _wildcard_match(user_perm: str, required: str) -> bool:
    """
    Match required permission against a user's permission with simple wildcards.
    Examples:
      user_perm: 'rewards.*'           matches required: 'rewards.records.approve'
      user_perm: 'rewards.records.*'   matches required: 'rewards.records.write'
      user_perm: 'rewards.types.read'  matches only exact
    """
    if user_perm == required:
        return True
    if user_perm.endswith(".*"):
        prefix = user_perm[:-2]
        return required.startswith(prefix)
    return False


def _has_any_perm(user_perms: Set[str], required_perms: Iterable[str]) -> bool:
    if not required_perms:
        return True
    if not user_perms:
        return False
    for req in required_perms:
        if any(_wildcard_match(up, req) for up in user_perms):
            return True
    return False


def current_company_id() -> int | None:
    """Tenant of the caller, issued as the `company_id` claim at login."""
    claims = get_jwt() or {}
    cid = claims.get("company_id")
    try:
        return int(cid) if cid is not None else None
    except (TypeError, ValueError):
        return None


def current_user_id() -> int | None:
    uid = get_jwt_identity()
    try:
        return int(uid) if uid is not None else None
    except (TypeError, ValueError):
        return None


# ---------- decorators ----------

def requires_perms(*perm_codes: str):
    """
    Require that the current user has ANY of the given permission codes.

    Permissions and roles are read from the JWT claims ('perms', 'roles').
    The 'admin' role always passes. Every reward endpoint is tenant scoped,
    so a token without a `company_id` claim is rejected.

    Supports simple wildcards granted to the user:
      - 'rewards.*' or 'rewards.records.*'
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            if get_jwt_identity() is None:
                return fail("Unauthorized", status=401)
            if current_company_id() is None:
                return fail("Token has no company scope", status=403)

            claims = get_jwt() or {}
            roles = set(claims.get("roles") or [])
            if "admin" in roles:
                return fn(*args, **kwargs)

            perms = set(claims.get("perms") or [])
            if not _has_any_perm(perms, perm_codes):
                return fail("Forbidden", status=403)

            return fn(*args, **kwargs)
        return inner
    return outer
