"""
Authorization guard.

Decides, per request, whether the caller may perform an action. Checks are
evaluated in this order:

1. No valid token                      -> Unauthorized (401)
2. Global admin                        -> allowed for admin-only actions
3. UKM-scoped action on UKM X          -> allowed if global admin OR admin member of X
4. Action on a user's own resource     -> allowed if caller is that user OR global admin
5. Anything else                       -> Forbidden (403)

The guard only reads. A UKM the caller has no membership in (including a
UKM that does not exist) simply means "no privilege".
"""

from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import g

from backend.auth_service.utils import TokenClaims, verify_token_from_request
from backend.common.errors import Forbidden
from backend.common.roles import GlobalRole, OrgRole


def current_claims() -> TokenClaims:
    """
    Verified claims of the caller, cached on `flask.g` for the request.

    Raises:
        Unauthorized: No token or an invalid one.
    """
    claims = g.get("claims")
    if claims is None:
        claims = verify_token_from_request()
        g.claims = claims
    return claims


def is_global_admin(claims: TokenClaims) -> bool:
    return claims.role is GlobalRole.ADMIN


def can_manage_ukm(claims: TokenClaims, membership_role: Optional[OrgRole]) -> bool:
    """Global admin OR admin member of the UKM; the two scopes are OR'd."""
    if is_global_admin(claims):
        return True
    if membership_role is OrgRole.ADMIN:
        return True
    return False


def can_act_for_user(claims: TokenClaims, target_user_id: int) -> bool:
    return claims.user_id == target_user_id or is_global_admin(claims)


# --- REQUEST-LEVEL CHECKS ---
def require_auth() -> TokenClaims:
    return current_claims()


def require_global_admin() -> TokenClaims:
    claims = current_claims()
    if not is_global_admin(claims):
        raise Forbidden("Admin only")
    return claims


def require_ukm_admin(ledger: Any, ukm_id: int) -> TokenClaims:
    """
    Allow global admins and admin members of `ukm_id`.

    Global admins short-circuit before the membership lookup, so they need
    no membership row.
    """
    claims = current_claims()
    if is_global_admin(claims):
        return claims
    role = ledger.get_membership_role(claims.user_id, ukm_id)
    if not can_manage_ukm(claims, role):
        raise Forbidden("UKM admin only")
    return claims


def require_event_admin(ledger: Any, event_id: int) -> Tuple[TokenClaims, int]:
    """
    Resolve the event's UKM and apply `require_ukm_admin` to it.

    Returns:
        tuple: (claims, ukm_id)

    Raises:
        NotFound: The event does not exist.
    """
    current_claims()
    ukm_id = ledger.get_event_ukm_id(event_id)
    return require_ukm_admin(ledger, ukm_id), ukm_id


def require_self_or_admin(target_user_id: int) -> TokenClaims:
    claims = current_claims()
    if not can_act_for_user(claims, target_user_id):
        raise Forbidden("Not allowed")
    return claims


# --- DECORATORS ---
def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_claims()
        return fn(*args, **kwargs)

    return wrapped


def admin_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        require_global_admin()
        return fn(*args, **kwargs)

    return wrapped
