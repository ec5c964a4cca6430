"""
Session claims.

Shapes identities into the claims carried by the session token, merges them
into the token, and projects the token back into request-scoped claims.
"""

from typing import Any, Dict, Mapping, Optional

from loguru import logger

from .models import Identity, Role, SessionClaims

UPDATE_TRIGGER = "update"


def build_claims(identity: Identity) -> SessionClaims:
    """
    Shape an identity into session claims. A missing name becomes "".
    """
    return SessionClaims(
        id=identity.user_id,
        name=identity.name or "",
        email=identity.email,
        role=identity.role,
        is_onboarded=identity.is_onboarded,
    )


def build_token(
    claims: Optional[SessionClaims],
    previous_token: Optional[Mapping[str, Any]] = None,
    trigger: Optional[str] = None,
    update: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """
    Merge claims into the session token contents.

    Args:
        claims: Fresh claims on sign-in, None on later requests
        previous_token: Current token contents
        trigger: "update" when the client asked to refresh the session
        update: Session data sent with the update trigger, either the user
            fields or a mapping with a "user" key

    Returns:
        New token contents (the previous mapping is not modified)
    """
    token: Dict[str, Any] = dict(previous_token or {})

    if claims is not None:
        token.update(claims.to_dict())

    if trigger == UPDATE_TRIGGER and update:
        user = update.get("user", update)
        # Trusted path: the caller already authorized this update
        if user.get("name"):
            token["name"] = user["name"]
        if user.get("role"):
            token["role"] = user["role"].value if isinstance(user["role"], Role) else user["role"]
        if user.get("isOnboarded") is not None:
            token["isOnboarded"] = bool(user["isOnboarded"])

    return token


def project_session(token: Optional[Mapping[str, Any]]) -> Optional[SessionClaims]:
    """
    Rebuild request-scoped claims from token contents without touching the store.

    Returns:
        SessionClaims, or None if the token carries no usable identity
    """
    if not token or not token.get("id"):
        return None

    try:
        role = Role(token.get("role"))
    except ValueError:
        logger.warning(f"Session token for {token.get('id')} has unknown role: {token.get('role')!r}")
        return None

    return SessionClaims(
        id=str(token["id"]),
        name=token.get("name") or "",
        email=token.get("email") or "",
        role=role,
        is_onboarded=bool(token.get("isOnboarded", False)),
    )
