"""
Route authorization for SaberPro.

This module provides:
- Path classification (auth routes, static assets, public pages)
- Role-gated areas for admins, teachers and students
- The allow/deny decision consulted on every request
- Role home pages used for redirects
"""

from typing import Dict, FrozenSet, Optional, Tuple

from .models import Role, SessionClaims

AUTH_ROUTE_PREFIX = "/api/auth"
API_PREFIX = "/api/"
LOGIN_PATH = "/login"
STUDENT_CHECK_PREFIX = "/api/students/check"

STATIC_PREFIXES: Tuple[str, ...] = ("/_next", "/favicon.ico", "/images", "/assets", "/static")
STATIC_SUFFIXES: Tuple[str, ...] = (".css", ".js", ".jpg", ".png", ".svg")

ADMIN_PREFIXES: Tuple[str, ...] = ("/admin",)
TEACHER_PREFIXES: Tuple[str, ...] = ("/teacher",)
STUDENT_PREFIXES: Tuple[str, ...] = ("/student", "/dashboard", "/subjects", "/homeworks", "/calendar")

# Roles allowed into each gated area
AREA_ROLES: Dict[Tuple[str, ...], FrozenSet[Role]] = {
    ADMIN_PREFIXES: frozenset({Role.ADMIN, Role.SUPERADMIN}),
    TEACHER_PREFIXES: frozenset({Role.TEACHER}),
    STUDENT_PREFIXES: frozenset({Role.STUDENT}),
}

ROLE_HOME: Dict[Role, str] = {
    Role.STUDENT: "/dashboard",
    Role.TEACHER: "/teacher",
    Role.ADMIN: "/admin",
    Role.SUPERADMIN: "/admin",
}


class RouteGate:
    """
    Decides whether a request may reach its handler.

    Stateless; the decision depends only on the session claims and the path.
    """

    def __init__(self):
        """Initialize route gate."""
        self.area_roles = AREA_ROLES

    def is_exempt(self, path: str) -> bool:
        """
        Check if a path is always allowed (auth routes and static assets).
        """
        if path.startswith(AUTH_ROUTE_PREFIX):
            return True
        return path.startswith(STATIC_PREFIXES) or path.endswith(STATIC_SUFFIXES)

    def is_public(self, path: str) -> bool:
        """Check if a path is reachable without a session."""
        return path == LOGIN_PATH or path.startswith(STUDENT_CHECK_PREFIX)

    def is_api(self, path: str) -> bool:
        return path.startswith(API_PREFIX)

    def allowed_roles(self, path: str) -> Optional[FrozenSet[Role]]:
        """
        Get the roles allowed into the gated area containing path.

        Returns:
            Set of roles, or None if the path is not in a gated area
        """
        for prefixes, roles in self.area_roles.items():
            if path.startswith(prefixes):
                return roles
        return None

    def is_authorized(self, claims: Optional[SessionClaims], path: str) -> bool:
        """
        Decide allow/deny for a request.

        Args:
            claims: Current session claims, None without a session
            path: Request path

        Returns:
            bool: True if the request may proceed
        """
        # Exemptions come before any session check
        if self.is_exempt(path):
            return True

        if claims is None and self.is_public(path):
            return True

        # API routes enforce their own session requirements
        if claims is None and not self.is_api(path):
            return False

        roles = self.allowed_roles(path)
        if roles is not None:
            return claims is not None and claims.role in roles

        return True

    def redirect_for(self, claims: Optional[SessionClaims], path: str) -> Optional[str]:
        """
        Get the page a browser request should be sent to instead, if any.

        Signed-in users visiting the login page go to their role's home.
        Denied pages send anonymous users to login and everyone else to "/".

        Returns:
            Redirect target, or None to let the request through
        """
        if claims is not None and path == LOGIN_PATH:
            return home_path_for(claims.role)

        if self.is_authorized(claims, path):
            return None

        return LOGIN_PATH if claims is None else "/"


def home_path_for(role: Role) -> str:
    """Home page for a role."""
    return ROLE_HOME.get(role, "/")


# Global route gate instance
_route_gate = RouteGate()


def is_route_allowed(claims: Optional[SessionClaims], path: str) -> bool:
    """
    Global helper for the allow/deny decision.

    Args:
        claims: Current session claims, or None
        path: Request path

    Returns:
        bool: True if authorized, False otherwise
    """
    return _route_gate.is_authorized(claims, path)


def redirect_for(claims: Optional[SessionClaims], path: str) -> Optional[str]:
    return _route_gate.redirect_for(claims, path)


def can_manage_user(claims: SessionClaims, user_id: str) -> bool:
    """
    Check if the session may act on another user's account.

    Users manage their own account; admins manage everyone's.
    """
    return claims.id == user_id or claims.role in (Role.ADMIN, Role.SUPERADMIN)
