"""
Authentication API for SaberPro.

Handles credential sign-in through the providers, issues signed session
cookies and enforces route authorization on every request.
"""

import asyncio
import sys
from typing import Any, Dict, Optional

from aiohttp import web
from loguru import logger

from ..auth.claims import build_token, project_session
from ..auth.database import IdentityDatabase
from ..auth.errors import (
    AlreadyActivatedError,
    AuthenticationError,
    AuthError,
    ConflictError,
    InactiveAccountError,
    IncorrectPasswordError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from ..auth.jwt_handler import JWTHandler
from ..auth.permissions import RouteGate, can_manage_user
from ..auth.providers import CredentialProvider, build_providers
from ..auth.schemas import validate_password_change
from ..auth.user_manager import UserManager
from ..config import Settings, settings as default_settings

USERS = web.AppKey("users", UserManager)
TOKENS = web.AppKey("tokens", JWTHandler)
PROVIDERS = web.AppKey("providers", dict)
GATE = web.AppKey("gate", RouteGate)
SETTINGS = web.AppKey("settings", Settings)

ERROR_STATUS = {
    ValidationError: 400,
    AuthError: 401,
    IncorrectPasswordError: 400,
    InactiveAccountError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    AlreadyActivatedError: 409,
    StoreError: 503,
}


def error_response(code: str, message: str, status: int, details: Any = None) -> web.Response:
    return web.json_response({
        'success': False,
        'error': {
            'code': code,
            'message': message,
            'details': details,
        }
    }, status=status)


async def run_blocking(func, *args):
    """Run store and hashing work off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func, *args)


async def read_payload(request: web.Request) -> Dict[str, Any]:
    """Read a JSON or form-encoded body."""
    if request.content_type == 'application/json':
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError({'__root__': ['Malformed JSON body']})
        if not isinstance(data, dict):
            raise ValidationError({'__root__': ['Expected a JSON object']})
        return data
    return dict(await request.post())


def issue_session(request: web.Request, response: web.StreamResponse, contents: Dict[str, Any]) -> None:
    settings = request.app[SETTINGS]
    token = request.app[TOKENS].encode(contents)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        samesite='Lax',
        path='/',
    )


# ============================================================================
# Middlewares
# ============================================================================

@web.middleware
async def error_middleware(request, handler):
    """Render authentication errors as JSON without internal details."""
    try:
        return await handler(request)
    except ValidationError as e:
        return error_response(e.code, e.public_message, 400, details=e.errors)
    except AuthenticationError as e:
        status = ERROR_STATUS.get(type(e), 400)
        return error_response(e.code, e.public_message, status)


@web.middleware
async def session_middleware(request, handler):
    """Project the session cookie into request['session']."""
    cookie = request.cookies.get(request.app[SETTINGS].session_cookie_name)
    contents = request.app[TOKENS].decode(cookie) if cookie else None

    request['session_token'] = contents or {}
    request['session'] = project_session(contents)
    return await handler(request)


@web.middleware
async def route_gate_middleware(request, handler):
    """Deny or redirect requests the session may not make."""
    gate = request.app[GATE]
    claims = request['session']
    path = request.path

    if gate.is_api(path):
        if not gate.is_authorized(claims, path):
            return error_response('forbidden', 'Access denied', 403)
        return await handler(request)

    target = gate.redirect_for(claims, path)
    if target is not None:
        logger.debug(f"Redirecting {path} to {target}")
        raise web.HTTPFound(target)

    return await handler(request)


# ============================================================================
# Handlers
# ============================================================================

async def handle_providers(request):
    """
    List the credential providers.

    GET /api/auth/providers
    Returns: {"credentials-email": {"id": "...", "name": "..."}, ...}
    """
    return web.json_response({
        provider_id: {'id': provider_id, 'name': provider.name}
        for provider_id, provider in request.app[PROVIDERS].items()
    })


async def handle_callback(request):
    """
    Sign in through a credential provider.

    POST /api/auth/callback/{provider}
    Body: the provider's credential fields
    Returns: {"success": true, "user": {...}} and sets the session cookie
    """
    provider: Optional[CredentialProvider] = request.app[PROVIDERS].get(request.match_info['provider'])
    if provider is None:
        return error_response('unknown_provider', 'Unknown sign-in method', 404)

    payload = await read_payload(request)
    claims = await run_blocking(provider.authorize, payload)
    if claims is None:
        return error_response('missing_credentials', 'Credentials are required', 400)

    response = web.json_response({
        'success': True,
        'user': claims.to_dict(),
    })
    issue_session(request, response, build_token(claims, {}))

    logger.info(f"Signed in via {provider.provider_id}: {claims.email} (role: {claims.role.value})")
    return response


async def handle_get_session(request):
    """
    Return the current session.

    GET /api/auth/session
    Returns: {"user": {...}, "expires": "..."} or {} without a session
    """
    claims = request['session']
    if claims is None:
        return web.json_response({})

    expires = request.app[TOKENS].expires_at(request['session_token'])
    return web.json_response({
        'user': claims.to_dict(),
        'expires': expires.isoformat() if expires else None,
    })


async def handle_update_session(request):
    """
    Save profile changes and refresh the session token.

    POST /api/auth/session
    Body: {"name": "...", "isOnboarded": true} (both optional)
    Returns: {"user": {...}}

    The refreshed token is rebuilt from the stored identity, so the role
    can never be set from the request body.
    """
    claims = request['session']
    if claims is None:
        return error_response('unauthorized', 'Not signed in', 401)

    body = await read_payload(request) if request.can_read_body else {}
    name = body.get('name')
    is_onboarded = body.get('isOnboarded')

    users = request.app[USERS]
    refreshed = await run_blocking(
        users.update_profile,
        claims.id,
        name if isinstance(name, str) and name else None,
        is_onboarded if isinstance(is_onboarded, bool) else None,
    )

    contents = build_token(None, request['session_token'], trigger='update', update={'user': refreshed.to_dict()})
    response = web.json_response({'user': project_session(contents).to_dict()})
    issue_session(request, response, contents)
    return response


async def handle_signout(request):
    """
    Clear the session cookie.

    POST /api/auth/signout
    Returns: {"success": true}
    """
    claims = request['session']
    response = web.json_response({'success': True})
    response.del_cookie(request.app[SETTINGS].session_cookie_name, path='/')
    if claims is not None:
        logger.info(f"User signed out: {claims.email}")
    return response


async def handle_check_student(request):
    """
    Check whether a student ID exists and is activated.

    GET /api/students/check?id=123456
    Returns: {"exists": true, "activated": false, "message": "..."}
    """
    student_id = request.query.get('id')
    if not student_id:
        return error_response('missing_student_id', 'Student ID is required', 400)

    status = await run_blocking(request.app[USERS].check_student, student_id)
    if not status.exists:
        message = 'Student not found'
    elif status.activated:
        message = 'Account activated'
    else:
        message = 'Account not activated'

    return web.json_response({
        'exists': status.exists,
        'activated': status.activated,
        'message': message,
    })


async def handle_change_password(request):
    """
    Change a user's password.

    PUT /api/users/{id}/password
    Body: {"currentPassword": "...", "newPassword": "..."}
    Returns: {"success": true, "message": "..."}
    """
    claims = request['session']
    if claims is None:
        return error_response('unauthorized', 'Not signed in', 401)

    user_id = request.match_info['id']
    if not can_manage_user(claims, user_id):
        return error_response('forbidden', 'Not allowed to change this password', 403)

    data = validate_password_change(await read_payload(request))
    await run_blocking(
        request.app[USERS].change_password,
        user_id,
        data.current_password,
        data.new_password,
    )

    logger.info(f"Password changed for {user_id} by {claims.id}")
    return web.json_response({
        'success': True,
        'message': 'Password updated',
    })


# ============================================================================
# Application
# ============================================================================

def create_app(
    users: UserManager,
    tokens: Optional[JWTHandler] = None,
    settings: Optional[Settings] = None
) -> web.Application:
    """
    Build the authentication application.

    Args:
        users: Identity resolver backed by the identity store
        tokens: Session token handler (default from settings)
        settings: Settings (default: module settings)
    """
    settings = settings or default_settings

    app = web.Application(middlewares=[error_middleware, session_middleware, route_gate_middleware])
    app[USERS] = users
    app[TOKENS] = tokens or JWTHandler(
        secret_key=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        max_age_seconds=settings.session_max_age_seconds,
    )
    app[PROVIDERS] = build_providers(users)
    app[GATE] = RouteGate()
    app[SETTINGS] = settings

    app.router.add_get('/api/auth/providers', handle_providers)
    app.router.add_post('/api/auth/callback/{provider}', handle_callback)
    app.router.add_get('/api/auth/session', handle_get_session)
    app.router.add_post('/api/auth/session', handle_update_session)
    app.router.add_post('/api/auth/signout', handle_signout)
    app.router.add_get('/api/students/check', handle_check_student)
    app.router.add_put('/api/users/{id}/password', handle_change_password)
    return app


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def main() -> None:
    """Run the authentication API server."""
    configure_logging(default_settings.log_level)

    db = IdentityDatabase(default_settings.database_path)
    users = UserManager(db)
    app = create_app(users)

    logger.info(f"Starting SaberPro auth API on {default_settings.host}:{default_settings.port}")
    web.run_app(app, host=default_settings.host, port=default_settings.port, print=None)


if __name__ == '__main__':
    main()
