"""
JWT WebSocket Authentication Middleware for Django Channels.

Authenticates kitchen WebSocket connections with the staff access token,
taken from the ``access_token`` cookie or a ``?token=`` query parameter.
"""
import logging
from urllib.parse import parse_qs

import jwt
from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.conf import settings
from django.contrib.auth.models import AnonymousUser

logger = logging.getLogger(__name__)


def _parse_cookies(scope):
    headers = dict(scope.get('headers', []))
    cookie_header = headers.get(b'cookie', b'').decode('utf-8')

    cookies = {}
    for cookie in cookie_header.split(';'):
        if '=' in cookie:
            key, value = cookie.strip().split('=', 1)
            cookies[key] = value
    return cookies


@database_sync_to_async
def _load_staff(staff_id, session_id):
    from staff.models import Staff, StaffSession

    staff = Staff.all_objects.select_related('restaurant').get(id=staff_id, is_active=True)
    if session_id and not StaffSession.objects.filter(
        session_id=session_id, staff=staff
    ).valid().exists():
        return None
    return staff


class JWTAuthMiddleware(BaseMiddleware):
    """
    Puts the authenticated Staff (or AnonymousUser) into ``scope['user']``.
    """

    async def __call__(self, scope, receive, send):
        if scope['type'] != 'websocket':
            return await super().__call__(scope, receive, send)

        scope['user'] = await self.get_user_from_jwt(scope)
        return await super().__call__(scope, receive, send)

    async def get_user_from_jwt(self, scope):
        jwt_config = settings.SIMPLE_JWT
        access_token = _parse_cookies(scope).get(jwt_config.get('AUTH_COOKIE'))

        if not access_token:
            query = parse_qs(scope.get('query_string', b'').decode('utf-8'))
            access_token = (query.get('token') or [None])[0]

        if not access_token:
            logger.debug("No JWT access token found in WebSocket connection")
            return AnonymousUser()

        try:
            payload = jwt.decode(
                access_token,
                jwt_config.get('SIGNING_KEY', settings.SECRET_KEY),
                algorithms=[jwt_config.get('ALGORITHM', 'HS256')],
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Expired JWT token in WebSocket connection")
            return AnonymousUser()
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token in WebSocket connection: {e}")
            return AnonymousUser()

        if payload.get(jwt_config.get('TOKEN_TYPE_CLAIM', 'token_type')) != 'access':
            logger.warning("Non-access token presented to WebSocket")
            return AnonymousUser()

        staff_id = payload.get(jwt_config.get('USER_ID_CLAIM', 'staff_id'))
        if not staff_id:
            logger.warning("JWT payload missing staff_id")
            return AnonymousUser()

        from staff.models import Staff

        try:
            staff = await _load_staff(staff_id, payload.get('session_id'))
        except Staff.DoesNotExist:
            logger.warning(f"Staff {staff_id} from JWT not found or inactive")
            return AnonymousUser()

        if staff is None:
            logger.warning(f"WebSocket rejected: session for staff {staff_id} is no longer valid")
            return AnonymousUser()

        logger.info(f"WebSocket authenticated: staff_id={staff.id}, restaurant_id={staff.restaurant_id}")
        return staff
