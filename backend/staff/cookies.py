from django.conf import settings
from rest_framework.response import Response


class AuthCookieService:
    """
    Sets and clears the staff auth cookies with one set of security flags.
    """

    @staticmethod
    def get_cookie_settings() -> dict:
        return {
            "secure": getattr(settings, "SESSION_COOKIE_SECURE", not settings.DEBUG),
            "samesite": getattr(settings, "SESSION_COOKIE_SAMESITE", "Lax"),
            "httponly": True,
        }

    @staticmethod
    def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> Response:
        cookie_settings = AuthCookieService.get_cookie_settings()

        response.set_cookie(
            key=settings.SIMPLE_JWT["AUTH_COOKIE"],
            value=access_token,
            max_age=int(settings.SIMPLE_JWT["ACCESS_TOKEN_LIFETIME"].total_seconds()),
            path="/",
            **cookie_settings,
        )
        response.set_cookie(
            key=settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"],
            value=refresh_token,
            max_age=int(settings.SIMPLE_JWT["REFRESH_TOKEN_LIFETIME"].total_seconds()),
            path="/api/auth",
            **cookie_settings,
        )
        return response

    @staticmethod
    def clear_auth_cookies(response: Response) -> Response:
        samesite = getattr(settings, "SESSION_COOKIE_SAMESITE", "Lax")
        response.delete_cookie(settings.SIMPLE_JWT["AUTH_COOKIE"], path="/", samesite=samesite)
        response.delete_cookie(
            settings.SIMPLE_JWT["AUTH_COOKIE_REFRESH"], path="/api/auth", samesite=samesite
        )
        return response
