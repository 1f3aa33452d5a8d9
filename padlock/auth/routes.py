"""
Authentication routes.

``create_auth_router`` exposes a ``Padlock`` instance over HTTP:

- ``GET|POST /auth?provider=<id>``: start a login (redirect or trusted POST)
- ``GET /auth/callback``: finish an OAuth login

Paths follow ``PadlockConfig.auth_path`` / ``callback_path``.
"""

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from ..cookies import CookieJar
from .flow import Padlock


def create_auth_router(padlock: Padlock) -> APIRouter:
    """
    Build the router for ``padlock``.

    Callback errors are rendered here rather than by FastAPI's handler so the
    cookie jar (which clears the PKCE and state cookies) is applied to the
    error response too.
    """
    auth_router = APIRouter(tags=["authentication"])

    async def login(request: Request) -> Response:
        cookies = CookieJar(request)
        response = await padlock.initiate(request, cookies)
        return cookies.apply(response)

    async def callback(request: Request) -> Response:
        cookies = CookieJar(request)
        try:
            response = await padlock.complete(request, cookies)
        except HTTPException as exc:
            response = JSONResponse(
                {"detail": exc.detail},
                status_code=exc.status_code,
                headers=exc.headers,
            )
        return cookies.apply(response)

    auth_router.add_api_route(
        padlock.config.auth_path,
        login,
        methods=["GET", "POST"],
        name="padlock_login",
    )
    auth_router.add_api_route(
        padlock.config.callback_path,
        callback,
        methods=["GET"],
        name="padlock_callback",
    )

    return auth_router
