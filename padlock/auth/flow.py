"""
Authorization orchestrator.

``Padlock`` sequences the building blocks of this package into the two
request entry points of a login:

- ``initiate``: redirect to an OAuth provider (setting the PKCE verifier and
  state cookies), or authenticate a trusted-provider POST synchronously.
- ``complete``: validate the callback's state against its cookie, exchange
  the code, fetch the user, run the ``on_user`` hook and issue the session.

Plus ``authorize`` for protecting routes with the issued session token.
"""

import asyncio
import inspect
import logging
from typing import Any, List, Mapping, Optional, Set, Tuple
from urllib.parse import urlencode

from fastapi import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from ..config import PadlockConfig, ProviderConfig
from ..cookies import CookieJar
from ..errors import (
    BadRequestError,
    ConfigurationError,
    InternalAuthError,
    MethodNotAllowedError,
    StateValidationError,
    UnauthorizedError,
    UnknownProviderError,
)
from ..models import NormalizedUser, SessionPayload
from ..providers import PROVIDERS, OAuthProvider
from .csrf import enforce_same_origin
from .pkce import CODE_CHALLENGE_METHOD, generate_pkce_pair
from .session import (
    SessionTokenError,
    extract_session_token,
    issue_session_token,
    verify_session_token,
)
from .state import (
    decode_state_param,
    encode_state_param,
    generate_state_token,
    pkce_cookie_name,
    state_cookie_name,
    validate_state_token,
)
from .trusted import coerce_user, dispatch, maybe_await

logger = logging.getLogger(__name__)


class Padlock:
    """
    Entry points of the login flow, bound to one immutable configuration.

    Args:
        config: Application configuration, shared read-only across requests
        providers: Descriptor registry; defaults to the built-in providers
    """

    def __init__(
        self,
        config: PadlockConfig,
        providers: Optional[Mapping[str, OAuthProvider]] = None,
    ):
        self.config = config
        self._registry = dict(PROVIDERS if providers is None else providers)
        self._secure_ephemeral = config.base_url.startswith("https://")
        # Strong references to running async on_error hooks
        self._hook_tasks: Set["asyncio.Future[Any]"] = set()

        self._validate_configuration()

    # =========================================================================
    # Configuration Validation
    # =========================================================================

    def _handle_invalid_config(self, message: str) -> None:
        mode = self.config.on_invalid_configuration
        if mode == "silent":
            return
        if mode == "warn":
            logger.warning(f"[padlock] {message}")
            return
        raise ConfigurationError(f"[padlock] {message}")

    def _validate_configuration(self) -> None:
        overlap = sorted(set(self.config.providers) & set(self.config.trusted_providers))
        if overlap:
            raise ConfigurationError(
                f"provider(s) {', '.join(overlap)} cannot exist in both "
                "providers and trusted_providers"
            )

        for provider_id, provider_config in self.config.providers.items():
            if provider_id not in self._registry:
                self._handle_invalid_config(f'provider "{provider_id}" is not supported')
                continue

            if not provider_config.client_id:
                self._handle_invalid_config(f'provider "{provider_id}" is missing client_id')

            if not provider_config.client_secret.get_secret_value():
                self._handle_invalid_config(f'provider "{provider_id}" is missing client_secret')

    # =========================================================================
    # Initiate
    # =========================================================================

    async def initiate(self, request: Request, cookies: CookieJar) -> Response:
        """
        Start a login for the provider named by the ``provider`` query parameter.

        Raises:
            BadRequestError: If the parameter is missing
            UnknownProviderError: If it names no configured provider
            MethodNotAllowedError: Trusted provider reached without POST
            ForbiddenError: Trusted POST from another origin
            AuthenticationFailed: Trusted provider rejected the credentials
        """
        provider_id = request.query_params.get("provider")
        if not provider_id:
            raise BadRequestError("missing provider")

        if provider_id in self.config.providers:
            return self._redirect_to_provider(provider_id, cookies)

        if provider_id in self.config.trusted_providers:
            return await self._authenticate_trusted(provider_id, request, cookies)

        raise UnknownProviderError()

    def redirect_uri_for(self, provider_config: ProviderConfig) -> str:
        return provider_config.redirect_uri or self.config.default_redirect_uri

    def build_authorize_url(
        self,
        provider: OAuthProvider,
        provider_config: ProviderConfig,
        state: str,
        code_challenge: str,
    ) -> str:
        params = {
            "client_id": provider_config.client_id,
            "redirect_uri": self.redirect_uri_for(provider_config),
            "response_type": "code",
            "scope": provider.scope_string(provider_config),
            "state": encode_state_param(provider.id, state),
            "code_challenge": code_challenge,
            "code_challenge_method": CODE_CHALLENGE_METHOD,
        }
        return f"{provider.authorize_url(provider_config)}?{urlencode(params)}"

    def _redirect_to_provider(self, provider_id: str, cookies: CookieJar) -> Response:
        provider = self._registry.get(provider_id)
        if provider is None:
            raise UnknownProviderError("invalid provider")

        provider_config = self.config.providers[provider_id]

        verifier, challenge = generate_pkce_pair()
        state = generate_state_token()

        self._set_ephemeral(cookies, pkce_cookie_name(provider_id), verifier)
        self._set_ephemeral(cookies, state_cookie_name(provider_id), state)

        authorization_url = self.build_authorize_url(provider, provider_config, state, challenge)

        logger.info("Redirecting to OAuth provider", extra={"provider": provider_id})
        return RedirectResponse(url=authorization_url, status_code=302)

    def _set_ephemeral(self, cookies: CookieJar, name: str, value: str) -> None:
        cookies.set(
            name,
            value,
            http_only=True,
            same_site="lax",
            secure=self._secure_ephemeral,
            path=self.config.callback_path,
            max_age=self.config.ephemeral_max_age,
        )

    def _clear_ephemeral(self, cookies: CookieJar, provider_id: str) -> None:
        cookies.delete(pkce_cookie_name(provider_id), path=self.config.callback_path)
        cookies.delete(state_cookie_name(provider_id), path=self.config.callback_path)

    async def _authenticate_trusted(
        self,
        provider_id: str,
        request: Request,
        cookies: CookieJar,
    ) -> Response:
        if request.method != "POST":
            raise MethodNotAllowedError(headers={"Allow": "POST"})

        enforce_same_origin(request, self.config.base_url)

        args = await self._read_trusted_args(request)
        user = await dispatch(provider_id, self.config.trusted_providers[provider_id], args)

        return await self._respond_with_user(user, cookies)

    @staticmethod
    async def _read_trusted_args(request: Request) -> List[Any]:
        # Providers without arguments are called with an empty body.
        try:
            body = await request.json()
        except ValueError:
            return []

        if isinstance(body, dict) and isinstance(body.get("args"), list):
            return body["args"]
        return []

    # =========================================================================
    # Complete
    # =========================================================================

    async def complete(self, request: Request, cookies: CookieJar) -> Response:
        """
        Finish an OAuth login from the provider's callback request.

        Status-bearing errors propagate unchanged; anything else becomes
        ``InternalAuthError``. ``on_error`` sees every failure without
        delaying the response.
        """
        try:
            return await self._complete(request, cookies)
        except Exception as exc:
            self._report_error(exc)

            if isinstance(exc, HTTPException):
                logger.warning(
                    f"OAuth callback failed: {exc.detail}",
                    extra={"status_code": exc.status_code},
                )
                raise

            logger.error(f"Unexpected error in callback: {exc}", exc_info=True)
            raise InternalAuthError() from exc

    def _consume_attempt(
        self,
        raw_state: Optional[str],
        cookies: CookieJar,
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Read and delete the ephemeral cookies of the attempt ``raw_state`` points at.

        Returns:
            ``(expected_state, verifier)``; both None when the state names no
            known provider
        """
        if not raw_state:
            return None, None
        try:
            provider_id, _ = decode_state_param(raw_state)
        except StateValidationError:
            return None, None
        if provider_id not in self._registry:
            return None, None

        expected_state = cookies.get(state_cookie_name(provider_id))
        verifier = cookies.get(pkce_cookie_name(provider_id))

        # Single use: gone whatever the outcome below.
        self._clear_ephemeral(cookies, provider_id)
        return expected_state, verifier

    async def _complete(self, request: Request, cookies: CookieJar) -> Response:
        params = request.query_params
        code = params.get("code")
        raw_state = params.get("state")

        expected_state, verifier = self._consume_attempt(raw_state, cookies)

        oauth_error = params.get("error")
        if oauth_error:
            description = params.get("error_description")
            raise BadRequestError(f"{oauth_error}: {description}" if description else oauth_error)

        if not code or not raw_state:
            raise BadRequestError("invalid callback")

        provider_id, received_state = decode_state_param(raw_state)

        provider = self._registry.get(provider_id)
        if provider is None:
            raise UnknownProviderError()

        validate_state_token(received_state, expected_state)
        if not verifier:
            raise StateValidationError("missing pkce")

        provider_config = self.config.providers.get(provider_id)
        if provider_config is None:
            raise ConfigurationError("provider not configured")

        token_set = await provider.exchange_code(
            code=code,
            code_verifier=verifier,
            client_id=provider_config.client_id,
            client_secret=provider_config.client_secret.get_secret_value(),
            redirect_uri=self.redirect_uri_for(provider_config),
            config=provider_config,
        )

        user = await provider.fetch_user(token_set.access_token)

        return await self._respond_with_user(user, cookies)

    def _report_error(self, exc: Exception) -> None:
        """Hand ``exc`` to ``on_error``; an async hook runs as a background task."""
        on_error = self.config.on_error
        if on_error is None:
            return

        try:
            result = on_error(exc)
        except Exception:
            logger.error("on_error callback failed", exc_info=True)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._hook_tasks.add(task)
            task.add_done_callback(self._hook_finished)

    def _hook_finished(self, task: "asyncio.Future[Any]") -> None:
        self._hook_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("on_error callback failed", exc_info=error)

    # =========================================================================
    # Post-authentication
    # =========================================================================

    async def _respond_with_user(self, user: NormalizedUser, cookies: CookieJar) -> Response:
        if self.config.on_user is not None:
            user = coerce_user(await maybe_await(self.config.on_user(user)))

        session = self.config.session
        if session is not None:
            token = issue_session_token(
                SessionPayload.for_user(user),
                session.secret.get_secret_value(),
                expires_in_seconds=session.expires_in_seconds,
                algorithm=session.algorithm,
            )
            cookies.set(
                session.cookie.name,
                token,
                http_only=session.cookie.http_only,
                same_site=session.cookie.same_site,
                secure=session.cookie.secure,
                path=session.cookie.path,
                max_age=session.expires_in_seconds,
            )

        logger.info(
            "User authenticated",
            extra={"provider": user.provider, "provider_account_id": user.provider_account_id},
        )
        return JSONResponse(user.to_response())

    # =========================================================================
    # Authorization Check
    # =========================================================================

    def authorize(
        self,
        request: Request,
        required: bool = False,
        set_state: bool = False,
    ) -> Optional[SessionPayload]:
        """
        Return the session behind ``request``, if any.

        The token is read from a bearer Authorization header, falling back to
        the session cookie.

        Args:
            request: Incoming request
            required: Raise instead of returning None when there is no valid session
            set_state: Also store the payload on ``request.state.session``

        Raises:
            ConfigurationError: If no session configuration exists
            UnauthorizedError: If ``required`` and the token is missing or invalid
        """
        session = self.config.session
        if session is None:
            raise ConfigurationError("session configuration is missing")

        token = extract_session_token(request, session.cookie.name)
        if not token:
            if required:
                raise UnauthorizedError("invalid or missing token")
            return None

        try:
            payload = verify_session_token(
                token,
                session.secret.get_secret_value(),
                algorithm=session.algorithm,
            )
        except SessionTokenError as e:
            logger.debug(f"Rejected session token: {e}")
            if required:
                raise UnauthorizedError("invalid token")
            return None

        if set_state:
            request.state.session = payload
        return payload

    async def require_session(self, request: Request) -> SessionPayload:
        """
        FastAPI dependency for protected routes.

        Usage in routes:
            @app.get("/protected")
            async def protected(session = Depends(padlock.require_session)):
                return {"sub": session.sub}
        """
        return self.authorize(request, required=True, set_state=True)

    async def optional_session(self, request: Request) -> Optional[SessionPayload]:
        """FastAPI dependency returning the session or None."""
        return self.authorize(request, required=False, set_state=True)
