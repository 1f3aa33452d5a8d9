"""
Session Token Tests

Issue / verify round trip, rejection of tampered and expired tokens, and the
``authorize`` check built on top of them.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError

from padlock import Padlock, PadlockConfig, SessionConfig, issue_session_token, verify_session_token
from padlock.auth.session import (
    SessionTokenError,
    SessionTokenExpired,
    extract_bearer_token,
)
from padlock.errors import ConfigurationError, UnauthorizedError
from padlock.models import NormalizedUser, SessionPayload

from conftest import BASE_URL, SESSION_SECRET, make_request


def payload_for(provider: str = "github", account_id: str = "4242") -> SessionPayload:
    return SessionPayload.for_user(
        NormalizedUser(provider=provider, provider_account_id=account_id)
    )


# ============================================================================
# Codec
# ============================================================================

class TestSessionToken:

    def test_round_trip(self):
        token = issue_session_token(payload_for(), SESSION_SECRET)

        payload = verify_session_token(token, SESSION_SECRET)

        assert payload == payload_for()
        assert payload.sub == "github:4242"

    def test_claims_on_the_wire(self):
        token = issue_session_token(payload_for(), SESSION_SECRET, expires_in_seconds=120)

        claims = jwt.decode(token, SESSION_SECRET, algorithms=["HS256"])

        assert claims["sub"] == "github:4242"
        assert claims["provider"] == "github"
        assert claims["providerAccountId"] == "4242"
        assert claims["exp"] - claims["iat"] == 120

    def test_other_algorithm(self):
        token = issue_session_token(payload_for(), SESSION_SECRET, algorithm="HS512")

        assert jwt.get_unverified_header(token)["alg"] == "HS512"
        assert verify_session_token(token, SESSION_SECRET, algorithm="HS512").provider == "github"

        with pytest.raises(SessionTokenError):
            verify_session_token(token, SESSION_SECRET, algorithm="HS256")

    def test_wrong_secret_is_rejected(self):
        token = issue_session_token(payload_for(), SESSION_SECRET)

        with pytest.raises(SessionTokenError):
            verify_session_token(token, "another-secret-that-is-long-enough-000")

    def test_tampered_payload_is_rejected(self):
        token = issue_session_token(payload_for(), SESSION_SECRET)
        header, _, signature = token.split(".")
        forged = jwt.encode(
            {"sub": "github:1", "provider": "github", "providerAccountId": "1", "exp": 9999999999},
            "attacker-key-attacker-key-attacker-key",
            algorithm="HS256",
        ).split(".")[1]

        with pytest.raises(SessionTokenError):
            verify_session_token(f"{header}.{forged}.{signature}", SESSION_SECRET)

    def test_expired_token_is_rejected(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                **payload_for().to_claims(),
                "iat": past,
                "exp": past + timedelta(hours=1),
            },
            SESSION_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(SessionTokenExpired):
            verify_session_token(token, SESSION_SECRET)

    def test_missing_claims_are_rejected(self):
        token = jwt.encode(
            {"sub": "github:4242", "exp": 9999999999},
            SESSION_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(SessionTokenError):
            verify_session_token(token, SESSION_SECRET)

    def test_inconsistent_subject_is_rejected(self):
        token = jwt.encode(
            {"sub": "github:1", "provider": "github", "providerAccountId": "2", "exp": 9999999999},
            SESSION_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(SessionTokenError):
            verify_session_token(token, SESSION_SECRET)

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_tokens(self, token):
        with pytest.raises(SessionTokenError):
            verify_session_token(token, SESSION_SECRET)

    def test_subject_must_match_identity(self):
        with pytest.raises(ValidationError):
            SessionPayload(sub="github:1", provider="github", provider_account_id="2")


class TestBearerExtraction:

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc", "abc"),
        ("bearer abc", "abc"),
        ("Basic abc", None),
        ("Bearer", None),
        (None, None),
    ])
    def test_extract_bearer_token(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestSessionConfig:

    def test_short_secret_is_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(secret="too-short")

    def test_unsupported_algorithm_is_rejected(self):
        with pytest.raises(ValidationError):
            SessionConfig(secret=SESSION_SECRET, algorithm="RS256")

    def test_secret_is_not_exposed_in_repr(self):
        assert SESSION_SECRET not in repr(SessionConfig(secret=SESSION_SECRET))


# ============================================================================
# authorize
# ============================================================================

@pytest.fixture
def session_padlock(session_config) -> Padlock:
    return Padlock(PadlockConfig(base_url=BASE_URL, session=session_config))


class TestAuthorize:

    def test_valid_cookie(self, session_padlock):
        token = issue_session_token(payload_for(), SESSION_SECRET)
        request = make_request(cookies={"padlock_token": token})

        assert session_padlock.authorize(request) == payload_for()

    def test_valid_bearer_header(self, session_padlock):
        token = issue_session_token(payload_for(), SESSION_SECRET)
        request = make_request(headers={"Authorization": f"Bearer {token}"})

        assert session_padlock.authorize(request).sub == "github:4242"

    def test_header_takes_precedence_over_cookie(self, session_padlock):
        header_token = issue_session_token(payload_for("microsoft", "ms-1"), SESSION_SECRET)
        cookie_token = issue_session_token(payload_for("github", "4242"), SESSION_SECRET)
        request = make_request(
            headers={"Authorization": f"Bearer {header_token}"},
            cookies={"padlock_token": cookie_token},
        )

        assert session_padlock.authorize(request).sub == "microsoft:ms-1"

    def test_missing_token_optional(self, session_padlock):
        assert session_padlock.authorize(make_request()) is None

    def test_missing_token_required(self, session_padlock):
        with pytest.raises(UnauthorizedError) as exc_info:
            session_padlock.authorize(make_request(), required=True)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    def test_invalid_token_optional(self, session_padlock):
        request = make_request(cookies={"padlock_token": "garbage"})
        assert session_padlock.authorize(request) is None

    def test_invalid_token_required(self, session_padlock):
        request = make_request(cookies={"padlock_token": "garbage"})

        with pytest.raises(UnauthorizedError):
            session_padlock.authorize(request, required=True)

    def test_set_state(self, session_padlock):
        token = issue_session_token(payload_for(), SESSION_SECRET)
        request = make_request(cookies={"padlock_token": token})

        session_padlock.authorize(request, set_state=True)

        assert request.state.session.sub == "github:4242"

    def test_missing_session_configuration(self):
        padlock = Padlock(PadlockConfig(base_url=BASE_URL))

        with pytest.raises(ConfigurationError) as exc_info:
            padlock.authorize(make_request())

        assert exc_info.value.status_code == 500

    def test_custom_cookie_name(self):
        padlock = Padlock(PadlockConfig(
            base_url=BASE_URL,
            session={"secret": SESSION_SECRET, "cookie": {"name": "sid"}},
        ))
        token = issue_session_token(payload_for(), SESSION_SECRET)

        assert padlock.authorize(make_request(cookies={"padlock_token": token})) is None
        assert padlock.authorize(make_request(cookies={"sid": token})).sub == "github:4242"


class TestSessionDependencies:

    def build_app(self, padlock: Padlock) -> TestClient:
        app = FastAPI()

        @app.get("/private")
        async def private(session: SessionPayload = Depends(padlock.require_session)):
            return {"sub": session.sub}

        @app.get("/public")
        async def public(session=Depends(padlock.optional_session)):
            return {"sub": session.sub if session else None}

        return TestClient(app)

    def test_require_session(self, session_padlock):
        client = self.build_app(session_padlock)
        token = issue_session_token(payload_for(), SESSION_SECRET)

        assert client.get("/private").status_code == 401
        response = client.get("/private", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"sub": "github:4242"}

    def test_optional_session(self, session_padlock):
        client = self.build_app(session_padlock)
        token = issue_session_token(payload_for(), SESSION_SECRET)

        assert client.get("/public").json() == {"sub": None}
        response = client.get("/public", headers={"Authorization": f"Bearer {token}"})
        assert response.json() == {"sub": "github:4242"}
