"""
Smart Mobility Backend - Auth Building Block Tests
===================================================

What:  Tests bearer tokens, password hashing and the two caller-resolution
       strategies in isolation.
How:   Strategies get bare Starlette Request objects built from an ASGI scope,
       so no app or database is involved.

What we test:
    1. TokenService: round trip, expiry, wrong secret, tampering, bad claims
    2. Passwords: argon2 hash, verify, malformed stored hash
    3. BearerTokenStrategy: header parsing
    4. SessionCookieStrategy: session contents, sign-in/out hooks
    5. build_auth_strategy selection
"""

import uuid
from datetime import timedelta
from typing import Optional

import jwt
import pytest
from starlette.requests import Request

from smart_mobility.auth.passwords import hash_password, needs_rehash, verify_password
from smart_mobility.auth.strategies import (
    SESSION_USER_KEY,
    BearerTokenStrategy,
    SessionCookieStrategy,
    build_auth_strategy,
)
from smart_mobility.auth.tokens import TokenService
from smart_mobility.clock import utcnow
from smart_mobility.exceptions import AuthenticationError
from smart_mobility.models.user import User

SECRET = "token-test-secret-0123456789abcdef-0123"


def make_request(authorization: Optional[str] = None, session: Optional[dict] = None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    scope = {"type": "http", "method": "GET", "path": "/", "headers": headers}
    if session is not None:
        scope["session"] = session
    return Request(scope)


@pytest.fixture
def user():
    return User(id=uuid.uuid4(), name="Ana", email="ana@example.com")


@pytest.fixture
def tokens():
    return TokenService(secret=SECRET, expiry=timedelta(days=7))


# ══════════════════════════════════════════════════════════════════════════
# TokenService
# ══════════════════════════════════════════════════════════════════════════


class TestTokenService:

    def test_round_trip(self, tokens, user):
        claims = tokens.decode(tokens.issue(user))

        assert claims.user_id == user.id
        assert claims.email == "ana@example.com"
        assert claims.name == "Ana"
        assert claims.expires_at - claims.issued_at == timedelta(days=7)

    def test_expired_token(self, user):
        issued_long_ago = TokenService(
            secret=SECRET,
            expiry=timedelta(days=7),
            clock=lambda: utcnow() - timedelta(days=8),
        )
        token = issued_long_ago.issue(user)

        with pytest.raises(AuthenticationError, match="expired"):
            TokenService(secret=SECRET).decode(token)

    def test_wrong_secret(self, tokens, user):
        token = TokenService(secret="another-secret-0123456789abcdef-0123").issue(user)
        with pytest.raises(AuthenticationError, match="Invalid"):
            tokens.decode(token)

    def test_tampered_token(self, tokens, user):
        token = tokens.issue(user)
        tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
        with pytest.raises(AuthenticationError):
            tokens.decode(tampered)

    def test_garbage_token(self, tokens):
        with pytest.raises(AuthenticationError):
            tokens.decode("not.a.jwt")

    def test_missing_subject(self, tokens):
        now = utcnow()
        token = jwt.encode({"iat": now, "exp": now + timedelta(hours=1)}, SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError):
            tokens.decode(token)

    def test_non_uuid_subject(self, tokens):
        now = utcnow()
        token = jwt.encode(
            {"sub": "user-42", "iat": now, "exp": now + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError):
            tokens.decode(token)


# ══════════════════════════════════════════════════════════════════════════
# Passwords
# ══════════════════════════════════════════════════════════════════════════


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret")

        assert hashed.startswith("$argon2")
        assert verify_password("s3cret", hashed)
        assert not verify_password("S3cret", hashed)
        assert not needs_rehash(hashed)

    def test_same_password_hashes_differently(self):
        assert hash_password("s3cret") != hash_password("s3cret")

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("s3cret", "plaintext-in-db") is False


# ══════════════════════════════════════════════════════════════════════════
# Strategies
# ══════════════════════════════════════════════════════════════════════════


class TestBearerTokenStrategy:

    @pytest.mark.asyncio
    async def test_resolves_valid_token(self, tokens, user):
        strategy = BearerTokenStrategy(tokens)
        request = make_request(authorization=f"Bearer {tokens.issue(user)}")

        assert await strategy.resolve_caller(request) == user.id

    @pytest.mark.asyncio
    async def test_scheme_is_case_insensitive(self, tokens, user):
        strategy = BearerTokenStrategy(tokens)
        request = make_request(authorization=f"bearer {tokens.issue(user)}")

        assert await strategy.resolve_caller(request) == user.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwdw=="])
    async def test_missing_or_foreign_scheme(self, tokens, header):
        strategy = BearerTokenStrategy(tokens)

        with pytest.raises(AuthenticationError, match="Not authenticated"):
            await strategy.resolve_caller(make_request(authorization=header))

    @pytest.mark.asyncio
    async def test_sign_hooks_are_noops(self, tokens, user):
        strategy = BearerTokenStrategy(tokens)
        request = make_request()

        await strategy.sign_in(request, user.id)
        await strategy.sign_out(request)


class TestSessionCookieStrategy:

    @pytest.mark.asyncio
    async def test_resolves_user_from_session(self):
        user_id = uuid.uuid4()
        request = make_request(session={SESSION_USER_KEY: str(user_id)})

        assert await SessionCookieStrategy().resolve_caller(request) == user_id

    @pytest.mark.asyncio
    async def test_empty_session(self):
        with pytest.raises(AuthenticationError):
            await SessionCookieStrategy().resolve_caller(make_request(session={}))

    @pytest.mark.asyncio
    async def test_corrupt_session_is_cleared(self):
        session = {SESSION_USER_KEY: "not-a-uuid", "other": 1}

        with pytest.raises(AuthenticationError):
            await SessionCookieStrategy().resolve_caller(make_request(session=session))

        assert session == {}

    @pytest.mark.asyncio
    async def test_without_session_middleware(self):
        with pytest.raises(AuthenticationError):
            await SessionCookieStrategy().resolve_caller(make_request())

    @pytest.mark.asyncio
    async def test_sign_in_and_out(self):
        strategy = SessionCookieStrategy()
        session: dict = {}
        request = make_request(session=session)
        user_id = uuid.uuid4()

        await strategy.sign_in(request, user_id)
        assert session[SESSION_USER_KEY] == str(user_id)
        assert await strategy.resolve_caller(request) == user_id

        await strategy.sign_out(request)
        assert session == {}


class TestBuildAuthStrategy:

    def test_token(self, tokens):
        strategy = build_auth_strategy("token", tokens)
        assert isinstance(strategy, BearerTokenStrategy)
        assert strategy.name == "token"

    def test_session(self, tokens):
        assert isinstance(build_auth_strategy("session", tokens), SessionCookieStrategy)

    def test_unknown(self, tokens):
        with pytest.raises(ValueError):
            build_auth_strategy("oauth", tokens)
