"""
Smart Mobility Backend - Auth Service
======================================

What:  Account creation and sign-in: local email/password, Google ID token,
       token verification and the development test account.
Why:   Keeps credential rules out of the route handlers. Handlers only add
       the transport part (status codes, strategy sign-in hooks).
Who:   Called by the /api/auth route handlers.

Every successful sign-in answers with the same shape:
    AuthResponse{success, message, token, user{id, name, email}}
"""

import logging
import uuid
from typing import Optional
from uuid import UUID

from smart_mobility.auth.google import GoogleIdentityVerifier
from smart_mobility.auth.passwords import hash_password, needs_rehash, verify_password
from smart_mobility.auth.tokens import TokenService
from smart_mobility.clock import Clock, utcnow
from smart_mobility.config import settings
from smart_mobility.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from smart_mobility.models.user import PROVIDER_GOOGLE, PROVIDER_LOCAL, User, normalize_email
from smart_mobility.schemas.user import (
    AuthResponse,
    DemoAccountResponse,
    DemoCredentials,
    UserSummary,
    VerifyResponse,
)
from smart_mobility.stores.base import UserStore

logger = logging.getLogger(__name__)

TEST_ACCOUNT_EMAIL = "test@smartmobility.com"
TEST_ACCOUNT_PASSWORD = "password123"
TEST_ACCOUNT_NAME = "Test User"


def _require(value: Optional[str], field: str, message: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message=message, field=field)
    return value


def _summary(user: User) -> UserSummary:
    return UserSummary(id=user.id, name=user.name, email=user.email)


class AuthService:
    """
    Credential checks and account bookkeeping.

    The Google verifier is optional so deployments without a Google client
    id (and most tests) can build the service without one.
    """

    def __init__(
        self,
        users: UserStore,
        tokens: TokenService,
        google: Optional[GoogleIdentityVerifier] = None,
        clock: Clock = utcnow,
        allow_test_account: Optional[bool] = None,
    ):
        self.users = users
        self.tokens = tokens
        self.google = google
        self.clock = clock
        self.allow_test_account = (
            settings.is_development if allow_test_account is None else allow_test_account
        )

    def _respond(self, user: User, message: str) -> AuthResponse:
        return AuthResponse(message=message, token=self.tokens.issue(user), user=_summary(user))

    async def register(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResponse:
        """
        Creates a local account.

        Raises:
            ValidationError: name, email or password missing
            ConflictError: the (normalized) email is already registered
        """
        message = "Name, email and password are required"
        name = _require(name, "name", message).strip()
        email = normalize_email(_require(email, "email", message))
        password = _require(password, "password", message)

        if "@" not in email:
            raise ValidationError(message="Email address is not valid", field="email")

        if await self.users.get_by_email(email) is not None:
            raise ConflictError(message="This email is already registered", field="email")

        now = self.clock()
        user = User(
            id=uuid.uuid4(),
            name=name,
            email=email,
            password_hash=hash_password(password),
            provider=PROVIDER_LOCAL,
            total_trips=0,
            last_active=now,
            created_at=now,
            updated_at=now,
        )
        user = await self.users.add(user)
        logger.info("Registered local user %s", user.id)
        return self._respond(user, "User registered successfully")

    async def login(self, email: Optional[str], password: Optional[str]) -> AuthResponse:
        """
        Email/password sign-in.

        Unknown email and wrong password produce the same message so the
        endpoint cannot be used to probe which emails exist.

        Raises:
            ValidationError: email or password missing
            AuthenticationError: unknown email, Google-only account, mismatch
        """
        message = "Email and password are required"
        email = _require(email, "email", message)
        password = _require(password, "password", message)

        user = await self.users.get_by_email(email)
        if user is None:
            raise AuthenticationError(message="Invalid credentials")
        if not user.password_hash:
            raise AuthenticationError(message="This account has no password; sign in with Google")
        if not verify_password(password, user.password_hash):
            logger.info("Failed password login for user %s", user.id)
            raise AuthenticationError(message="Invalid credentials")

        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)

        user.touch(self.clock())
        await self.users.save(user)
        return self._respond(user, "Login successful")

    async def google_login(self, credential: Optional[str]) -> AuthResponse:
        """
        Sign-in with a Google ID token.

        An existing account is found by Google subject first, then by email;
        a local account with the same email gets linked to the Google
        subject. Otherwise a Google account is created.

        Raises:
            ValidationError / AuthenticationError / UpstreamServiceError /
            CircuitBreakerOpenError: see GoogleIdentityVerifier.verify
        """
        if self.google is None:
            raise ForbiddenError(message="Google sign-in is not enabled")

        identity = await self.google.verify(credential)
        now = self.clock()

        user = await self.users.get_by_google_id_or_email(identity.sub, identity.email)
        if user is not None:
            if user.google_id != identity.sub:
                logger.info("Linking Google account to existing user %s", user.id)
                user.google_id = identity.sub
            if identity.picture and not user.profile_picture:
                user.profile_picture = identity.picture
            user.touch(now)
            await self.users.save(user)
            return self._respond(user, "Login successful")

        user = User(
            id=uuid.uuid4(),
            name=identity.name,
            email=normalize_email(identity.email),
            provider=PROVIDER_GOOGLE,
            google_id=identity.sub,
            profile_picture=identity.picture,
            total_trips=0,
            last_active=now,
            created_at=now,
            updated_at=now,
        )
        user = await self.users.add(user)
        logger.info("Created user %s from Google sign-in", user.id)
        return self._respond(user, "User registered successfully")

    async def verify(self, user_id: UUID) -> VerifyResponse:
        """
        Confirms the resolved caller still exists and marks them active.

        Raises:
            NotFoundError: the account was removed after the token was issued
        """
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        user.touch(self.clock())
        await self.users.save(user)
        return VerifyResponse(user=_summary(user))

    async def test_account(self) -> DemoAccountResponse:
        """
        Find-or-create the shared development account and sign it in.

        Raises:
            ForbiddenError: outside the development environment
        """
        if not self.allow_test_account:
            raise ForbiddenError(message="Only available in development")

        user = await self.users.get_by_email(TEST_ACCOUNT_EMAIL)
        if user is None:
            now = self.clock()
            user = await self.users.add(
                User(
                    id=uuid.uuid4(),
                    name=TEST_ACCOUNT_NAME,
                    email=TEST_ACCOUNT_EMAIL,
                    password_hash=hash_password(TEST_ACCOUNT_PASSWORD),
                    provider=PROVIDER_LOCAL,
                    total_trips=0,
                    last_active=now,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info("Created development test account %s", user.id)

        return DemoAccountResponse(
            message="Test account ready",
            token=self.tokens.issue(user),
            user=_summary(user),
            credentials=DemoCredentials(email=TEST_ACCOUNT_EMAIL, password=TEST_ACCOUNT_PASSWORD),
        )
