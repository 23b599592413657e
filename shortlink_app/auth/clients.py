"""
Authentication boundary clients using Strategy Pattern.

- HttpAuthClient: the remote authority (production)
- InMemoryAuthClient: local accounts (development/testing)
"""

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests
from pydantic import BaseModel, ValidationError

from shortlink_app.errors import AuthRejected, AuthUnavailable
from shortlink_app.models.session import Credentials, LoginGrant, RefreshGrant, UserProfile

logger = logging.getLogger(__name__)


class AuthClient(ABC):
    """
    Abstract base class for authentication boundaries.

    Implementations raise AuthRejected when the authority refuses the
    request and AuthUnavailable on transport or service failures.
    """

    @abstractmethod
    async def login(self, credentials: Credentials) -> LoginGrant:
        """Exchange credentials for a token"""
        pass

    @abstractmethod
    async def refresh(self, access_token: str) -> RefreshGrant:
        """Exchange a still-valid token for a fresh one"""
        pass


class HttpAuthClient(AuthClient):
    """
    Client for the remote authentication service.

    Endpoints:
    - POST {base_url}/login   body: credentials
    - POST {base_url}/refresh header: Authorization: Bearer <token>

    ``requests`` is blocking, so calls run in a worker thread.
    """

    REJECTED_STATUSES = (400, 401, 403)

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def login(self, credentials: Credentials) -> LoginGrant:
        data = await asyncio.to_thread(
            self._post, "login", credentials.model_dump(by_alias=True), None
        )
        return self._parse(LoginGrant, data)

    async def refresh(self, access_token: str) -> RefreshGrant:
        data = await asyncio.to_thread(self._post, "refresh", {}, access_token)
        return self._parse(RefreshGrant, data)

    def _post(self, path: str, payload: dict, access_token: Optional[str]) -> dict:
        url = f"{self.base_url}/{path}"
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthUnavailable(f"Authentication service unreachable: {e}") from e

        if response.status_code in self.REJECTED_STATUSES:
            raise AuthRejected(self._reason(response))
        if response.status_code >= 400:
            raise AuthUnavailable(f"Authentication service returned {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise AuthUnavailable("Authentication service returned invalid JSON") from e

    @staticmethod
    def _reason(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return "Invalid credentials"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("detail") or "Invalid credentials")
        return "Invalid credentials"

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise AuthUnavailable(f"Malformed authentication response: {e}") from e


class Account(BaseModel):
    password: str
    profile: UserProfile


class InMemoryAuthClient(AuthClient):
    """
    Local authority with a fixed set of accounts.

    Pros:
    - No external service needed
    - Deterministic for tests

    Cons:
    - Tokens live only in this process

    Refreshing does not revoke the previous token, so two contexts
    refreshing with the same token both succeed (like the remote service).
    """

    def __init__(self, token_lifetime: int = 3600):
        self.token_lifetime = token_lifetime
        self.accounts: Dict[str, Account] = {}
        self._tokens: Dict[str, str] = {}  # token -> email

    def add_account(self, email: str, password: str, name: str = "", roll_no: str = "") -> None:
        self.accounts[email] = Account(
            password=password,
            profile=UserProfile(email=email, name=name, roll_no=roll_no),
        )

    async def login(self, credentials: Credentials) -> LoginGrant:
        account = self.accounts.get(credentials.email)
        if account is None or not secrets.compare_digest(account.password, credentials.password):
            raise AuthRejected("Invalid email or password")

        return LoginGrant(
            access_token=self._issue(credentials.email),
            token_type="Bearer",
            expires_in=self.token_lifetime,
            user=account.profile,
        )

    async def refresh(self, access_token: str) -> RefreshGrant:
        email = self._tokens.get(access_token)
        if email is None:
            raise AuthRejected("Unknown access token")

        return RefreshGrant(access_token=self._issue(email), expires_in=self.token_lifetime)

    def _issue(self, email: str) -> str:
        token = secrets.token_urlsafe(24)
        self._tokens[token] = email
        return token
