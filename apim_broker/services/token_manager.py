"""
Credential store for the remote platform.

Holds the single access/refresh token pair used by every remote call.
Readers share a read-favoring lock; a reader that finds the token inside the
expiry skew window takes the exclusive side, re-checks, and only then runs
the refresh grant. Concurrent callers observing the same expiry therefore
cause exactly one refresh exchange.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..apim.models import (
    DynamicClientRegistrationRequest,
    DynamicClientRegistrationResponse,
    TokenResponse,
)
from ..client.invoker import ResilientInvoker
from ..config import APIMConfig
from ..constants import (
    DEFAULT_SCOPES,
    TOKEN_CONTEXT,
    TOKEN_EXPIRY_SKEW_SECONDS,
    OperationLabel,
    TokenState,
)
from ..exceptions import (
    BaseError,
    CredentialError,
    CredentialInitializationError,
    TokenNotAvailableError,
    TokenRefreshError,
)
from ..utils.logger import get_logger
from ..utils.rw_lock import ReadWriteLock
from ..utils.url_utils import join_url


@dataclass
class Credential:
    access_token: str
    refresh_token: str
    expires_at: float


class TokenManager:
    """Password/refresh-token grant credential store."""

    def __init__(
        self,
        invoker: ResilientInvoker,
        config: APIMConfig,
        clock: Callable[[], float] = time.time,
        skew_seconds: int = TOKEN_EXPIRY_SKEW_SECONDS,
    ):
        self.invoker = invoker
        self.config = config
        self.clock = clock
        self.skew_seconds = skew_seconds
        self.logger = get_logger()

        self.token_endpoint = join_url(config.token_endpoint, TOKEN_CONTEXT)
        self.registration_endpoint = join_url(
            config.dynamic_client_endpoint, config.dynamic_client_registration_context
        )

        self._lock = ReadWriteLock()
        self._credential: Optional[Credential] = None
        self._client_id: Optional[str] = None
        self._client_secret: Optional[str] = None
        self._state = TokenState.UNINITIALIZED

    @property
    def state(self) -> TokenState:
        return self._state

    def initialize(self, scopes: Sequence[str] = DEFAULT_SCOPES) -> None:
        """
        Register a client and obtain the first token pair.

        Raises:
            CredentialInitializationError: Any failure; the process cannot
                operate without a credential
        """
        if not scopes:
            raise CredentialInitializationError(
                "At least one scope should be present", operation="initialize"
            )

        try:
            self._register_client()
            response = self._request_token(
                {
                    "grant_type": "password",
                    "username": self.config.username,
                    "password": self.config.password,
                    "scope": " ".join(scopes),
                },
                OperationLabel.GENERATE_ACCESS_TOKEN.value,
            )
        except BaseError as e:
            raise CredentialInitializationError(
                f"Unable to get access token for scopes: {list(scopes)}",
                operation="initialize",
                cause=e,
            ) from e

        with self._lock.write_locked():
            self._store(response)
            self._state = TokenState.ACTIVE

        self.logger.info(
            "Generated a token",
            extra={"scopes": " ".join(scopes), "expires_in": response.expires_in},
        )

    def token(self) -> str:
        """
        Return a valid access token, refreshing it when inside the skew window.

        Raises:
            TokenNotAvailableError: ``initialize`` has not succeeded
            TokenRefreshError: The refresh exchange failed
        """
        with self._lock.read_locked():
            credential = self._credential
            if credential is None:
                raise TokenNotAvailableError()
            if not self._is_expired(credential):
                return credential.access_token

        with self._lock.write_locked():
            credential = self._credential
            # Another caller may have refreshed while we waited
            if not self._is_expired(credential):
                return credential.access_token

            self.logger.debug(
                "Access token is expired, re-generating",
                extra={"expires_at": credential.expires_at},
            )
            self._state = TokenState.REFRESHING
            try:
                response = self._request_token(
                    {"grant_type": "refresh_token", "refresh_token": credential.refresh_token},
                    OperationLabel.REFRESH_TOKEN.value,
                )
            except BaseError as e:
                raise TokenRefreshError(
                    "Unable to refresh the access token", operation="refresh", cause=e
                ) from e
            finally:
                self._state = TokenState.ACTIVE

            self._store(response)
            self.logger.debug(
                "New access token is generated", extra={"expires_in": response.expires_in}
            )
            return response.access_token

    def _is_expired(self, credential: Credential) -> bool:
        return self.clock() >= credential.expires_at - self.skew_seconds

    def _store(self, response: TokenResponse) -> None:
        self._credential = Credential(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=self.clock() + response.expires_in,
        )

    def _register_client(self) -> None:
        payload = self.invoker.invoke(
            OperationLabel.DYNAMIC_CLIENT_REGISTRATION.value,
            "POST",
            self.registration_endpoint,
            body=DynamicClientRegistrationRequest().to_payload(),
            basic_auth=(self.config.username, self.config.password),
        )
        registration = self._parse(
            DynamicClientRegistrationResponse,
            payload,
            OperationLabel.DYNAMIC_CLIENT_REGISTRATION.value,
        )
        self._client_id = registration.client_id
        self._client_secret = registration.client_secret

    def _request_token(self, form: dict, operation: str) -> TokenResponse:
        payload = self.invoker.invoke(
            operation,
            "POST",
            self.token_endpoint,
            form=form,
            basic_auth=(self._client_id or "", self._client_secret or ""),
        )
        return self._parse(TokenResponse, payload, operation)

    @staticmethod
    def _parse(model, payload, operation: str):
        try:
            return model.model_validate(payload or {})
        except PydanticValidationError as e:
            raise CredentialError(
                f"Unexpected response from the identity endpoint: {operation}",
                operation=operation,
                cause=e,
            ) from e
