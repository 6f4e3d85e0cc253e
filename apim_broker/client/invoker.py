"""
Resilient invoker for the remote API-management platform.

Requests are built once: the body is serialized a single time into an
in-memory buffer which is rewound before every retry, so all attempts send
identical bytes. Network-level failures are not retried.
"""

import io
import time
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlencode

import requests

from ..config import HTTPClientConfig
from ..constants import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
)
from ..exceptions import ErrorCode, RemoteCallError, ServiceError, TransientNetworkError
from ..utils.json_utils import dumps_bytes
from ..utils.logger import get_logger
from .retry import BackoffFunction, RetryPolicy, RetryPredicate, calculate_backoff, is_error_response


class ReplayableBody:
    """A request body that can be re-read from the start for each attempt."""

    def __init__(self, payload: bytes, content_type: str):
        self.content_type = content_type
        self._buffer = io.BytesIO(payload)

    @classmethod
    def from_json(cls, body: Any, operation: str) -> "ReplayableBody":
        try:
            payload = dumps_bytes(body)
        except (TypeError, ValueError) as e:
            raise ServiceError(
                f"Unable to serialize request body: {operation}",
                error_code=ErrorCode.INVALID_FORMAT,
                operation=operation,
                cause=e,
            )
        return cls(payload, CONTENT_TYPE_JSON)

    @classmethod
    def from_form(cls, form: Dict[str, str]) -> "ReplayableBody":
        return cls(urlencode(form).encode("utf-8"), CONTENT_TYPE_FORM)

    @property
    def stream(self) -> io.BytesIO:
        return self._buffer

    def rewind(self) -> None:
        self._buffer.seek(0)


class ResilientInvoker:
    """Issues authenticated HTTP requests with retry and typed failures."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        timeout: float = 30,
        verify: bool = True,
        session: Optional[requests.Session] = None,
        retry_predicate: RetryPredicate = is_error_response,
        backoff: BackoffFunction = calculate_backoff,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.verify = verify
        self.session = session or requests.Session()
        self.retry_predicate = retry_predicate
        self.backoff = backoff
        self._sleep = sleep
        self.logger = get_logger()

    @classmethod
    def from_config(cls, config: HTTPClientConfig) -> "ResilientInvoker":
        return cls(
            policy=RetryPolicy.from_config(config),
            timeout=config.timeout,
            verify=not config.insecure,
        )

    def invoke(
        self,
        operation: str,
        method: str,
        url: str,
        token: Optional[str] = None,
        body: Any = None,
        expected_status: int = 200,
        params: Optional[Dict[str, str]] = None,
        form: Optional[Dict[str, str]] = None,
        basic_auth: Optional[Tuple[str, str]] = None,
        parse_response: bool = True,
    ) -> Any:
        """
        Send a request and return its parsed JSON body.

        Args:
            operation: Label used in logs and errors
            method: HTTP method
            url: Absolute URL
            token: Bearer token to attach, if any
            body: JSON-serializable body
            expected_status: The only status treated as success
            params: Query string parameters
            form: Form fields, sent url-encoded instead of ``body``
            basic_auth: (username, password) for HTTP basic auth
            parse_response: Parse the response body as JSON

        Returns:
            Parsed JSON, or None when the response is empty or not parsed

        Raises:
            TransientNetworkError: No response was received
            RemoteCallError: Final status differs from ``expected_status``
        """
        headers: Dict[str, str] = {}
        if token:
            headers[HEADER_AUTHORIZATION] = f"Bearer {token}"

        replayable: Optional[ReplayableBody] = None
        if form is not None:
            replayable = ReplayableBody.from_form(form)
        elif body is not None:
            replayable = ReplayableBody.from_json(body, operation)
        if replayable is not None:
            headers[HEADER_CONTENT_TYPE] = replayable.content_type

        response = self._send_with_retry(
            operation, method, url, headers, replayable, params, basic_auth
        )

        if response.status_code != expected_status:
            raise RemoteCallError(operation, url, response.status_code)

        if not parse_response or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(
                operation,
                url,
                response.status_code,
                message=f"Unable to parse response body, context: {operation}",
                cause=e,
            )

    def _send_with_retry(
        self,
        operation: str,
        method: str,
        url: str,
        headers: Dict[str, str],
        replayable: Optional[ReplayableBody],
        params: Optional[Dict[str, str]],
        basic_auth: Optional[Tuple[str, str]],
    ) -> requests.Response:
        attempt = 1
        while True:
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    data=replayable.stream if replayable is not None else None,
                    auth=basic_auth,
                    timeout=self.timeout,
                    verify=self.verify,
                )
            except requests.RequestException as e:
                raise TransientNetworkError(operation, url, cause=e) from e

            if not self.retry_predicate(response) or attempt >= self.policy.max_retries:
                return response

            delay = self.backoff(attempt, self.policy.min_backoff, self.policy.max_backoff)
            self.logger.debug(
                "Retrying the request",
                extra={
                    "operation": operation,
                    "url": url,
                    "response_code": response.status_code,
                    "attempt": attempt,
                    "backoff_seconds": delay,
                },
            )
            if replayable is not None:
                replayable.rewind()
            self._sleep(delay)
            attempt += 1
