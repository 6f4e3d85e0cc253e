"""Tests for the broker exception hierarchy."""

import pytest

from apim_broker.exceptions import (
    BaseError,
    CredentialInitializationError,
    ErrorCode,
    LookupMultipleMatchesError,
    LookupNoMatchError,
    RemoteCallError,
    TokenNotAvailableError,
    TransientNetworkError,
    clear_correlation_id,
    duplicate,
    get_correlation_id,
    not_found,
    set_correlation_id,
)


class TestRemoteCallError:
    """Remote status codes map onto error codes callers dispatch on."""

    @pytest.mark.parametrize(
        "remote_status, expected_code",
        [
            (409, ErrorCode.CONFLICT),
            (404, ErrorCode.NOT_FOUND),
            (500, ErrorCode.EXTERNAL_API_ERROR),
            (401, ErrorCode.EXTERNAL_API_ERROR),
            (None, ErrorCode.EXTERNAL_API_ERROR),
        ],
    )
    def test_error_code_for_status(self, remote_status, expected_code):
        error = RemoteCallError("create application", "https://store/apps", remote_status)

        assert error.error_code == expected_code
        assert error.remote_status == remote_status
        assert error.context["remote_status"] == remote_status

    def test_conflict_and_not_found_flags(self):
        assert RemoteCallError("op", "url", 409).is_conflict
        assert not RemoteCallError("op", "url", 409).is_not_found
        assert RemoteCallError("op", "url", 404).is_not_found

    def test_default_message_names_operation_and_status(self):
        error = RemoteCallError("delete application", "https://store/apps/1", 500)

        assert "delete application" in error.message
        assert "500" in error.message
        assert error.status_code == 502


class TestTransientNetworkError:
    def test_carries_cause_and_connection_code(self):
        cause = ConnectionError("refused")
        error = TransientNetworkError("search api", "https://publisher/apis", cause=cause)

        assert error.error_code == ErrorCode.CONNECTION_ERROR
        assert error.cause is cause
        assert error.context["cause"]["type"] == "ConnectionError"
        assert error.error_chain == [error, cause]


class TestLookupErrors:
    def test_no_match(self):
        error = LookupNoMatchError("API", "name:Pizza version:1.0")

        assert error.error_code == ErrorCode.LOOKUP_NO_MATCH
        assert error.match_count == 0
        assert error.query == "name:Pizza version:1.0"

    def test_multiple_matches(self):
        error = LookupMultipleMatchesError("Application", "ServiceBroker_1", 2)

        assert error.error_code == ErrorCode.LOOKUP_MULTIPLE_MATCHES
        assert error.match_count == 2
        assert error.error_code != ErrorCode.NOT_FOUND


class TestCredentialErrors:
    def test_initialization_error_is_credential_error(self):
        error = CredentialInitializationError("no token", operation="initialize")

        assert error.error_code == ErrorCode.CREDENTIAL_ERROR
        assert error.context["operation"] == "initialize"

    def test_token_not_available_defaults(self):
        error = TokenNotAvailableError()

        assert error.status_code == 503
        assert "not initialized" in error.message


class TestFactories:
    def test_not_found(self):
        error = not_found("ServiceInstance", instance_id="inst-1")

        assert error.error_code == ErrorCode.NOT_FOUND
        assert error.status_code == 404
        assert error.message == "ServiceInstance not found: instance_id=inst-1"

    def test_duplicate(self):
        error = duplicate("Bind", binding_id="b-1")

        assert error.error_code == ErrorCode.DUPLICATE
        assert error.status_code == 409


class TestBaseError:
    def test_to_dict_hides_cause_by_default(self):
        error = BaseError("boom", cause=ValueError("inner"), instance_id="inst-1")

        result = error.to_dict()

        assert result["error"]["message"] == "boom"
        assert result["error"]["code"] == ErrorCode.INTERNAL_ERROR.value
        assert result["error"]["context"] == {"instance_id": "inst-1"}
        assert "cause" not in result["error"]

        with_cause = error.to_dict(include_cause=True)
        assert with_cause["error"]["cause"]["type"] == "ValueError"

    def test_add_context_is_fluent(self):
        error = BaseError("boom").add_context(binding_id="b-1")

        assert error.context["binding_id"] == "b-1"

    def test_correlation_id_is_attached(self):
        set_correlation_id("corr-123")
        try:
            error = BaseError("boom")
        finally:
            clear_correlation_id()

        assert error.to_dict()["error"]["correlation_id"] == "corr-123"
        assert get_correlation_id() is None
