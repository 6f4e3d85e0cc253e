"""Tests for the API Manager REST client."""

from unittest.mock import Mock

import pytest

from apim_broker.apim import APIIdentifier, APIMClient, SubscriptionRequest
from apim_broker.config import APIMConfig
from apim_broker.constants import OperationLabel
from apim_broker.exceptions import (
    ErrorCode,
    LookupMultipleMatchesError,
    LookupNoMatchError,
    RemoteCallError,
    ValidationError,
)

STORE = "https://localhost:9443"


@pytest.fixture
def invoker():
    return Mock()


@pytest.fixture
def token_manager():
    manager = Mock()
    manager.token.return_value = "tok"
    return manager


@pytest.fixture
def client(invoker, token_manager):
    return APIMClient(invoker, token_manager, APIMConfig())


def _api(api_id, name="PizzaAPI", version="1.0.0"):
    return {"id": api_id, "name": name, "version": version, "provider": "admin"}


class TestApplications:
    def test_create_application(self, client, invoker):
        invoker.invoke.return_value = {"applicationId": "app-1", "name": "ServiceBroker_1"}

        assert client.create_application("ServiceBroker_1") == "app-1"

        call = invoker.invoke.call_args
        assert call.args[:3] == (
            OperationLabel.CREATE_APPLICATION.value,
            "POST",
            f"{STORE}/api/am/store/v0.14/applications",
        )
        assert call.kwargs["token"] == "tok"
        assert call.kwargs["expected_status"] == 201
        assert call.kwargs["body"]["name"] == "ServiceBroker_1"
        assert call.kwargs["body"]["throttlingTier"] == "Unlimited"

    def test_generate_keys(self, client, invoker):
        invoker.invoke.return_value = {
            "consumerKey": "ck",
            "consumerSecret": "cs",
            "keyType": "PRODUCTION",
            "supportedGrantTypes": ["password"],
        }

        keys = client.generate_keys("app-1")

        assert keys.consumer_key == "ck"
        assert keys.consumer_secret == "cs"
        call = invoker.invoke.call_args
        assert call.kwargs["params"] == {"applicationId": "app-1"}
        assert call.kwargs["body"]["keyType"] == "PRODUCTION"

    def test_generate_keys_requires_application_id(self, client, invoker):
        with pytest.raises(ValidationError):
            client.generate_keys("")

        invoker.invoke.assert_not_called()

    def test_delete_application(self, client, invoker):
        invoker.invoke.return_value = None

        client.delete_application("app-1")

        call = invoker.invoke.call_args
        assert call.args[1:3] == ("DELETE", f"{STORE}/api/am/store/v0.14/applications/app-1")
        assert call.kwargs["parse_response"] is False

    def test_dashboard_url(self, client):
        assert client.application_dashboard_url("ServiceBroker_1") == (
            f"{STORE}/store/site/pages/application.jag?name=ServiceBroker_1"
        )

    def test_unexpected_body(self, client, invoker):
        invoker.invoke.return_value = {"unexpected": True}

        with pytest.raises(RemoteCallError) as exc_info:
            client.create_application("ServiceBroker_1")

        assert exc_info.value.remote_status is None


class TestSearch:
    def test_single_api_match(self, client, invoker):
        invoker.invoke.return_value = {"count": 1, "list": [_api("api-1")]}

        assert client.search_api_by_name_version("PizzaAPI", "1.0.0") == "api-1"
        assert invoker.invoke.call_args.kwargs["params"] == {
            "query": "name:PizzaAPI version:1.0.0"
        }

    def test_zero_api_matches(self, client, invoker):
        invoker.invoke.return_value = {"count": 0, "list": []}

        with pytest.raises(LookupNoMatchError) as exc_info:
            client.search_api_by_name_version("PizzaAPI", "1.0.0")

        assert exc_info.value.error_code == ErrorCode.LOOKUP_NO_MATCH

    def test_multiple_api_matches(self, client, invoker):
        invoker.invoke.return_value = {
            "count": 2,
            "list": [_api("api-1"), _api("api-2")],
        }

        with pytest.raises(LookupMultipleMatchesError) as exc_info:
            client.search_api_by_name_version("PizzaAPI", "1.0.0")

        assert exc_info.value.match_count == 2

    def test_search_application(self, client, invoker):
        invoker.invoke.return_value = {
            "count": 1,
            "list": [{"applicationId": "app-1", "name": "ServiceBroker_1"}],
        }

        assert client.search_application("ServiceBroker_1") == "app-1"

    def test_search_application_no_match(self, client, invoker):
        invoker.invoke.return_value = {"count": 0, "list": []}

        with pytest.raises(LookupNoMatchError):
            client.search_application("ServiceBroker_1")


class TestSubscriptions:
    def test_create_multiple_subscriptions(self, client, invoker):
        invoker.invoke.return_value = [
            {
                "subscriptionId": "sub-1",
                "applicationId": "app-1",
                "apiIdentifier": "admin-PizzaAPI-1.0.0",
                "tier": "Unlimited",
                "status": "UNBLOCKED",
            }
        ]

        responses = client.create_multiple_subscriptions(
            [SubscriptionRequest(api_identifier="api-1", application_id="app-1")]
        )

        assert invoker.invoke.call_args.kwargs["body"] == [
            {"tier": "Unlimited", "apiIdentifier": "api-1", "applicationId": "app-1"}
        ]
        assert responses[0].subscription_id == "sub-1"
        assert responses[0].identifier_parts() == APIIdentifier(
            user="admin", qualified_name="PizzaAPI-1.0.0"
        )

    def test_unsubscribe(self, client, invoker):
        client.unsubscribe("sub-1")

        call = invoker.invoke.call_args
        assert call.args[1:3] == ("DELETE", f"{STORE}/api/am/store/v0.14/subscriptions/sub-1")

    @pytest.mark.parametrize("identifier", ["PizzaAPI-1.0.0", "-PizzaAPI-1.0.0", "admin"])
    def test_api_identifier_requires_provider_name_and_version(self, identifier):
        with pytest.raises(ValidationError):
            APIIdentifier.parse(identifier)

    def test_api_identifier_keeps_hyphens_after_provider(self):
        identifier = APIIdentifier.parse("admin-Pizza-Shack-1.0.0-beta")

        assert identifier.user == "admin"
        assert identifier.qualified_name == APIIdentifier.qualify("Pizza-Shack", "1.0.0-beta")


class TestTokenUsage:
    def test_token_fetched_for_every_call(self, client, invoker, token_manager):
        invoker.invoke.return_value = None

        client.unsubscribe("sub-1")
        client.delete_application("app-1")

        assert token_manager.token.call_count == 2
