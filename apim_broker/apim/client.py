"""
REST client for the API Manager store and publisher.

Every call fetches a token from the credential store immediately before it
is sent, and goes through the resilient invoker. Searches must resolve to
exactly one resource; zero and several matches raise distinct lookup errors.
"""

from typing import List, Optional, Protocol, Sequence
from urllib.parse import urlencode

from pydantic import ValidationError as PydanticValidationError

from ..client.invoker import ResilientInvoker
from ..config import APIMConfig
from ..constants import APPLICATION_DASHBOARD_CONTEXT, THROTTLING_TIER_UNLIMITED, OperationLabel
from ..exceptions import (
    ErrorCode,
    LookupMultipleMatchesError,
    LookupNoMatchError,
    RemoteCallError,
    ValidationError,
)
from ..utils.logger import get_logger
from ..utils.url_utils import join_url
from .models import (
    APISearchResponse,
    ApplicationCreateRequest,
    ApplicationCreateResponse,
    ApplicationKeyGenerateRequest,
    ApplicationKeys,
    ApplicationSearchResponse,
    SubscriptionRequest,
    SubscriptionResponse,
)


class TokenProvider(Protocol):
    def token(self) -> str: ...


class APIMClient:
    """Remote platform operations used by the reconciliation service."""

    def __init__(self, invoker: ResilientInvoker, token_manager: TokenProvider, config: APIMConfig):
        self.invoker = invoker
        self.token_manager = token_manager
        self.logger = get_logger()

        self.publisher_api_endpoint = join_url(
            config.publisher_endpoint, config.publisher_api_context
        )
        self.store_application_endpoint = join_url(
            config.store_endpoint, config.store_application_context
        )
        self.store_subscription_endpoint = join_url(
            config.store_endpoint, config.store_subscription_context
        )
        self.store_multiple_subscription_endpoint = join_url(
            config.store_endpoint, config.store_multiple_subscription_context
        )
        self.generate_application_key_endpoint = join_url(
            config.store_endpoint, config.generate_application_key_context
        )
        self.application_dashboard_base = join_url(
            config.store_endpoint, APPLICATION_DASHBOARD_CONTEXT
        )

    def application_dashboard_url(self, application_name: str) -> str:
        return f"{self.application_dashboard_base}?{urlencode({'name': application_name})}"

    def create_application(self, application_name: str, description: Optional[str] = None) -> str:
        """Create an application and return its id."""
        request = ApplicationCreateRequest(
            name=application_name,
            throttling_tier=THROTTLING_TIER_UNLIMITED,
            description=description
            or f"Application {application_name} created by WSO2 APIM Service Broker",
        )
        payload = self._call(
            OperationLabel.CREATE_APPLICATION,
            "POST",
            self.store_application_endpoint,
            body=request.to_payload(),
            expected_status=201,
        )
        response = self._parse(ApplicationCreateResponse, payload, OperationLabel.CREATE_APPLICATION)
        return response.application_id

    def generate_keys(self, application_id: str) -> ApplicationKeys:
        """Generate production keys for an application."""
        if not application_id:
            raise ValidationError(
                "Application id is empty",
                field="application_id",
                error_code=ErrorCode.MISSING_REQUIRED,
            )
        payload = self._call(
            OperationLabel.GENERATE_KEYS,
            "POST",
            self.generate_application_key_endpoint,
            body=ApplicationKeyGenerateRequest().to_payload(),
            params={"applicationId": application_id},
        )
        return self._parse(ApplicationKeys, payload, OperationLabel.GENERATE_KEYS)

    def create_multiple_subscriptions(
        self, subscriptions: Sequence[SubscriptionRequest]
    ) -> List[SubscriptionResponse]:
        payload = self._call(
            OperationLabel.CREATE_MULTIPLE_SUBSCRIPTIONS,
            "POST",
            self.store_multiple_subscription_endpoint,
            body=[subscription.to_payload() for subscription in subscriptions],
        )
        return [
            self._parse(SubscriptionResponse, item, OperationLabel.CREATE_MULTIPLE_SUBSCRIPTIONS)
            for item in payload or []
        ]

    def unsubscribe(self, subscription_id: str) -> None:
        self._call(
            OperationLabel.UNSUBSCRIBE,
            "DELETE",
            join_url(self.store_subscription_endpoint, subscription_id),
            parse_response=False,
        )

    def delete_application(self, application_id: str) -> None:
        self._call(
            OperationLabel.DELETE_APPLICATION,
            "DELETE",
            join_url(self.store_application_endpoint, application_id),
            parse_response=False,
        )

    def search_api_by_name_version(self, api_name: str, api_version: str) -> str:
        """Resolve an API to its publisher id."""
        query = f"name:{api_name} version:{api_version}"
        payload = self._call(
            OperationLabel.SEARCH_API,
            "GET",
            self.publisher_api_endpoint,
            params={"query": query},
        )
        result = self._parse(APISearchResponse, payload, OperationLabel.SEARCH_API)
        if result.count == 0 or not result.list:
            raise LookupNoMatchError("API", query)
        if result.count > 1:
            raise LookupMultipleMatchesError("API", query, result.count)
        return result.list[0].id

    def search_application(self, application_name: str) -> str:
        """Resolve an application name to its id."""
        payload = self._call(
            OperationLabel.SEARCH_APPLICATION,
            "GET",
            self.store_application_endpoint,
            params={"query": application_name},
        )
        result = self._parse(ApplicationSearchResponse, payload, OperationLabel.SEARCH_APPLICATION)
        if result.count == 0 or not result.list:
            raise LookupNoMatchError("Application", application_name)
        if result.count > 1:
            raise LookupMultipleMatchesError("Application", application_name, result.count)
        return result.list[0].application_id

    def _call(
        self,
        operation: OperationLabel,
        method: str,
        url: str,
        body=None,
        params=None,
        expected_status: int = 200,
        parse_response: bool = True,
    ):
        return self.invoker.invoke(
            operation.value,
            method,
            url,
            token=self.token_manager.token(),
            body=body,
            expected_status=expected_status,
            params=params,
            parse_response=parse_response,
        )

    @staticmethod
    def _parse(model, payload, operation: OperationLabel):
        try:
            return model.model_validate(payload or {})
        except PydanticValidationError as e:
            raise RemoteCallError(
                operation.value,
                "",
                remote_status=None,
                message=f"Unexpected response body, context: {operation.value}",
                cause=e,
            ) from e
