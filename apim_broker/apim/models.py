"""
Wire models for the API Manager store, publisher and identity endpoints.

Field names follow Python conventions and map to the platform's camelCase
JSON through aliases. Responses ignore unknown fields.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import (
    CLIENT_REGISTRATION_CALLBACK_URL,
    CLIENT_REGISTRATION_GRANT_TYPE,
    CLIENT_REGISTRATION_NAME,
    CLIENT_REGISTRATION_OWNER,
    KEY_ACCESS_ALLOW_DOMAINS,
    KEY_SCOPES,
    KEY_SUPPORTED_GRANT_TYPES,
    KEY_TYPE_PRODUCTION,
    KEY_VALIDITY_TIME,
    THROTTLING_TIER_UNLIMITED,
)
from ..exceptions import ErrorCode, ValidationError


class APIMModel(BaseModel):
    """Base for platform payloads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# Identity endpoint
class DynamicClientRegistrationRequest(APIMModel):
    callback_url: str = Field(default=CLIENT_REGISTRATION_CALLBACK_URL, alias="callbackUrl")
    client_name: str = Field(default=CLIENT_REGISTRATION_NAME, alias="clientName")
    owner: str = Field(default=CLIENT_REGISTRATION_OWNER)
    grant_type: str = Field(default=CLIENT_REGISTRATION_GRANT_TYPE, alias="grantType")
    saas_app: bool = Field(default=True, alias="saasApp")


class DynamicClientRegistrationResponse(APIMModel):
    client_id: str = Field(..., alias="clientId")
    client_secret: str = Field(..., alias="clientSecret")
    client_name: Optional[str] = Field(default=None, alias="clientName")
    callback_url: Optional[str] = Field(default=None, alias="callBackURL")
    is_saas_application: Optional[bool] = Field(default=None, alias="isSaasApplication")


class TokenResponse(APIMModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: Optional[str] = None
    scope: Optional[str] = None


# Store: applications
class ApplicationCreateRequest(APIMModel):
    name: str
    throttling_tier: str = Field(default=THROTTLING_TIER_UNLIMITED, alias="throttlingTier")
    description: Optional[str] = None
    callback_url: Optional[str] = Field(default=None, alias="callbackUrl")


class ApplicationCreateResponse(APIMModel):
    application_id: str = Field(..., alias="applicationId")


class ApplicationKeyGenerateRequest(APIMModel):
    key_type: str = Field(default=KEY_TYPE_PRODUCTION, alias="keyType")
    validity_time: str = Field(default=KEY_VALIDITY_TIME, alias="validityTime")
    supported_grant_types: List[str] = Field(
        default_factory=lambda: list(KEY_SUPPORTED_GRANT_TYPES), alias="supportedGrantTypes"
    )
    access_allow_domains: List[str] = Field(
        default_factory=lambda: list(KEY_ACCESS_ALLOW_DOMAINS), alias="accessAllowDomains"
    )
    scopes: List[str] = Field(default_factory=lambda: list(KEY_SCOPES))
    callback_url: Optional[str] = Field(default=None, alias="callbackUrl")


class ApplicationKeyToken(APIMModel):
    access_token: Optional[str] = Field(default=None, alias="accessToken")
    token_scopes: List[str] = Field(default_factory=list, alias="tokenScopes")
    validity_time: Optional[int] = Field(default=None, alias="validityTime")


class ApplicationKeys(APIMModel):
    consumer_key: Optional[str] = Field(default=None, alias="consumerKey")
    consumer_secret: Optional[str] = Field(default=None, alias="consumerSecret")
    supported_grant_types: List[str] = Field(default_factory=list, alias="supportedGrantTypes")
    key_state: Optional[str] = Field(default=None, alias="keyState")
    key_type: Optional[str] = Field(default=None, alias="keyType")
    token: Optional[ApplicationKeyToken] = None


class ApplicationSearchInfo(APIMModel):
    application_id: str = Field(..., alias="applicationId")
    name: str
    throttling_tier: Optional[str] = Field(default=None, alias="throttlingTier")
    subscriber: Optional[str] = None
    status: Optional[str] = None


class ApplicationSearchResponse(APIMModel):
    count: int = 0
    list: List[ApplicationSearchInfo] = Field(default_factory=list)


# Store: subscriptions
class SubscriptionRequest(APIMModel):
    tier: str = THROTTLING_TIER_UNLIMITED
    api_identifier: str = Field(..., alias="apiIdentifier")
    application_id: str = Field(..., alias="applicationId")


class SubscriptionResponse(APIMModel):
    subscription_id: str = Field(..., alias="subscriptionId")
    application_id: str = Field(..., alias="applicationId")
    api_identifier: str = Field(..., alias="apiIdentifier")
    tier: Optional[str] = None
    status: Optional[str] = None

    def identifier_parts(self) -> "APIIdentifier":
        return APIIdentifier.parse(self.api_identifier)


class APIIdentifier(BaseModel):
    """
    The ``<provider>-<name>-<version>`` string the store reports for a subscription.

    API names and versions may themselves contain ``-``, so only the provider
    (first token) is split off. The remainder is compared against a known
    name and version rather than parsed.
    """

    model_config = ConfigDict(frozen=True)

    user: str
    qualified_name: str

    @classmethod
    def parse(cls, identifier: str) -> "APIIdentifier":
        user, _, qualified_name = identifier.partition("-")
        if not user or "-" not in qualified_name:
            raise ValidationError(
                f"Unexpected API identifier: {identifier}",
                field="apiIdentifier",
                error_code=ErrorCode.INVALID_FORMAT,
            )
        return cls(user=user, qualified_name=qualified_name)

    @staticmethod
    def qualify(name: str, version: str) -> str:
        return f"{name}-{version}"


# Publisher: APIs
class APISearchInfo(APIMModel):
    id: str
    name: str
    version: str
    provider: Optional[str] = None
    context: Optional[str] = None
    status: Optional[str] = None


class APISearchResponse(APIMModel):
    count: int = 0
    list: List[APISearchInfo] = Field(default_factory=list)


class ApplicationMetadata(BaseModel):
    """A freshly created application with its generated keys."""

    id: str
    name: str
    keys: ApplicationKeys
    dashboard_url: str
