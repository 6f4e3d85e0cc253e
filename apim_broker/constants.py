"""
Constants and enums for the APIM service broker.

This module centralizes the magic strings shared by the remote client,
the reconciliation service and the broker HTTP surface.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Environment variable names read by the configuration layer."""

    LOG_LEVEL = "APIM_BROKER_LOG_LEVEL"
    LOG_FILE = "APIM_BROKER_LOG_FILE"
    DATABASE_URL = "APIM_BROKER_DATABASE_URL"
    DB_ECHO = "APIM_BROKER_DB_ECHO"

    SERVER_HOST = "APIM_BROKER_SERVER_HOST"
    SERVER_PORT = "APIM_BROKER_SERVER_PORT"
    SERVER_USERNAME = "APIM_BROKER_SERVER_AUTH_USERNAME"
    SERVER_PASSWORD = "APIM_BROKER_SERVER_AUTH_PASSWORD"

    CLIENT_TIMEOUT = "APIM_BROKER_HTTP_CLIENT_TIMEOUT"
    CLIENT_MIN_BACKOFF = "APIM_BROKER_HTTP_CLIENT_MIN_BACKOFF"
    CLIENT_MAX_BACKOFF = "APIM_BROKER_HTTP_CLIENT_MAX_BACKOFF"
    CLIENT_MAX_RETRIES = "APIM_BROKER_HTTP_CLIENT_MAX_RETRIES"
    CLIENT_INSECURE = "APIM_BROKER_HTTP_CLIENT_INSECURE"

    APIM_USERNAME = "APIM_BROKER_APIM_USERNAME"
    APIM_PASSWORD = "APIM_BROKER_APIM_PASSWORD"
    APIM_TOKEN_ENDPOINT = "APIM_BROKER_APIM_TOKEN_ENDPOINT"
    APIM_DYNAMIC_CLIENT_ENDPOINT = "APIM_BROKER_APIM_DYNAMIC_CLIENT_ENDPOINT"
    APIM_DYNAMIC_CLIENT_CONTEXT = "APIM_BROKER_APIM_DYNAMIC_CLIENT_REGISTRATION_CONTEXT"
    APIM_PUBLISHER_ENDPOINT = "APIM_BROKER_APIM_PUBLISHER_ENDPOINT"
    APIM_PUBLISHER_API_CONTEXT = "APIM_BROKER_APIM_PUBLISHER_API_CONTEXT"
    APIM_STORE_ENDPOINT = "APIM_BROKER_APIM_STORE_ENDPOINT"
    APIM_STORE_APPLICATION_CONTEXT = "APIM_BROKER_APIM_STORE_APPLICATION_CONTEXT"
    APIM_STORE_SUBSCRIPTION_CONTEXT = "APIM_BROKER_APIM_STORE_SUBSCRIPTION_CONTEXT"
    APIM_STORE_MULTIPLE_SUBSCRIPTION_CONTEXT = (
        "APIM_BROKER_APIM_STORE_MULTIPLE_SUBSCRIPTION_CONTEXT"
    )
    APIM_GENERATE_KEY_CONTEXT = "APIM_BROKER_APIM_GENERATE_APPLICATION_KEY_CONTEXT"


class OutcomeKind(str, Enum):
    """Outcome of a broker operation as seen by the caller."""

    SUCCESS = "success"
    ALREADY_EXISTS = "already_exists"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    FAILURE = "failure"


class TokenState(str, Enum):
    """Lifecycle states of the credential store."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    REFRESHING = "refreshing"


class OperationLabel(str, Enum):
    """Labels attached to every remote invocation for logs and errors."""

    DYNAMIC_CLIENT_REGISTRATION = "dynamic client registration"
    GENERATE_ACCESS_TOKEN = "generate access token"
    REFRESH_TOKEN = "refresh token"
    CREATE_APPLICATION = "create application"
    DELETE_APPLICATION = "delete application"
    GENERATE_KEYS = "generate application keys"
    CREATE_MULTIPLE_SUBSCRIPTIONS = "create multiple subscriptions"
    UNSUBSCRIBE = "unsubscribe api"
    SEARCH_API = "search api"
    SEARCH_APPLICATION = "search application"


# HTTP
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"

# Credential store
TOKEN_CONTEXT = "/token"
TOKEN_EXPIRY_SKEW_SECONDS = 10
DEFAULT_SCOPES = ("apim:subscribe", "apim:api_view")
CLIENT_REGISTRATION_CALLBACK_URL = "www.dummy.com"
CLIENT_REGISTRATION_NAME = "apim_service_broker"
CLIENT_REGISTRATION_OWNER = "admin"
CLIENT_REGISTRATION_GRANT_TYPE = "password refresh_token"

# Remote platform
APPLICATION_PREFIX = "ServiceBroker_"
THROTTLING_TIER_UNLIMITED = "Unlimited"
APPLICATION_DASHBOARD_CONTEXT = "/store/site/pages/application.jag"
KEY_VALIDITY_TIME = "3600"
KEY_TYPE_PRODUCTION = "PRODUCTION"
KEY_ACCESS_ALLOW_DOMAINS = ("ALL",)
KEY_SCOPES = ("am_application_scope", "default")
KEY_SUPPORTED_GRANT_TYPES = (
    "urn:ietf:params:oauth:grant-type:saml2-bearer",
    "iwa:ntlm",
    "refresh_token",
    "client_credentials",
    "password",
)

# Catalog
SERVICE_ID = "460F28F9-4D05-4889-970A-6BF5FB7D3CF8"
SERVICE_NAME = "wso2apim-service"
SERVICE_DESCRIPTION = "Manages WSO2 API Manager artifacts"
APPLICATION_PLAN_ID = "00e851cd-ce8b-43eb-bc27-ac4d4fbb3204"
APPLICATION_PLAN_NAME = "app"
APPLICATION_PLAN_DESCRIPTION = (
    "Creates an Application with a set of subscription for a given set of APIs "
    "in WSO2 API Manager"
)
