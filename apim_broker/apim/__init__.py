"""Client and wire models for the remote API-management platform."""

from .client import APIMClient, TokenProvider
from .models import (
    APIIdentifier,
    ApplicationKeys,
    ApplicationMetadata,
    SubscriptionRequest,
    SubscriptionResponse,
)

__all__ = [
    "APIMClient",
    "TokenProvider",
    "APIIdentifier",
    "ApplicationKeys",
    "ApplicationMetadata",
    "SubscriptionRequest",
    "SubscriptionResponse",
]
