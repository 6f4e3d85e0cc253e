"""
Pydantic schemas for the caller-supplied desired specification.

The desired specification (ServiceParameters) is the set of remote APIs a
managed application must be subscribed to. APIs are identified purely by
(name, version); ordering and duplicates in the submitted list carry no
meaning.
"""

from typing import FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field


class APIReference(BaseModel):
    """A remote API identified by name and version."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    name: str = Field(..., min_length=1, description="API name")
    version: str = Field(..., min_length=1, description="API version")

    def __str__(self) -> str:
        return f"{self.name}:{self.version}"


class ServiceParameters(BaseModel):
    """Desired specification for a managed application."""

    model_config = ConfigDict(extra="ignore")

    apis: List[APIReference] = Field(default_factory=list, description="APIs to subscribe to")

    def api_set(self) -> FrozenSet[APIReference]:
        return frozenset(self.apis)

    def sorted_apis(self) -> List[APIReference]:
        """Distinct APIs in (name, version) order."""
        return sorted(self.api_set(), key=lambda api: (api.name, api.version))


class ProvisionContext(BaseModel):
    """Ownership of a managed application in the marketplace."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    org_id: str = Field(..., min_length=1, description="Marketplace organization id")
    space_id: str = Field(..., min_length=1, description="Marketplace space id")
