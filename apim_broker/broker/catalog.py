"""
Service catalog advertised on ``GET /v2/catalog``.

The broker offers a single service with a single plan. Instance parameters
are described by a JSON schema listing the APIs to subscribe to.
"""

from typing import Any, Dict

from ..constants import (
    APPLICATION_PLAN_DESCRIPTION,
    APPLICATION_PLAN_ID,
    APPLICATION_PLAN_NAME,
    SERVICE_DESCRIPTION,
    SERVICE_ID,
    SERVICE_NAME,
)

JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-04/schema#"

APP_PLAN_INSTANCE_SCHEMA: Dict[str, Any] = {
    "$schema": JSON_SCHEMA_DRAFT,
    "type": "object",
    "properties": {
        "apis": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "version": {"type": "string"},
                },
                "required": ["name", "version"],
            },
        }
    },
    "required": ["apis"],
}

APP_PLAN_BIND_SCHEMA: Dict[str, Any] = {"$schema": JSON_SCHEMA_DRAFT}


def is_application_plan(plan_id: str) -> bool:
    return plan_id == APPLICATION_PLAN_ID


def build_catalog() -> Dict[str, Any]:
    """Catalog response body."""
    return {
        "services": [
            {
                "id": SERVICE_ID,
                "name": SERVICE_NAME,
                "description": SERVICE_DESCRIPTION,
                "bindable": True,
                "plan_updateable": True,
                "plans": [
                    {
                        "id": APPLICATION_PLAN_ID,
                        "name": APPLICATION_PLAN_NAME,
                        "description": APPLICATION_PLAN_DESCRIPTION,
                        "bindable": True,
                        "schemas": {
                            "service_instance": {
                                "create": {"parameters": APP_PLAN_INSTANCE_SCHEMA},
                                "update": {"parameters": APP_PLAN_INSTANCE_SCHEMA},
                            },
                            "service_binding": {
                                "create": {"parameters": APP_PLAN_BIND_SCHEMA},
                            },
                        },
                    }
                ],
            }
        ]
    }
