"""
Shared test fixtures.

Provides an in-memory SQLite database per test, a RecordStore on top of it,
and a mocked remote platform client.
"""

from unittest.mock import Mock

import pytest

from apim_broker.apim import APIMClient, ApplicationKeys, SubscriptionResponse
from apim_broker.config import DatabaseConfig, reset_config
from apim_broker.db import DatabaseManager, init_db
from apim_broker.repositories import RecordStore
from apim_broker.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def reset_process_state():
    """Each test starts without a configured logger or global config."""
    reset_config()
    reset_logging()
    yield
    reset_config()
    reset_logging()


@pytest.fixture
def db_manager() -> DatabaseManager:
    """Create an in-memory database with every broker table."""
    manager = DatabaseManager(DatabaseConfig(connection_string="sqlite:///:memory:", echo=False))
    init_db(manager)

    yield manager

    manager.close_session()
    manager.drop_tables()
    manager.close()


@pytest.fixture
def record_store(db_manager: DatabaseManager) -> RecordStore:
    return RecordStore(db_manager.get_session)


def application_id_for(application_name: str) -> str:
    return f"id-{application_name}"


def subscription_id_for(api_identifier: str) -> str:
    return f"sub-{api_identifier}"


def fake_subscribe(subscription_requests):
    """Answer a multiple-subscriptions call the way the store does."""
    responses = []
    for request in subscription_requests:
        # Resolved ids look like "<name>-<version>-id"
        name_version = request.api_identifier[: -len("-id")]
        responses.append(
            SubscriptionResponse(
                subscription_id=subscription_id_for(name_version),
                application_id=request.application_id,
                api_identifier=f"admin-{name_version}",
                tier="Unlimited",
                status="UNBLOCKED",
            )
        )
    return responses


@pytest.fixture
def apim_client() -> Mock:
    """Remote client mock that behaves like a healthy platform."""
    client = Mock(spec=APIMClient)
    client.create_application.side_effect = lambda name, description=None: application_id_for(
        name
    )
    client.generate_keys.return_value = ApplicationKeys(
        consumer_key="consumer-key", consumer_secret="consumer-secret"
    )
    client.application_dashboard_url.side_effect = (
        lambda name: f"https://localhost:9443/store/site/pages/application.jag?name={name}"
    )
    client.search_api_by_name_version.side_effect = (
        lambda name, version: f"{name}-{version}-id"
    )
    client.create_multiple_subscriptions.side_effect = fake_subscribe
    client.unsubscribe.return_value = None
    client.delete_application.return_value = None
    return client
