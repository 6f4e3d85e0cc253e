"""Tests for the Open Service Broker HTTP surface."""

import base64
from unittest.mock import Mock

import pytest

from apim_broker.broker import create_app
from apim_broker.config import AppConfig, ServerConfig
from apim_broker.constants import APPLICATION_PLAN_ID, SERVICE_ID
from apim_broker.exceptions import RemoteCallError, get_correlation_id
from apim_broker.schemas import APIReference, ProvisionContext
from apim_broker.services import BrokerResult, ReconciliationService

INSTANCE_URL = "/v2/service_instances/inst-1"
BINDING_URL = "/v2/service_instances/inst-1/service_bindings/bind-1"
DASHBOARD_URL = "https://localhost:9443/store/site/pages/application.jag?name=ServiceBroker_inst-1"
CREDENTIALS = {
    "ApplicationName": "ServiceBroker_inst-1",
    "ConsumerKey": "ck",
    "ConsumerSecret": "cs",
}


def _auth_headers(username="broker", password="secret"):
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return {"Authorization": f"Basic {token}"}


def _provision_body(**overrides):
    body = {
        "service_id": SERVICE_ID,
        "plan_id": APPLICATION_PLAN_ID,
        "organization_guid": "org-1",
        "space_guid": "space-1",
        "parameters": {"apis": [{"name": "PizzaAPI", "version": "1.0.0"}]},
    }
    body.update(overrides)
    return body


@pytest.fixture
def service():
    return Mock(spec=ReconciliationService)


@pytest.fixture
def client(service):
    config = AppConfig(server=ServerConfig(username="broker", password="secret"))
    app = create_app(service, config)
    app.config["TESTING"] = True
    return app.test_client()


class TestAuthentication:
    def test_missing_credentials(self, client):
        response = client.get("/v2/catalog")

        assert response.status_code == 401
        assert "Basic" in response.headers["WWW-Authenticate"]

    def test_wrong_password(self, client):
        response = client.get("/v2/catalog", headers=_auth_headers(password="wrong"))

        assert response.status_code == 401


class TestCatalog:
    def test_catalog(self, client):
        response = client.get("/v2/catalog", headers=_auth_headers())

        assert response.status_code == 200
        (service,) = response.get_json()["services"]
        assert service["id"] == SERVICE_ID
        assert service["bindable"] is True
        assert service["plan_updateable"] is True
        (plan,) = service["plans"]
        assert plan["id"] == APPLICATION_PLAN_ID
        schema = plan["schemas"]["service_instance"]["create"]["parameters"]
        assert schema["required"] == ["apis"]


class TestProvision:
    def test_created(self, client, service):
        service.provision.return_value = BrokerResult.success(dashboard_url=DASHBOARD_URL)

        response = client.put(INSTANCE_URL, json=_provision_body(), headers=_auth_headers())

        assert response.status_code == 201
        assert response.get_json() == {"dashboard_url": DASHBOARD_URL}
        instance_id, spec, context = service.provision.call_args.args
        assert instance_id == "inst-1"
        assert spec.apis == [APIReference(name="PizzaAPI", version="1.0.0")]
        assert context == ProvisionContext(org_id="org-1", space_id="space-1")

    def test_already_exists(self, client, service):
        service.provision.return_value = BrokerResult.already_exists(dashboard_url=DASHBOARD_URL)

        response = client.put(INSTANCE_URL, json=_provision_body(), headers=_auth_headers())

        assert response.status_code == 200
        assert response.get_json()["dashboard_url"] == DASHBOARD_URL

    def test_conflict(self, client, service):
        service.provision.return_value = BrokerResult.conflict("different parameters")

        response = client.put(INSTANCE_URL, json=_provision_body(), headers=_auth_headers())

        assert response.status_code == 409
        assert response.get_json() == {"description": "different parameters"}

    def test_failure(self, client, service):
        service.provision.return_value = BrokerResult.failure(
            RemoteCallError("create application", "url", 500)
        )

        response = client.put(INSTANCE_URL, json=_provision_body(), headers=_auth_headers())

        assert response.status_code == 500
        assert "create application" in response.get_json()["description"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"organization_guid": ""},
            {"space_guid": ""},
            {"organization_guid": None},
        ],
    )
    def test_missing_owner(self, client, service, overrides):
        response = client.put(
            INSTANCE_URL, json=_provision_body(**overrides), headers=_auth_headers()
        )

        assert response.status_code == 400
        service.provision.assert_not_called()

    @pytest.mark.parametrize(
        "parameters", [None, {}, {"apis": []}, {"apis": None}, "not-an-object"]
    )
    def test_no_apis(self, client, service, parameters):
        response = client.put(
            INSTANCE_URL, json=_provision_body(parameters=parameters), headers=_auth_headers()
        )

        assert response.status_code == 400
        assert response.get_json() == {"description": "No APIs Defined"}
        service.provision.assert_not_called()

    def test_api_without_version(self, client, service):
        response = client.put(
            INSTANCE_URL,
            json=_provision_body(parameters={"apis": [{"name": "PizzaAPI"}]}),
            headers=_auth_headers(),
        )

        assert response.status_code == 400
        service.provision.assert_not_called()

    def test_malformed_json(self, client, service):
        response = client.put(
            INSTANCE_URL,
            data="{not json",
            content_type="application/json",
            headers=_auth_headers(),
        )

        assert response.status_code == 400
        service.provision.assert_not_called()


class TestUpdate:
    def test_updated(self, client, service):
        service.update.return_value = BrokerResult.success()

        response = client.patch(
            INSTANCE_URL,
            json={"service_id": SERVICE_ID, "parameters": {"apis": [{"name": "A", "version": "1"}]}},
            headers=_auth_headers(),
        )

        assert response.status_code == 200
        assert response.get_json() == {}

    def test_not_found(self, client, service):
        service.update.return_value = BrokerResult.not_found("Service instance inst-1 not found")

        response = client.patch(
            INSTANCE_URL,
            json={"parameters": {"apis": [{"name": "A", "version": "1"}]}},
            headers=_auth_headers(),
        )

        assert response.status_code == 404

    def test_no_apis(self, client, service):
        response = client.patch(INSTANCE_URL, json={"parameters": {}}, headers=_auth_headers())

        assert response.status_code == 400
        service.update.assert_not_called()


class TestDeprovision:
    def test_deleted(self, client, service):
        service.deprovision.return_value = BrokerResult.success()

        response = client.delete(
            f"{INSTANCE_URL}?service_id={SERVICE_ID}&plan_id={APPLICATION_PLAN_ID}",
            headers=_auth_headers(),
        )

        assert response.status_code == 200
        service.deprovision.assert_called_once_with("inst-1")

    def test_gone(self, client, service):
        service.deprovision.return_value = BrokerResult.not_found("missing")

        response = client.delete(INSTANCE_URL, headers=_auth_headers())

        assert response.status_code == 410
        assert response.get_json() == {}


class TestBinding:
    def test_bind_created(self, client, service):
        service.bind.return_value = BrokerResult.success(credentials=CREDENTIALS)

        response = client.put(
            BINDING_URL,
            json={
                "service_id": SERVICE_ID,
                "plan_id": APPLICATION_PLAN_ID,
                "bind_resource": {"app_guid": "app-guid"},
            },
            headers=_auth_headers(),
        )

        assert response.status_code == 201
        assert response.get_json() == {"credentials": CREDENTIALS}
        service.bind.assert_called_once_with("inst-1", "bind-1", "app-guid")

    def test_service_key_bind(self, client, service):
        service.bind.return_value = BrokerResult.already_exists(credentials=CREDENTIALS)

        response = client.put(
            BINDING_URL, json={"service_id": SERVICE_ID}, headers=_auth_headers()
        )

        assert response.status_code == 200
        service.bind.assert_called_once_with("inst-1", "bind-1", None)

    def test_bind_conflict(self, client, service):
        service.bind.return_value = BrokerResult.conflict("different attributes")

        response = client.put(BINDING_URL, json={}, headers=_auth_headers())

        assert response.status_code == 409

    def test_bind_missing_instance(self, client, service):
        service.bind.return_value = BrokerResult.not_found("missing")

        response = client.put(BINDING_URL, json={}, headers=_auth_headers())

        assert response.status_code == 404

    def test_unbind(self, client, service):
        service.unbind.return_value = BrokerResult.success()

        response = client.delete(
            f"{BINDING_URL}?plan_id={APPLICATION_PLAN_ID}", headers=_auth_headers()
        )

        assert response.status_code == 200
        service.unbind.assert_called_once_with("inst-1", "bind-1")

    def test_unbind_missing(self, client, service):
        service.unbind.return_value = BrokerResult.not_found("missing")

        response = client.delete(
            f"{BINDING_URL}?plan_id={APPLICATION_PLAN_ID}", headers=_auth_headers()
        )

        assert response.status_code == 410

    def test_unbind_wrong_plan(self, client, service):
        response = client.delete(f"{BINDING_URL}?plan_id=other", headers=_auth_headers())

        assert response.status_code == 400
        assert response.get_json() == {"description": "invalid plan id"}
        service.unbind.assert_not_called()


class TestCorrelationId:
    def test_header_is_bound_for_the_request(self, client, service):
        seen = {}

        def deprovision(instance_id):
            seen["correlation_id"] = get_correlation_id()
            return BrokerResult.success()

        service.deprovision.side_effect = deprovision

        client.delete(
            INSTANCE_URL, headers={**_auth_headers(), "X-Correlation-Id": "corr-42"}
        )

        assert seen["correlation_id"] == "corr-42"
        assert get_correlation_id() is None
