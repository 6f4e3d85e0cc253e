"""
Open Service Broker HTTP surface.

Routes translate marketplace requests into reconciliation calls and map the
returned outcome onto the status codes the marketplace expects. Request
bodies are validated here; the reconciliation service only ever sees a
well-formed ServiceParameters and ProvisionContext.

Every route requires HTTP basic auth with the configured broker credentials.
"""

import hmac
import uuid
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from ..config import AppConfig
from ..constants import OutcomeKind
from ..exceptions import clear_correlation_id, set_correlation_id
from ..schemas import ProvisionContext, ServiceParameters
from ..services import BrokerResult, ReconciliationService
from ..utils.logger import get_logger
from .catalog import build_catalog, is_application_plan

CORRELATION_ID_HEADER = "X-Correlation-Id"
SERVICE_EXTENSION = "apim_broker.reconciliation_service"

ERR_NO_APIS = "No APIs Defined"
ERR_INVALID_BODY = "Invalid request body"
ERR_INVALID_PLAN = "invalid plan id"
ERR_MISSING_CONTEXT = "organization_guid and space_guid are required"
ERR_INTERNAL = "internal error"

bp = Blueprint("osb", __name__, url_prefix="/v2")


class RequestValidationError(Exception):
    """A marketplace request that cannot be acted on."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(description)


def _service() -> ReconciliationService:
    return current_app.extensions[SERVICE_EXTENSION]


def _error(status: int, description: str) -> Tuple[Response, int]:
    return jsonify({"description": description}), status


def _json_body() -> Dict[str, Any]:
    if not request.get_data():
        return {}
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise RequestValidationError(ERR_INVALID_BODY)
    return body


def _service_parameters(body: Dict[str, Any]) -> ServiceParameters:
    parameters = body.get("parameters")
    if not isinstance(parameters, dict) or not parameters.get("apis"):
        raise RequestValidationError(ERR_NO_APIS)
    try:
        return ServiceParameters.model_validate(parameters)
    except PydanticValidationError as e:
        raise RequestValidationError(f"Invalid parameters: {e.errors()[0]['msg']}") from e


def _provision_context(body: Dict[str, Any]) -> ProvisionContext:
    try:
        return ProvisionContext(
            org_id=body.get("organization_guid") or "",
            space_id=body.get("space_guid") or "",
        )
    except PydanticValidationError as e:
        raise RequestValidationError(ERR_MISSING_CONTEXT) from e


def _platform_app_id(body: Dict[str, Any]) -> Optional[str]:
    bind_resource = body.get("bind_resource") or {}
    return bind_resource.get("app_guid") or body.get("app_guid")


def _respond(
    result: BrokerResult, statuses: Dict[OutcomeKind, int], body: Optional[Dict[str, Any]] = None
) -> Tuple[Response, int]:
    if result.outcome in (OutcomeKind.SUCCESS, OutcomeKind.ALREADY_EXISTS):
        return jsonify(body or {}), statuses[result.outcome]
    if result.outcome == OutcomeKind.FAILURE:
        return _error(500, result.error_message or ERR_INTERNAL)
    status = statuses.get(result.outcome, 500)
    if status == 410:
        return jsonify({}), status
    return _error(status, result.error_message or "")


@bp.before_request
def authenticate() -> Optional[Tuple[Response, int]]:
    server = current_app.config["APP_CONFIG"].server
    auth = request.authorization
    if (
        auth is None
        or not hmac.compare_digest(auth.username or "", server.username)
        or not hmac.compare_digest(auth.password or "", server.password)
    ):
        response, status = _error(401, "Unauthorized")
        response.headers["WWW-Authenticate"] = 'Basic realm="apim-broker"'
        return response, status
    return None


@bp.errorhandler(RequestValidationError)
def handle_request_validation_error(error: RequestValidationError):
    get_logger().warning(
        "Rejected request", extra={"path": request.path, "description": error.description}
    )
    return _error(400, error.description)


@bp.route("/catalog", methods=["GET"])
def catalog():
    return jsonify(build_catalog()), 200


@bp.route("/service_instances/<instance_id>", methods=["PUT"])
def provision(instance_id: str):
    body = _json_body()
    context = _provision_context(body)
    desired_spec = _service_parameters(body)

    result = _service().provision(instance_id, desired_spec, context)
    return _respond(
        result,
        {
            OutcomeKind.SUCCESS: 201,
            OutcomeKind.ALREADY_EXISTS: 200,
            OutcomeKind.CONFLICT: 409,
        },
        {"dashboard_url": result.dashboard_url},
    )


@bp.route("/service_instances/<instance_id>", methods=["PATCH"])
def update(instance_id: str):
    desired_spec = _service_parameters(_json_body())

    result = _service().update(instance_id, desired_spec)
    return _respond(
        result,
        {OutcomeKind.SUCCESS: 200, OutcomeKind.NOT_FOUND: 404, OutcomeKind.CONFLICT: 409},
    )


@bp.route("/service_instances/<instance_id>", methods=["DELETE"])
def deprovision(instance_id: str):
    result = _service().deprovision(instance_id)
    return _respond(result, {OutcomeKind.SUCCESS: 200, OutcomeKind.NOT_FOUND: 410})


@bp.route("/service_instances/<instance_id>/service_bindings/<binding_id>", methods=["PUT"])
def bind(instance_id: str, binding_id: str):
    body = _json_body()

    result = _service().bind(instance_id, binding_id, _platform_app_id(body))
    return _respond(
        result,
        {
            OutcomeKind.SUCCESS: 201,
            OutcomeKind.ALREADY_EXISTS: 200,
            OutcomeKind.CONFLICT: 409,
            OutcomeKind.NOT_FOUND: 404,
        },
        {"credentials": result.credentials},
    )


@bp.route("/service_instances/<instance_id>/service_bindings/<binding_id>", methods=["DELETE"])
def unbind(instance_id: str, binding_id: str):
    if not is_application_plan(request.args.get("plan_id", "")):
        raise RequestValidationError(ERR_INVALID_PLAN)

    result = _service().unbind(instance_id, binding_id)
    return _respond(result, {OutcomeKind.SUCCESS: 200, OutcomeKind.NOT_FOUND: 410})


def create_app(
    service: ReconciliationService, config: AppConfig, on_teardown=None
) -> Flask:
    """
    Create the broker Flask application.

    Args:
        service: Reconciliation service the routes delegate to
        config: Application configuration; ``config.server`` holds the
            basic auth credentials
        on_teardown: Optional callable run when each request's app context
            ends, e.g. ``DatabaseManager.close_session``

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.config["APP_CONFIG"] = config
    app.extensions[SERVICE_EXTENSION] = service

    @app.before_request
    def bind_correlation_id():
        set_correlation_id(request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4()))

    @app.teardown_request
    def release_request_state(exc=None):
        clear_correlation_id()
        if on_teardown is not None:
            on_teardown()

    app.register_blueprint(bp)
    return app
