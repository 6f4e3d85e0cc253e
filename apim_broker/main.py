"""
Process entry point.

``build_broker`` wires the long-lived collaborators in a fixed order and
hands each one to the next explicitly. ``main`` builds the broker and serves
it; a failure to obtain the initial credential ends the process.
"""

import sys
from dataclasses import dataclass
from typing import Optional

from flask import Flask

from .apim import APIMClient
from .broker.api import create_app
from .client import ResilientInvoker
from .config import AppConfig, set_config
from .db import DatabaseManager, init_db
from .exceptions import CredentialInitializationError
from .repositories import RecordStore
from .services import ReconciliationService, TokenManager
from .utils.logger import configure_logging

SERVICE_NAME = "apim-broker"


@dataclass
class Broker:
    config: AppConfig
    token_manager: TokenManager
    db_manager: DatabaseManager
    service: ReconciliationService
    app: Flask


def build_broker(config: Optional[AppConfig] = None) -> Broker:
    """
    Construct every broker component.

    Raises:
        CredentialInitializationError: The initial token could not be obtained
    """
    config = config or AppConfig.from_env()
    set_config(config)

    logger = configure_logging(
        SERVICE_NAME, log_level=config.logging.level, log_file=config.logging.file_path
    )

    invoker = ResilientInvoker.from_config(config.http_client)

    token_manager = TokenManager(invoker, config.apim)
    token_manager.initialize()

    db_manager = DatabaseManager(config.database)
    init_db(db_manager)
    store = RecordStore(db_manager.get_session)

    apim_client = APIMClient(invoker, token_manager, config.apim)
    service = ReconciliationService(apim_client, store, logger=logger)

    app = create_app(service, config, on_teardown=db_manager.close_session)

    return Broker(
        config=config,
        token_manager=token_manager,
        db_manager=db_manager,
        service=service,
        app=app,
    )


def main() -> int:
    try:
        broker = build_broker()
    except CredentialInitializationError:
        # Already logged by the error itself
        return 1

    server = broker.config.server
    try:
        broker.app.run(host=server.host, port=server.port, threaded=True)
    finally:
        broker.db_manager.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
