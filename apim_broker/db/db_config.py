from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import DatabaseConfig
from ..exceptions import ErrorCode, ValidationError
from ..utils import get_logger

# Base class for all SQLAlchemy models
Base: Any = declarative_base()


class DatabaseManager:
    """
    Database connection manager built from the broker DatabaseConfig.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine()
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.scoped_session = scoped_session(self.session_factory)

    def _create_engine(self):
        try:
            url = make_url(self.config.connection_string)
        except ArgumentError as e:
            raise ValidationError(
                f"Invalid database URL: {str(e)}",
                field="connection_string",
                error_code=ErrorCode.INVALID_FORMAT,
                cause=e,
            )

        if url.get_backend_name() == "sqlite":
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if url.database in (None, "", ":memory:"):
                # One shared connection, otherwise every thread sees an empty database
                kwargs["poolclass"] = StaticPool
            return create_engine(url, echo=self.config.echo, **kwargs)

        return create_engine(
            url,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        return self.scoped_session()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session:
            session.close()
        else:
            self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def import_all_models():
    """Import all models to ensure they're registered with SQLAlchemy metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_broker_models import Bind, ServiceInstance, Subscription  # noqa

    configure_mappers()


def init_db(db_manager: DatabaseManager) -> None:
    """
    Initialize the database, creating all tables.

    Args:
        db_manager: DatabaseManager instance to use for table creation
    """
    get_logger().info("Initializing DB", extra={"database_url": _masked_url(db_manager)})
    import_all_models()
    db_manager.create_tables()


def _masked_url(db_manager: DatabaseManager) -> str:
    return db_manager.engine.url.render_as_string(hide_password=True)
