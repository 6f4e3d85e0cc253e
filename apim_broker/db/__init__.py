"""SQLAlchemy models and database management for the broker."""

from .db_base import TimestampMixin, utc_now
from .db_config import Base, DatabaseManager, import_all_models, init_db
from .db_broker_models import Bind, ServiceInstance, Subscription

__all__ = [
    "Base",
    "TimestampMixin",
    "utc_now",
    "DatabaseManager",
    "import_all_models",
    "init_db",
    "Bind",
    "ServiceInstance",
    "Subscription",
]
