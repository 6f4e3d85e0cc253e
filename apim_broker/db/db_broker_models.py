"""
Broker records.

ServiceInstance is the managed resource, Subscription mirrors one remote
subscription of its application, and Bind is a consumer's claim on the
instance credentials. Rows carry data only; behavior lives in the
reconciliation service.
"""

from sqlalchemy import Column, Index, String, UniqueConstraint

from .db_base import TimestampMixin
from .db_config import Base


class ServiceInstance(Base, TimestampMixin):
    """A managed application provisioned in the remote platform."""

    __tablename__ = "service_instances"

    id = Column(String(255), primary_key=True)
    application_id = Column(String(255), nullable=False, unique=True)
    application_name = Column(String(255), nullable=False)
    org_id = Column(String(255), nullable=False)
    space_id = Column(String(255), nullable=False)
    consumer_key = Column(String(255), nullable=True)
    consumer_secret = Column(String(255), nullable=True)
    parameter_hash = Column(String(64), nullable=False)

    def __repr__(self) -> str:
        return (
            f"ServiceInstance(id='{self.id}', application_id='{self.application_id}', "
            f"application_name='{self.application_name}', consumer_secret='***')"
        )


class Subscription(Base, TimestampMixin):
    """One remote subscription; ``id`` is the remote subscription id."""

    __tablename__ = "subscriptions"

    id = Column(String(255), primary_key=True)
    application_id = Column(String(255), nullable=False, index=True)
    api_name = Column(String(255), nullable=False)
    api_version = Column(String(100), nullable=False)
    user = Column(String(255), nullable=True)
    service_instance_id = Column(String(255), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("application_id", "api_name", "api_version", name="uq_subscription_api"),
    )


class Bind(Base, TimestampMixin):
    """A binding of a platform application (or a service key) to an instance."""

    __tablename__ = "binds"

    id = Column(String(255), primary_key=True)
    service_instance_id = Column(String(255), nullable=False)
    # Empty when the bind was created for a service key
    platform_app_id = Column(String(255), nullable=False, default="")

    __table_args__ = (Index("ix_bind_instance", "service_instance_id"),)
