"""
Generic CRUD helpers shared by every broker model.

Each write commits its own transaction and rolls back on failure, raising a
RepositoryError with DATABASE_ERROR so callers see a single persistence
failure kind regardless of the driver.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..exceptions import ErrorCode, RepositoryError
from .logger import get_logger

T = TypeVar("T")


def _filtered_query(session: Session, model_class: Type[T], filters: Optional[Dict[str, Any]]) -> Query:
    query = session.query(model_class)
    if filters:
        columns = sa_inspect(model_class).columns
        unknown = sorted(key for key in filters if key not in columns)
        if unknown:
            raise RepositoryError(
                f"Unknown filter for {model_class.__name__}: {', '.join(unknown)}",
                error_code=ErrorCode.INVALID_FORMAT,
                model=model_class.__name__,
                filters=unknown,
            )
        for key, value in filters.items():
            if value is not None:
                query = query.filter(getattr(model_class, key) == value)
    return query


def _persistence_error(action: str, model_class: Type[Any], error: Exception, **context) -> RepositoryError:
    get_logger().error(
        f"Failed to {action} {model_class.__name__}: {str(error)}",
        extra={"model": model_class.__name__, "error": str(error), **context},
    )
    return RepositoryError(
        f"Failed to {action} {model_class.__name__}: {str(error)}",
        error_code=ErrorCode.DATABASE_ERROR,
        cause=error,
        model=model_class.__name__,
        **context,
    )


def create_record(session: Session, record: T) -> T:
    """
    Persist a single model instance.

    Raises:
        RepositoryError: If the insert fails
    """
    model_class = type(record)
    try:
        if hasattr(record, "created_at") and getattr(record, "created_at") is None:
            record.created_at = datetime.now(timezone.utc)  # type: ignore[attr-defined]
        session.add(record)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise _persistence_error("create", model_class, e, record_id=getattr(record, "id", None))

    get_logger().debug(
        f"Created {model_class.__name__}",
        extra={"model": model_class.__name__, "record_id": getattr(record, "id", None)},
    )
    return record


def bulk_create_records(session: Session, records: Sequence[Any]) -> int:
    """
    Persist several model instances in one transaction.

    Either every record is inserted or none is.

    Returns:
        Number of records inserted
    """
    if not records:
        return 0

    model_names = sorted({type(record).__name__ for record in records})
    try:
        session.add_all(list(records))
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        get_logger().error(
            f"Failed to bulk insert records: {str(e)}",
            extra={"models": model_names, "count": len(records), "error": str(e)},
        )
        raise RepositoryError(
            f"Failed to bulk insert {len(records)} records: {str(e)}",
            error_code=ErrorCode.DATABASE_ERROR,
            cause=e,
            models=model_names,
            count=len(records),
        )

    get_logger().debug(
        "Bulk inserted records", extra={"models": model_names, "count": len(records)}
    )
    return len(records)


def get_record(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> Optional[T]:
    """Return the first record matching the filters, or None."""
    try:
        return _filtered_query(session, model_class, filters).first()
    except SQLAlchemyError as e:
        raise _persistence_error("retrieve", model_class, e, filters=filters)


def list_records(
    session: Session,
    model_class: Type[T],
    filters: Optional[Dict[str, Any]] = None,
    order_by: Optional[str] = None,
) -> List[T]:
    """Return every record matching the filters."""
    try:
        query = _filtered_query(session, model_class, filters)
        if order_by and hasattr(model_class, order_by):
            query = query.order_by(getattr(model_class, order_by))
        return query.all()
    except SQLAlchemyError as e:
        raise _persistence_error("list", model_class, e, filters=filters)


def update_record(session: Session, record: T, data: Dict[str, Any]) -> T:
    """Apply ``data`` to a loaded record and commit."""
    model_class = type(record)
    try:
        for key, value in data.items():
            if hasattr(record, key):
                setattr(record, key, value)
        if hasattr(record, "updated_at"):
            record.updated_at = datetime.now(timezone.utc)  # type: ignore[attr-defined]
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise _persistence_error("update", model_class, e, record_id=getattr(record, "id", None))

    get_logger().debug(
        f"Updated {model_class.__name__}",
        extra={"model": model_class.__name__, "record_id": getattr(record, "id", None)},
    )
    return record


def delete_records(session: Session, model_class: Type[T], filters: Dict[str, Any]) -> int:
    """
    Delete every record matching the filters.

    An empty filter set is refused so a missing key never wipes a table.

    Returns:
        Number of records deleted
    """
    if not any(value is not None for value in filters.values()):
        raise RepositoryError(
            f"Refusing to delete {model_class.__name__} without a key",
            error_code=ErrorCode.MISSING_REQUIRED,
            model=model_class.__name__,
        )

    try:
        deleted = _filtered_query(session, model_class, filters).delete(synchronize_session=False)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise _persistence_error("delete", model_class, e, filters=filters)

    get_logger().debug(
        f"Deleted {model_class.__name__}",
        extra={"model": model_class.__name__, "filters": filters, "count": deleted},
    )
    return deleted
