"""
Generic record store used by the reconciliation service.

A partial record is expressed as keyword filters over a model's columns.
Every write is its own transaction and ``bulk_insert`` is all-or-nothing.
"""

from typing import Any, Callable, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy.orm import Session

from ..utils import (
    bulk_create_records,
    create_record,
    delete_records,
    get_record,
    list_records,
    update_record,
)

T = TypeVar("T")


class RecordStore:
    """Storage collaborator backed by SQLAlchemy sessions."""

    def __init__(self, session_provider: Callable[[], Session]):
        """
        Args:
            session_provider: Returns the session for the current unit of work,
                typically ``DatabaseManager.get_session`` (thread-scoped)
        """
        self._session_provider = session_provider

    @property
    def session(self) -> Session:
        return self._session_provider()

    def store(self, record: T) -> T:
        return create_record(self.session, record)

    def retrieve_by_key(self, model_class: Type[T], **key: Any) -> Tuple[bool, Optional[T]]:
        record = get_record(self.session, model_class, key)
        return record is not None, record

    def retrieve_all_by_key(self, model_class: Type[T], **key: Any) -> Tuple[bool, List[T]]:
        records = list_records(self.session, model_class, key, order_by="created_at")
        return len(records) > 0, records

    def update(self, record: T, **values: Any) -> T:
        return update_record(self.session, record, values)

    def delete_by_key(self, model_class: Type[Any], **key: Any) -> int:
        return delete_records(self.session, model_class, key)

    def bulk_insert(self, records: Sequence[Any]) -> int:
        return bulk_create_records(self.session, records)
