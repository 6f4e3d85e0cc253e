"""Utility modules for the APIM service broker."""

# Generic CRUD helpers
from .crud_helpers import (
    bulk_create_records,
    create_record,
    delete_records,
    get_record,
    list_records,
    update_record,
)

# Hash utilities
from .hash_utils import calculate_hash, canonical_apis, fingerprint, same_api_set

# Logging
from .logger import ContextAwareLogger, configure_logging, get_logger

from .rw_lock import ReadWriteLock

__all__ = [
    "bulk_create_records",
    "create_record",
    "delete_records",
    "get_record",
    "list_records",
    "update_record",
    "calculate_hash",
    "canonical_apis",
    "fingerprint",
    "same_api_set",
    "ContextAwareLogger",
    "configure_logging",
    "get_logger",
    "ReadWriteLock",
]
