"""Service layer: credential store and reconciliation."""

from .broker_result import BrokerResult
from .reconciliation_service import ReconciliationService
from .token_manager import Credential, TokenManager

__all__ = ["BrokerResult", "Credential", "ReconciliationService", "TokenManager"]
