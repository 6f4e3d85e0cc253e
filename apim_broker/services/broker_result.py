"""
Result of a broker operation.

The caller inspects ``outcome`` (a closed enum) and reads whatever payload
that outcome carries: a dashboard URL or credentials on success, error code
and message on failure.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..constants import OutcomeKind
from ..exceptions import BaseError


class BrokerResult(BaseModel):
    """Outcome plus payload of provision/update/deprovision/bind/unbind."""

    outcome: OutcomeKind = Field(description="Outcome kind")

    dashboard_url: Optional[str] = Field(default=None, description="Application dashboard URL")
    credentials: Optional[Dict[str, str]] = Field(
        default=None, description="Credentials handed to a binding"
    )

    error_message: Optional[str] = Field(default=None, description="Error description")
    error_code: Optional[str] = Field(default=None, description="ErrorCode value")

    context: Dict[str, Any] = Field(default_factory=dict, description="Additional context")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.outcome in (OutcomeKind.SUCCESS, OutcomeKind.ALREADY_EXISTS)

    @classmethod
    def success(cls, **kwargs) -> "BrokerResult":
        return cls(outcome=OutcomeKind.SUCCESS, **kwargs)

    @classmethod
    def already_exists(cls, **kwargs) -> "BrokerResult":
        return cls(outcome=OutcomeKind.ALREADY_EXISTS, **kwargs)

    @classmethod
    def conflict(cls, error_message: str, **kwargs) -> "BrokerResult":
        return cls(outcome=OutcomeKind.CONFLICT, error_message=error_message, **kwargs)

    @classmethod
    def not_found(cls, error_message: str, **kwargs) -> "BrokerResult":
        return cls(outcome=OutcomeKind.NOT_FOUND, error_message=error_message, **kwargs)

    @classmethod
    def failure(cls, error: BaseError, **kwargs) -> "BrokerResult":
        """
        Wrap an error that aborted the operation.

        Args:
            error: The triggering error, propagated unmodified to this point
            **kwargs: Additional fields

        Returns:
            BrokerResult with FAILURE outcome and the error's code and context
        """
        context = {
            "error_id": error.error_id,
            "status_code": error.status_code,
        }
        remote_status = getattr(error, "remote_status", None)
        if remote_status is not None:
            context["remote_status"] = remote_status
        context.update(kwargs.pop("context", {}))

        return cls(
            outcome=OutcomeKind.FAILURE,
            error_message=error.message,
            error_code=error.error_code.value,
            context=context,
            **kwargs,
        )
