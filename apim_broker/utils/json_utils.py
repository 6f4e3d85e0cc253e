import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, (set, frozenset)):
            return sorted(obj, key=repr)
        # Pydantic models
        elif hasattr(obj, "model_dump"):
            return obj.model_dump(by_alias=True)
        return super().default(obj)


def dumps(obj: Any, **kwargs) -> str:
    """JSON dumps with Decimal, datetime, enum and Pydantic support."""
    return json.dumps(obj, cls=EnhancedJSONEncoder, **kwargs)


def dumps_bytes(obj: Any, **kwargs) -> bytes:
    """Serialize to UTF-8 encoded JSON, ready to be sent as a request body."""
    return dumps(obj, **kwargs).encode("utf-8")


def loads(s: Union[str, bytes, bytearray], **kwargs) -> Any:
    """Standard JSON loads function."""
    return json.loads(s, **kwargs)
