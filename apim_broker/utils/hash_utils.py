"""
Hash utilities for desired-specification fingerprints.

A fingerprint identifies the conceptual content of a provisioning request:
the set of APIs plus the owning organization and space. Collections are
canonicalized before hashing so that submission order and repeated entries
never change the result.
"""

import hashlib
from typing import Any, Dict, Iterable, List

from ..exceptions import ErrorCode, ValidationError
from ..schemas import APIReference, ServiceParameters
from .json_utils import dumps


def calculate_hash(data: Dict[str, Any]) -> str:
    """
    Calculate a deterministic SHA-256 hash of a JSON-serializable mapping.

    Args:
        data: Mapping to hash

    Returns:
        Hex digest of the canonical (sorted keys) JSON serialization

    Raises:
        ValidationError: If data is None
    """
    if data is None:
        raise ValidationError(
            "Cannot calculate hash for None data",
            error_code=ErrorCode.TYPE_MISMATCH,
            field="data",
        )

    serialized = dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def canonical_apis(apis: Iterable[APIReference]) -> List[Dict[str, str]]:
    """Distinct APIs as plain dicts, sorted by (name, version)."""
    distinct = {(api.name, api.version) for api in apis}
    return [{"name": name, "version": version} for name, version in sorted(distinct)]


def fingerprint(desired_spec: ServiceParameters, org_id: str, space_id: str) -> str:
    """
    Fingerprint a desired specification together with its owner identity.

    Args:
        desired_spec: Requested set of APIs
        org_id: Owning organization id
        space_id: Owning space id

    Returns:
        SHA-256 hex digest, stable under reordering and duplication of APIs
    """
    if desired_spec is None:
        raise ValidationError(
            "Cannot fingerprint a missing specification",
            error_code=ErrorCode.MISSING_REQUIRED,
            field="desired_spec",
        )

    return calculate_hash(
        {
            "apis": canonical_apis(desired_spec.apis),
            "org_id": org_id,
            "space_id": space_id,
        }
    )


def same_api_set(left: Iterable[APIReference], right: Iterable[APIReference]) -> bool:
    """Set equality over (name, version)."""
    return {(a.name, a.version) for a in left} == {(a.name, a.version) for a in right}
