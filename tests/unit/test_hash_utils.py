"""Tests for desired-specification fingerprints."""

import pytest

from apim_broker.exceptions import ErrorCode, ValidationError
from apim_broker.schemas import APIReference, ServiceParameters
from apim_broker.utils.hash_utils import calculate_hash, canonical_apis, fingerprint, same_api_set


def _spec(*apis):
    return ServiceParameters(apis=[APIReference(name=n, version=v) for n, v in apis])


class TestFingerprint:
    def test_order_does_not_change_hash(self):
        first = _spec(("PizzaAPI", "1.0.0"), ("ShopAPI", "2.0.0"))
        second = _spec(("ShopAPI", "2.0.0"), ("PizzaAPI", "1.0.0"))

        assert fingerprint(first, "org", "space") == fingerprint(second, "org", "space")

    def test_duplicates_do_not_change_hash(self):
        single = _spec(("PizzaAPI", "1.0.0"))
        repeated = _spec(("PizzaAPI", "1.0.0"), ("PizzaAPI", "1.0.0"))

        assert fingerprint(single, "org", "space") == fingerprint(repeated, "org", "space")

    def test_owner_identity_changes_hash(self):
        spec = _spec(("PizzaAPI", "1.0.0"))

        base = fingerprint(spec, "org", "space")
        assert fingerprint(spec, "other-org", "space") != base
        assert fingerprint(spec, "org", "other-space") != base

    def test_api_set_changes_hash(self):
        assert fingerprint(_spec(("PizzaAPI", "1.0.0")), "org", "space") != fingerprint(
            _spec(("PizzaAPI", "2.0.0")), "org", "space"
        )

    def test_is_sha256_hex(self):
        digest = fingerprint(_spec(("PizzaAPI", "1.0.0")), "org", "space")

        assert len(digest) == 64
        int(digest, 16)

    def test_missing_spec_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            fingerprint(None, "org", "space")

        assert exc_info.value.error_code == ErrorCode.MISSING_REQUIRED


class TestHelpers:
    def test_calculate_hash_is_key_order_independent(self):
        assert calculate_hash({"a": 1, "b": 2}) == calculate_hash({"b": 2, "a": 1})

    def test_calculate_hash_rejects_none(self):
        with pytest.raises(ValidationError) as exc_info:
            calculate_hash(None)

        assert exc_info.value.error_code == ErrorCode.TYPE_MISMATCH

    def test_canonical_apis(self):
        spec = _spec(("ShopAPI", "2.0.0"), ("PizzaAPI", "1.0.0"), ("ShopAPI", "2.0.0"))

        assert canonical_apis(spec.apis) == [
            {"name": "PizzaAPI", "version": "1.0.0"},
            {"name": "ShopAPI", "version": "2.0.0"},
        ]

    def test_same_api_set(self):
        left = _spec(("PizzaAPI", "1.0.0"), ("ShopAPI", "2.0.0")).apis
        right = _spec(("ShopAPI", "2.0.0"), ("PizzaAPI", "1.0.0"), ("PizzaAPI", "1.0.0")).apis

        assert same_api_set(left, right)
        assert not same_api_set(left, left[:1])
