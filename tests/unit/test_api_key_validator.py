"""Unit tests for webhook API key validation."""

import pytest

from campus_food_ordering.auth.api_key_validator import APIKeyValidator


@pytest.mark.unit
class TestAPIKeyValidator:
    """Test suite for APIKeyValidator."""

    def test_empty_key_list_raises_error(self) -> None:
        """Test that a validator needs at least one configured key."""
        with pytest.raises(ValueError, match="At least one API key must be provided"):
            APIKeyValidator(api_keys=[])

    def test_duplicate_keys_collapse(self) -> None:
        validator = APIKeyValidator(api_keys=["hook-key", "hook-key"])
        assert validator.api_keys == {"hook-key"}

    def test_accepts_any_configured_key(self) -> None:
        """Test that every configured webhook key is accepted."""
        validator = APIKeyValidator(api_keys=["primary-hook", "rotating-hook"])

        assert validator.validate("primary-hook") is True
        assert validator.validate("rotating-hook") is True
        assert validator.validate("stale-hook") is False

    def test_rejects_empty_key(self) -> None:
        validator = APIKeyValidator(api_keys=["primary-hook"])
        assert validator.validate("") is False

    @pytest.mark.parametrize("candidate", ["PRIMARY-HOOK", " primary-hook", "primary-hook "])
    def test_comparison_is_exact(self, candidate: str) -> None:
        """Test that keys are case sensitive and whitespace is not stripped."""
        validator = APIKeyValidator(api_keys=["primary-hook"])
        assert validator.validate(candidate) is False
