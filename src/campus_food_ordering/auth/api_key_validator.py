"""API key validation for the realtime webhook endpoint.

The data store signs its database-webhook calls with a shared key sent in the
X-API-Key header; keys are checked by simple membership in a configured set.
"""

import hmac


class APIKeyValidator:
    """Validates webhook API keys against a configured set of keys."""

    def __init__(self, api_keys: list[str]) -> None:
        """Initialize validator with list of valid API keys.

        Args:
            api_keys: List of valid API key strings

        Raises:
            ValueError: If api_keys list is empty
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = set(api_keys)

    def validate(self, api_key: str) -> bool:
        """Validate an API key.

        Args:
            api_key: The API key to validate

        Returns:
            bool: True if valid, False otherwise
        """
        if not api_key:
            return False
        return any(hmac.compare_digest(api_key, key) for key in self.api_keys)
