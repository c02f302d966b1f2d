"""FastAPI dependencies for request identity and webhook authentication.

User identity is established upstream; the gateway forwards it as the
X-User-Id and X-User-Name headers.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException

from campus_food_ordering.auth.api_key_validator import APIKeyValidator


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated user identity and display name."""

    user_id: str
    display_name: str | None = None


def get_api_key_from_header(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: APIKeyValidator | None = None,
) -> str:
    """FastAPI dependency to extract and validate API key from X-API-Key header.

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI)
        validator: APIKeyValidator instance (injected as dependency)

    Returns:
        str: The validated API key

    Raises:
        HTTPException: 401 if API key is missing or invalid
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    if validator and not validator.validate(x_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")

    return x_api_key


def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """FastAPI dependency returning the user forwarded by the auth gateway.

    Raises:
        HTTPException: 401 if no user identity was forwarded
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")

    return CurrentUser(user_id=x_user_id.strip(), display_name=x_user_name)
