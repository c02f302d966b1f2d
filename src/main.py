"""Main application entry point for the campus food ordering service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os

from fastapi import FastAPI

from campus_food_ordering.clients.data_store_client import DataStoreClient
from campus_food_ordering.handlers.api_handler import create_app
from campus_food_ordering.handlers.event_handler import ChangeEventHandler
from campus_food_ordering.observability import configure_logging, setup_observability
from campus_food_ordering.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


def create_data_store_client() -> DataStoreClient:
    """Create the data store client from environment variables.

    Returns:
        DataStoreClient configured for the BaaS project

    Raises:
        ValueError: If DATA_STORE_URL or DATA_STORE_API_KEY is missing
    """
    base_url = os.getenv("DATA_STORE_URL")
    api_key = os.getenv("DATA_STORE_API_KEY")

    if not base_url or not api_key:
        raise ValueError("DATA_STORE_URL and DATA_STORE_API_KEY must be set in environment")

    logger.info(f"Data store client configured - URL: {base_url}")
    return DataStoreClient(base_url=base_url, api_key=api_key)


def get_webhook_api_keys() -> list[str]:
    """Read the realtime webhook keys (comma-separated REALTIME_WEBHOOK_KEYS)."""
    keys_str = os.getenv("REALTIME_WEBHOOK_KEYS", "")
    keys = [key.strip() for key in keys_str.split(",") if key.strip()]

    if not keys:
        logger.warning("No REALTIME_WEBHOOK_KEYS configured - using development key")
        keys = ["dummy-key-for-development"]

    return keys


def get_session_idle_timeout() -> float | None:
    """Read SESSION_IDLE_TIMEOUT_SECONDS; unset or 0 disables idle eviction."""
    timeout = float(os.getenv("SESSION_IDLE_TIMEOUT_SECONDS", "1800"))
    return timeout if timeout > 0 else None


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the data store client
    3. Creates the session registry (repositories and checkout service)
    4. Creates the realtime change handler
    5. Creates the FastAPI app
    6. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing campus food ordering service...")

    client = create_data_store_client()
    session_registry = SessionRegistry(client, idle_timeout_seconds=get_session_idle_timeout())
    change_event_handler = ChangeEventHandler(client.hub)

    app = create_app(
        session_registry=session_registry,
        change_event_handler=change_event_handler,
        api_keys=get_webhook_api_keys(),
    )

    setup_observability(app)

    logger.info("Campus food ordering service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    app = FastAPI()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
