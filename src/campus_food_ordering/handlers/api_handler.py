"""FastAPI application exposing dashboard sessions and the realtime webhook."""

import logging
from decimal import Decimal
from typing import Any

from fastapi import Body, Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from campus_food_ordering.auth.api_dependencies import (
    CurrentUser,
    get_api_key_from_header,
    get_current_user,
)
from campus_food_ordering.auth.api_key_validator import APIKeyValidator
from campus_food_ordering.handlers.event_handler import ChangeEventHandler
from campus_food_ordering.models.menu_models import CartLine, MenuItem
from campus_food_ordering.models.order_models import Order
from campus_food_ordering.repositories.food_repositories import AddToCartOutcome
from campus_food_ordering.services.checkout_service import CheckoutOutcome, CheckoutResult
from campus_food_ordering.services.dashboard_service import DashboardService
from campus_food_ordering.services.session_registry import SessionRegistry
from campus_food_ordering.state.dashboard_state import Notification

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class NotificationResponse(BaseModel):
    """A pending user notification."""

    id: str
    message: str
    severity: str

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        return cls(id=notification.id, message=notification.message, severity=notification.severity.value)


class DashboardResponse(BaseModel):
    """Full snapshot of a user's dashboard."""

    greeting: str
    loading: bool
    cart_open: bool
    placing_order: bool
    adding_to_cart: list[str]
    menu_items: list[MenuItem]
    categories: list[str]
    cart_lines: list[CartLine]
    cart_count: int
    cart_total: Decimal
    orders: list[Order]
    notifications: list[NotificationResponse]


class CartResponse(BaseModel):
    """Current cart with derived totals."""

    cart_open: bool
    cart_lines: list[CartLine]
    cart_count: int
    cart_total: Decimal


class AddToCartRequest(BaseModel):
    menu_item_id: str


class AddToCartResponse(BaseModel):
    outcome: AddToCartOutcome
    cart: CartResponse


class QuantityRequest(BaseModel):
    quantity: int = Field(..., description="New quantity; zero or less removes the line")


class CheckoutResponse(BaseModel):
    """Response model for a checkout attempt."""

    outcome: CheckoutOutcome
    success: bool
    order_id: str | None = None
    total_amount: Decimal
    failed_step: str | None = None


def _dashboard_response(session: DashboardService) -> DashboardResponse:
    state = session.state
    return DashboardResponse(
        greeting=f"Welcome, {session.greeting_name}!",
        loading=state.loading,
        cart_open=state.cart_open,
        placing_order=state.placing_order,
        adding_to_cart=sorted(state.adding_to_cart),
        menu_items=list(state.menu_items),
        categories=state.categories,
        cart_lines=list(state.cart_lines),
        cart_count=state.cart_count,
        cart_total=state.cart_total,
        orders=list(state.orders),
        notifications=[NotificationResponse.from_notification(n) for n in state.notifications],
    )


def _cart_response(session: DashboardService) -> CartResponse:
    state = session.state
    return CartResponse(
        cart_open=state.cart_open,
        cart_lines=list(state.cart_lines),
        cart_count=state.cart_count,
        cart_total=state.cart_total,
    )


def _checkout_response(result: CheckoutResult) -> CheckoutResponse:
    return CheckoutResponse(
        outcome=result.outcome,
        success=result.success,
        order_id=result.order.id if result.order else None,
        total_amount=result.total_amount,
        failed_step=result.failed_step,
    )


def create_app(
    session_registry: SessionRegistry,
    change_event_handler: ChangeEventHandler,
    api_keys: list[str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_registry: Registry of per-user dashboard sessions
        change_event_handler: Handler publishing webhook changes to sessions
        api_keys: Valid API keys for the realtime webhook

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Campus Food Ordering API",
        description="Student dashboard: menu, cart, checkout and order history",
        version="1.0.0",
    )

    app.state.session_registry = session_registry
    app.state.change_event_handler = change_event_handler
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        return HealthResponse(status="healthy")

    def validate_api_key(x_api_key: str | None = Header(None)) -> str:
        """Dependency to validate API key."""
        return get_api_key_from_header(x_api_key=x_api_key, validator=app.state.api_key_validator)

    async def current_session(user: CurrentUser = Depends(get_current_user)) -> DashboardService:
        """Dependency resolving the caller's dashboard session."""
        session: DashboardService = await app.state.session_registry.get_session(
            user.user_id, user.display_name
        )
        return session

    @app.get("/dashboard", response_model=DashboardResponse, tags=["Dashboard"])
    async def get_dashboard(session: DashboardService = Depends(current_session)) -> DashboardResponse:
        return _dashboard_response(session)

    @app.delete("/dashboard", status_code=204, tags=["Dashboard"])
    async def close_dashboard(user: CurrentUser = Depends(get_current_user)) -> None:
        """Close the caller's session and drop its realtime subscriptions.

        Raises:
            HTTPException: 404 if the caller has no open session
        """
        if not app.state.session_registry.close_session(user.user_id):
            raise HTTPException(status_code=404, detail="No open dashboard session")

    @app.get("/menu", response_model=list[MenuItem], tags=["Menu"])
    async def get_menu(
        search: str = "",
        category: str = "all",
        session: DashboardService = Depends(current_session),
    ) -> list[MenuItem]:
        """Loaded menu filtered by a search term and a category."""
        return session.state.filter_menu(search=search, category=category)

    @app.get("/cart", response_model=CartResponse, tags=["Cart"])
    async def get_cart(session: DashboardService = Depends(current_session)) -> CartResponse:
        return _cart_response(session)

    @app.post("/cart/items", response_model=AddToCartResponse, tags=["Cart"])
    async def add_to_cart(
        request: AddToCartRequest,
        session: DashboardService = Depends(current_session),
    ) -> AddToCartResponse:
        """Add one unit of a menu item to the cart.

        Raises:
            HTTPException: 502 if the data store rejected the write
        """
        outcome = await session.add_to_cart(request.menu_item_id)
        if outcome == AddToCartOutcome.FAILED:
            raise HTTPException(status_code=502, detail="Failed to add item to cart")
        return AddToCartResponse(outcome=outcome, cart=_cart_response(session))

    @app.patch("/cart/items/{cart_line_id}", response_model=CartResponse, tags=["Cart"])
    async def update_cart_quantity(
        cart_line_id: str,
        request: QuantityRequest,
        session: DashboardService = Depends(current_session),
    ) -> CartResponse:
        """Set a quantity on one of the caller's own cart lines.

        Raises:
            HTTPException: 404 if the line is not in the caller's cart,
                502 if the data store rejected the write
        """
        if session.state.find_cart_line(cart_line_id) is None:
            raise HTTPException(status_code=404, detail=f"Cart line {cart_line_id} not found")
        if not await session.update_cart_quantity(cart_line_id, request.quantity):
            raise HTTPException(status_code=502, detail="Failed to update cart")
        return _cart_response(session)

    @app.post("/cart/open", response_model=CartResponse, tags=["Cart"])
    async def open_cart(session: DashboardService = Depends(current_session)) -> CartResponse:
        session.open_cart()
        return _cart_response(session)

    @app.post("/cart/close", response_model=CartResponse, tags=["Cart"])
    async def close_cart(session: DashboardService = Depends(current_session)) -> CartResponse:
        session.close_cart()
        return _cart_response(session)

    @app.get("/orders", response_model=list[Order], tags=["Orders"])
    async def get_orders(session: DashboardService = Depends(current_session)) -> list[Order]:
        return list(session.state.orders)

    @app.post("/orders", response_model=CheckoutResponse, status_code=201, tags=["Orders"])
    async def place_order(
        session: DashboardService = Depends(current_session),
    ) -> CheckoutResponse | JSONResponse:
        """Check out the current cart.

        Returns 201 when the order was placed, 409 when the attempt was
        rejected (empty cart or checkout already running) and 502 when a
        data store write failed.
        """
        logger.info(f"Checkout requested by user {session.user_id}")
        result = await session.place_order()
        response = _checkout_response(result)

        if result.rejected:
            return JSONResponse(status_code=409, content=response.model_dump(mode="json"))
        if not result.success:
            return JSONResponse(status_code=502, content=response.model_dump(mode="json"))
        return response

    @app.delete("/notifications/{notification_id}", status_code=204, tags=["Notifications"])
    async def dismiss_notification(
        notification_id: str,
        session: DashboardService = Depends(current_session),
    ) -> None:
        """Dismiss a notification.

        Raises:
            HTTPException: 404 if the notification does not exist
        """
        if not session.dismiss_notification(notification_id):
            raise HTTPException(status_code=404, detail=f"Notification {notification_id} not found")

    @app.post("/realtime/events", tags=["Realtime"])
    async def receive_change_event(
        payload: dict[str, Any] = Body(...),
        _api_key: str = Depends(validate_api_key),
    ) -> JSONResponse:
        """Ingest a database-webhook row change and relay it to sessions."""
        result = await app.state.change_event_handler.handle_webhook(payload)
        return JSONResponse(status_code=result["statusCode"], content={"detail": result["body"]})

    return app
