"""Checkout orchestration: turning a cart into a persisted order.

The checkout is a saga over independent remote writes. There is no
transaction spanning them; consistency rests on step ordering plus the
compensation hooks declared on the steps:

1. create the order header (compensated by deleting it)
2. create the order lines (pivot: once this succeeds the order is committed)
3. decrement stock per item (failures are logged and collected, never undone)
4. clear the user's cart (a failure fails the checkout, the order stays)
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from campus_food_ordering.models.menu_models import CartLine
from campus_food_ordering.models.order_models import Order
from campus_food_ordering.observability import traced
from campus_food_ordering.observability.metrics import (
    record_checkout,
    record_stock_decrement_failure,
)
from campus_food_ordering.repositories.food_repositories import (
    CartRepository,
    MenuRepository,
    OrderRepository,
)

logger = logging.getLogger(__name__)


class CheckoutOutcome(str, Enum):
    """How a checkout attempt ended."""

    PLACED = "placed"
    FAILED = "failed"
    FAILED_AFTER_COMMIT = "failed_after_commit"
    REJECTED_EMPTY = "rejected_empty"
    REJECTED_IN_FLIGHT = "rejected_in_flight"


@dataclass
class CheckoutResult:
    """Result of a checkout attempt.

    Attributes:
        outcome: How the attempt ended
        order: The created order, set once the header exists and was not undone
        total_amount: Total computed from the cart snapshot
        failed_step: Name of the step that failed the checkout, if any
        stock_failures: Menu item ids whose stock decrement failed
        compensation_failures: Step names whose compensation failed
    """

    outcome: CheckoutOutcome
    order: Order | None = None
    total_amount: Decimal = Decimal("0")
    failed_step: str | None = None
    stock_failures: list[str] = field(default_factory=list)
    compensation_failures: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == CheckoutOutcome.PLACED

    @property
    def rejected(self) -> bool:
        return self.outcome in (CheckoutOutcome.REJECTED_EMPTY, CheckoutOutcome.REJECTED_IN_FLIGHT)

    @property
    def order_committed(self) -> bool:
        return self.outcome in (CheckoutOutcome.PLACED, CheckoutOutcome.FAILED_AFTER_COMMIT)


@dataclass
class CheckoutContext:
    """Data threaded through the saga steps of one checkout."""

    user_id: str
    cart_lines: list[CartLine]
    total_amount: Decimal
    order: Order | None = None
    stock_failures: list[str] = field(default_factory=list)


StepAction = Callable[[CheckoutContext], Awaitable[bool]]


@dataclass
class SagaStep:
    """One remote write of the checkout saga.

    Attributes:
        name: Step name used in logs and results
        action: Performs the write; returns False on failure
        compensate: Undoes the write if a later pre-pivot step fails
        pivot: After this step succeeds no earlier step is compensated
        critical: Whether a failure fails the checkout
    """

    name: str
    action: StepAction
    compensate: StepAction | None = None
    pivot: bool = False
    critical: bool = True


def compute_total(cart_lines: list[CartLine]) -> Decimal:
    """Sum of price x quantity over a cart snapshot."""
    return sum((line.line_total for line in cart_lines), Decimal("0"))


class CheckoutService:
    """Orchestrates the checkout saga and guards against concurrent checkouts.

    At most one checkout per user is in flight; a second call while one is
    outstanding is rejected, not queued.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        menu_repository: MenuRepository,
        cart_repository: CartRepository,
    ) -> None:
        """Initialize the CheckoutService.

        Args:
            order_repository: Repository for order headers and lines
            menu_repository: Repository used for stock decrements
            cart_repository: Repository used to clear the cart
        """
        self.order_repository = order_repository
        self.menu_repository = menu_repository
        self.cart_repository = cart_repository
        self._in_flight: set[str] = set()

    def is_in_flight(self, user_id: str) -> bool:
        return user_id in self._in_flight

    def build_steps(self) -> list[SagaStep]:
        """The ordered saga steps of a checkout."""
        return [
            SagaStep(
                name="create_order_header",
                action=self._create_order_header,
                compensate=self._delete_order_header,
            ),
            SagaStep(name="create_order_lines", action=self._create_order_lines, pivot=True),
            SagaStep(name="decrement_stock", action=self._decrement_stock, critical=False),
            SagaStep(name="clear_cart", action=self._clear_cart),
        ]

    @traced("checkout.place_order", record_args=("user_id",))
    async def place_order(self, user_id: str, cart_lines: list[CartLine]) -> CheckoutResult:
        """Convert the user's cart snapshot into a persisted order.

        Args:
            user_id: The user checking out
            cart_lines: The caller's cart snapshot; prices and stock are taken
                from it, nothing is refetched

        Returns:
            CheckoutResult describing the outcome
        """
        if not cart_lines:
            logger.info(f"Rejected checkout for user {user_id}: cart is empty")
            record_checkout(CheckoutOutcome.REJECTED_EMPTY.value)
            return CheckoutResult(outcome=CheckoutOutcome.REJECTED_EMPTY)

        if user_id in self._in_flight:
            logger.warning(f"Rejected checkout for user {user_id}: another checkout is in flight")
            record_checkout(CheckoutOutcome.REJECTED_IN_FLIGHT.value)
            return CheckoutResult(outcome=CheckoutOutcome.REJECTED_IN_FLIGHT)

        self._in_flight.add(user_id)
        started = time.monotonic()
        try:
            context = CheckoutContext(
                user_id=user_id,
                cart_lines=list(cart_lines),
                total_amount=compute_total(cart_lines),
            )
            result = await self._run(context, self.build_steps())
        finally:
            self._in_flight.discard(user_id)

        record_checkout(result.outcome.value, time.monotonic() - started)
        return result

    async def _run(self, context: CheckoutContext, steps: list[SagaStep]) -> CheckoutResult:
        completed: list[SagaStep] = []
        committed = False

        for step in steps:
            ok = await step.action(context)
            if ok:
                completed.append(step)
                if step.pivot:
                    committed = True
                    completed.clear()
                continue

            if not step.critical:
                logger.warning(f"Checkout step {step.name} failed for user {context.user_id}, continuing")
                continue

            logger.error(f"Checkout step {step.name} failed for user {context.user_id}")
            if committed:
                return self._result(CheckoutOutcome.FAILED_AFTER_COMMIT, context, failed_step=step.name)

            compensation_failures = await self._compensate(context, completed)
            context.order = None
            return self._result(
                CheckoutOutcome.FAILED,
                context,
                failed_step=step.name,
                compensation_failures=compensation_failures,
            )

        order_id = context.order.id if context.order else None
        logger.info(f"Order {order_id} placed for user {context.user_id} ({context.total_amount})")
        return self._result(CheckoutOutcome.PLACED, context)

    async def _compensate(self, context: CheckoutContext, completed: list[SagaStep]) -> list[str]:
        failures = []
        for step in reversed(completed):
            if step.compensate is None:
                continue
            if not await step.compensate(context):
                logger.error(f"Compensation for {step.name} failed for user {context.user_id}")
                failures.append(step.name)
        return failures

    @staticmethod
    def _result(
        outcome: CheckoutOutcome,
        context: CheckoutContext,
        failed_step: str | None = None,
        compensation_failures: list[str] | None = None,
    ) -> CheckoutResult:
        return CheckoutResult(
            outcome=outcome,
            order=context.order,
            total_amount=context.total_amount,
            failed_step=failed_step,
            stock_failures=list(context.stock_failures),
            compensation_failures=compensation_failures or [],
        )

    async def _create_order_header(self, context: CheckoutContext) -> bool:
        context.order = await self.order_repository.create_order(context.user_id, context.total_amount)
        return context.order is not None

    async def _delete_order_header(self, context: CheckoutContext) -> bool:
        if context.order is None:
            return True
        return await self.order_repository.delete_order(context.order.id)

    async def _create_order_lines(self, context: CheckoutContext) -> bool:
        if context.order is None:
            return False
        return await self.order_repository.create_order_lines(context.order.id, context.cart_lines)

    async def _decrement_stock(self, context: CheckoutContext) -> bool:
        # Writes the snapshot count minus the ordered quantity; concurrent
        # checkouts on the same item are not coordinated.
        for line in context.cart_lines:
            snapshot = line.menu_item.quantity_available
            remaining = max(snapshot - line.quantity, 0)
            if snapshot < line.quantity:
                logger.warning(
                    f"Ordered {line.quantity} of {line.menu_item_id} with only {snapshot} in stock"
                )
            ok = await self.menu_repository.set_available_quantity(line.menu_item_id, remaining)
            if not ok:
                logger.error(f"Error updating quantity for menu item {line.menu_item_id}")
                record_stock_decrement_failure(line.menu_item_id)
                context.stock_failures.append(line.menu_item_id)
        return not context.stock_failures

    async def _clear_cart(self, context: CheckoutContext) -> bool:
        return await self.cart_repository.clear_for_user(context.user_id)
