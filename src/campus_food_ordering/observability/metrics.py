"""Custom metrics for the campus food ordering service."""

from opentelemetry import metrics

meter = metrics.get_meter("campus-food-ordering")

# Checkout outcomes (placed, failed, failed_after_commit, rejected_*)
checkout_counter = meter.create_counter(
    name="checkout_total",
    description="Total number of checkout attempts by outcome",
    unit="1",
)

checkout_duration_histogram = meter.create_histogram(
    name="checkout_duration_seconds",
    description="Duration of checkout sagas",
    unit="s",
)

stock_decrement_failure_counter = meter.create_counter(
    name="stock_decrement_failure_total",
    description="Stock decrements that failed after an order was committed",
    unit="1",
)

realtime_event_counter = meter.create_counter(
    name="realtime_event_total",
    description="Realtime change events received by table and change type",
    unit="1",
)

order_ready_notification_counter = meter.create_counter(
    name="order_ready_notification_total",
    description="Order-ready notifications raised",
    unit="1",
)


def record_checkout(outcome: str, duration_seconds: float | None = None) -> None:
    """Record a finished checkout attempt.

    Args:
        outcome: Checkout outcome value (e.g., "placed", "failed")
        duration_seconds: Saga duration, omitted for rejected attempts
    """
    checkout_counter.add(1, {"outcome": outcome})
    if duration_seconds is not None:
        checkout_duration_histogram.record(duration_seconds, {"outcome": outcome})


def record_stock_decrement_failure(menu_item_id: str) -> None:
    stock_decrement_failure_counter.add(1, {"menu_item_id": menu_item_id})


def record_realtime_event(table: str, change_type: str) -> None:
    realtime_event_counter.add(1, {"table": table, "type": change_type})


def record_order_ready_notification() -> None:
    order_ready_notification_counter.add(1)
