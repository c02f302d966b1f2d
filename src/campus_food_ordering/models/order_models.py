"""Order header and order line models.

Orders are created once by checkout in status ``pending`` and are afterwards
only mutated by the external fulfilment process.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from campus_food_ordering.models.menu_models import MenuItem


class OrderStatusEnum(str, Enum):
    """Enumeration of order fulfilment states."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatusEnum(str, Enum):
    """Enumeration of order payment states."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderLine(BaseModel):
    """Snapshotted item, quantity and unit price belonging to one order."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the order line")
    order_id: str = Field(..., description="Owning order")
    menu_item_id: str = Field(..., description="Menu item referenced at order time")
    quantity: int = Field(..., description="Units ordered", gt=0)
    price: Decimal = Field(..., description="Unit price captured at order time", ge=0)
    menu_item: MenuItem | None = Field(None, description="Menu item for display only")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Order(BaseModel):
    """Order header with its lines when read for history."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique order identifier")
    user_id: str = Field(..., description="Owning user")
    total_amount: Decimal = Field(..., description="Total fixed at creation", ge=0)
    status: OrderStatusEnum = Field(default=OrderStatusEnum.PENDING)
    payment_status: PaymentStatusEnum = Field(default=PaymentStatusEnum.PENDING)
    created_at: datetime | None = Field(None, description="Creation timestamp")
    order_items: list[OrderLine] = Field(default_factory=list)

    @property
    def short_id(self) -> str:
        return self.id[:8]

    @property
    def lines_total(self) -> Decimal:
        """Sum of the line totals, which equals ``total_amount`` for orders placed here."""
        return sum((line.line_total for line in self.order_items), Decimal("0"))
