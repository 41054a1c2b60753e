"""Read-only selectors for the retail kernel."""

from retail_kernel.selectors.base import BaseSelector
from retail_kernel.selectors.inventory_selector import (
    CellInfo,
    InventorySelector,
    MovementInfo,
    ProductSummary,
)
from retail_kernel.selectors.order_selector import (
    FinancialRecordInfo,
    OrderInfo,
    OrderLineInfo,
    OrderSelector,
)

__all__ = [
    "BaseSelector",
    "CellInfo",
    "FinancialRecordInfo",
    "InventorySelector",
    "MovementInfo",
    "OrderInfo",
    "OrderLineInfo",
    "OrderSelector",
    "ProductSummary",
]
