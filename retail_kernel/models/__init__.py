"""ORM models for the retail kernel."""

from retail_kernel.models.customer import Customer
from retail_kernel.models.financial_record import FinancialRecord
from retail_kernel.models.order import Order, OrderLine
from retail_kernel.models.product import ColorVariant, Product, StockCell
from retail_kernel.models.stock_movement import StockMovement

__all__ = [
    "ColorVariant",
    "Customer",
    "FinancialRecord",
    "Order",
    "OrderLine",
    "Product",
    "StockCell",
    "StockMovement",
]
