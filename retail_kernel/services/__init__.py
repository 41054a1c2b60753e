"""Write-side services for the retail kernel."""

from retail_kernel.services.catalog_service import CatalogService
from retail_kernel.services.customer_directory import CustomerDirectory
from retail_kernel.services.fulfillment_service import (
    Authorization,
    FulfillmentResult,
    FulfillmentService,
    FulfillmentStatus,
)
from retail_kernel.services.inventory_service import InventoryService
from retail_kernel.services.invoice_sequencer import InvoiceCounter, InvoiceSequencer
from retail_kernel.services.order_editor import EditResult, EditStatus, OrderEditor
from retail_kernel.services.order_transaction import (
    CheckoutResult,
    CheckoutStatus,
    OrderTransactionService,
)
from retail_kernel.services.receipt_dispatcher import (
    DocumentStore,
    OrderPayload,
    ReceiptDispatcher,
    ReceiptNotifier,
    ReceiptRenderer,
)
from retail_kernel.services.stock_ledger import LedgerResult, LedgerStatus, StockLedger

__all__ = [
    "Authorization",
    "CatalogService",
    "CheckoutResult",
    "CheckoutStatus",
    "CustomerDirectory",
    "DocumentStore",
    "EditResult",
    "EditStatus",
    "FulfillmentResult",
    "FulfillmentService",
    "FulfillmentStatus",
    "InventoryService",
    "InvoiceCounter",
    "InvoiceSequencer",
    "LedgerResult",
    "LedgerStatus",
    "OrderEditor",
    "OrderPayload",
    "OrderTransactionService",
    "ReceiptDispatcher",
    "ReceiptNotifier",
    "ReceiptRenderer",
    "StockLedger",
]
