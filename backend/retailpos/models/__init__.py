from .inventory import Vendor, Product, InventoryAdjustment
from .sales import Transaction, TransactionItem, Payment
from .purchasing import PurchaseOrder, POLineItem, PurchaseOrderReceipt
from .documents import DocumentSequence
