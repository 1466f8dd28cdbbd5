# Overview: Shared enumerations for store collections, stock change types, and invoice fields.

from __future__ import annotations

from enum import Enum


class Collection(str, Enum):
    """Per-store document collections mirrored by the cache and the change feed."""

    PRODUCTS = "products"
    CUSTOMERS = "customers"
    INVOICES = "invoices"
    EMPLOYEES = "employees"
    ATTENDANCE = "attendance"
    SALARIES = "salaries"
    CATEGORIES = "categories"
    STOCK_HISTORY = "stock_history"


# Collections cleared by a routine cache reset (stock history is never read through the cache).
CORE_CACHED_COLLECTIONS = (
    Collection.PRODUCTS,
    Collection.CUSTOMERS,
    Collection.INVOICES,
    Collection.EMPLOYEES,
    Collection.ATTENDANCE,
    Collection.SALARIES,
    Collection.CATEGORIES,
)


class StockChangeType(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    ADJUST = "adjust"
    INITIAL = "initial"
    SALE = "sale"
    RETURN = "return"
    DAMAGE = "damage"


class StaffRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    CASHIER = "cashier"
    SALESMAN = "salesman"


INVOICE_STATUSES = ("pending", "delivered")
PAYMENT_MODES = ("Cash", "Card", "Pay Later", "Deposit")
DISCOUNT_TYPES = ("value", "percentage")
PRODUCT_TYPES = ("product", "service")
PRINT_FORMATS = ("a4", "thermal")
