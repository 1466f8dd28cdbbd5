# Overview: Default capability sets per staff role.

# Role hierarchy:
# - ADMIN: everything
# - MANAGER: day-to-day operations, no settings/counter repair/invoice deletion/staff
# - CASHIER: POS plus invoice status updates and stock history lookups
# - SALESMAN: POS only

from .definitions import CAPABILITY_DEFINITIONS


_ALL = [cap[0] for cap in CAPABILITY_DEFINITIONS]

_MANAGER_EXCLUDED = {"MANAGE_SETTINGS", "MANAGE_COUNTERS", "DELETE_INVOICE", "MANAGE_STAFF"}

DEFAULT_ROLE_CAPABILITIES = {
    "admin": list(_ALL),
    "manager": [code for code in _ALL if code not in _MANAGER_EXCLUDED],
    "cashier": [
        "VIEW_PRODUCTS",
        "VIEW_INVOICES",
        "CREATE_INVOICE",
        "UPDATE_INVOICE",
        "MANAGE_CUSTOMERS",
        "VIEW_STOCK_HISTORY",
        "CLEAR_CACHE",
    ],
    "salesman": [
        "VIEW_PRODUCTS",
        "VIEW_INVOICES",
        "CREATE_INVOICE",
        "MANAGE_CUSTOMERS",
    ],
}
