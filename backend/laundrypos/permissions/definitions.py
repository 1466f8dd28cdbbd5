# Overview: All capability definitions organized by category.
# Each capability is defined as: (code, name, description, category)

from .categories import CapabilityCategory


# -- INVENTORY --

INVENTORY_CAPABILITIES = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "List products and current stock levels",
        CapabilityCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and delete products (including barcodes)",
        CapabilityCategory.INVENTORY,
    ),
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Manual add/remove/adjust/damage/return stock changes",
        CapabilityCategory.INVENTORY,
    ),
    (
        "VIEW_STOCK_HISTORY",
        "View Stock History",
        "Read the stock ledger",
        CapabilityCategory.INVENTORY,
    ),
    (
        "MANAGE_CATEGORIES",
        "Manage Categories",
        "Create, edit and delete product categories",
        CapabilityCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_CAPABILITIES = [
    (
        "VIEW_INVOICES",
        "View Invoices",
        "List and open invoices",
        CapabilityCategory.SALES,
    ),
    (
        "CREATE_INVOICE",
        "Create Invoice",
        "Issue invoices (deducts stock)",
        CapabilityCategory.SALES,
    ),
    (
        "UPDATE_INVOICE",
        "Update Invoice",
        "Change invoice status and metadata",
        CapabilityCategory.SALES,
    ),
    (
        "DELETE_INVOICE",
        "Delete Invoice",
        "Remove invoice records (stock is not restored)",
        CapabilityCategory.SALES,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create, edit and delete customers",
        CapabilityCategory.SALES,
    ),
]


# -- PEOPLE --

PEOPLE_CAPABILITIES = [
    (
        "MANAGE_STAFF",
        "Manage Staff",
        "Employees, attendance and salary records",
        CapabilityCategory.PEOPLE,
    ),
]


# -- SYSTEM --

SYSTEM_CAPABILITIES = [
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "Edit business settings, including the stock management toggle",
        CapabilityCategory.SYSTEM,
    ),
    (
        "MANAGE_COUNTERS",
        "Manage Counters",
        "Repair and reset daily invoice counters",
        CapabilityCategory.SYSTEM,
    ),
    (
        "CLEAR_CACHE",
        "Clear Cache",
        "Drop cached collections for a store",
        CapabilityCategory.SYSTEM,
    ),
]


# Combined list of all capabilities
CAPABILITY_DEFINITIONS = (
    INVENTORY_CAPABILITIES
    + SALES_CAPABILITIES
    + PEOPLE_CAPABILITIES
    + SYSTEM_CAPABILITIES
)
