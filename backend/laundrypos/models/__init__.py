from ..constants import Collection
from .tenancy import Store, BusinessSettings, StoreUser
from .inventory import Product, Category, StockHistory, PendingStockHistory
from .sales import Invoice, Customer
from .documents import DailyCounter
from .staff import Employee, AttendanceRecord, SalaryRecord

# Store document collections and the model backing each one
COLLECTION_MODELS = {
    Collection.PRODUCTS: Product,
    Collection.CUSTOMERS: Customer,
    Collection.INVOICES: Invoice,
    Collection.EMPLOYEES: Employee,
    Collection.ATTENDANCE: AttendanceRecord,
    Collection.SALARIES: SalaryRecord,
    Collection.CATEGORIES: Category,
    Collection.STOCK_HISTORY: StockHistory,
}


def model_for_collection(collection):
    return COLLECTION_MODELS[Collection(collection)]


__all__ = [
    'Store', 'BusinessSettings', 'StoreUser',
    'Product', 'Category', 'StockHistory', 'PendingStockHistory',
    'Invoice', 'Customer',
    'DailyCounter',
    'Employee', 'AttendanceRecord', 'SalaryRecord',
    'COLLECTION_MODELS', 'model_for_collection',
]
