from .inventory import Warehouse, Category, Product, InventoryTransaction
from .auth import User
from .material_requests import MaterialRequest, MaterialRequestItem
from .settings import NotificationSetting

__all__ = [
    'Warehouse', 'Category', 'Product', 'InventoryTransaction',
    'User',
    'MaterialRequest', 'MaterialRequestItem',
    'NotificationSetting',
]
