from .connector import WarehouseConnector

__all__ = ["WarehouseConnector"]
