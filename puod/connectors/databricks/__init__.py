from .connector import DatabricksConnector

__all__ = ["DatabricksConnector"]
