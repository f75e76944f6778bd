from .connector import GlueConnector

__all__ = ["GlueConnector"]
