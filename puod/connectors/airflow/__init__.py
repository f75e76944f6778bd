from .connector import AirflowConnector

__all__ = ["AirflowConnector"]
