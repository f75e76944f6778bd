"""puod - multi-tenant query pipeline over integrated data platforms."""

__version__ = "0.1.0"
__package_name__ = "puod-integrations"

# Initialize logging with default configuration
from puod.logging import configure_logging

configure_logging()

from .errors import NotFoundError, PuodError, UnauthorizedError

__all__ = [
    "NotFoundError",
    "PuodError",
    "UnauthorizedError",
]
