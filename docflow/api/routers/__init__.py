"""API routers for DocFlow."""

from . import documents
from . import health
from . import notifications

__all__ = [
    "documents",
    "health",
    "notifications",
]
