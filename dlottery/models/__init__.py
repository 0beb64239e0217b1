from .base import Base

# import models so create_all() discovers mappers
from .draw import DrawRecord, NotificationRecord  # noqa: F401

__all__ = [
    "Base",
    "DrawRecord",
    "NotificationRecord",
]
