"""Database models for the order service"""

from orderhub.models.base import Base

from orderhub.models.order import (
    OrderRecord,
    DeliveryRecord,
    PaymentRecord,
    ItemRecord
)

__all__ = [
    "Base",
    "OrderRecord",
    "DeliveryRecord",
    "PaymentRecord",
    "ItemRecord",
]
