"""Data storage and persistence layer"""

from .models import (
    FinancingOffer,
    FinancingScore,
    InventoryMetric,
    Notification,
    Product,
    RankingScore,
    Store,
)
from .database import Database

__all__ = [
    "Store",
    "Product",
    "RankingScore",
    "InventoryMetric",
    "FinancingScore",
    "FinancingOffer",
    "Notification",
    "Database",
]
