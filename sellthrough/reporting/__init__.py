"""
Reporting Module
"""
from .sell_through import (
    ProductSellThrough,
    SellThroughAggregator,
    SellThroughReport,
    VariantSellThrough,
    sell_through_pct,
)

__all__ = [
    "ProductSellThrough",
    "SellThroughAggregator",
    "SellThroughReport",
    "VariantSellThrough",
    "sell_through_pct",
]
