"""
Stock Module - inventory sheets and on-hand items
"""

from packages.domain.stock.schemas import StockItemCreate, StockItemOut, StockSheetCreate
from packages.domain.stock.stock_service import StockService, stock_service

__all__ = [
    'StockService',
    'stock_service',
    'StockItemCreate',
    'StockItemOut',
    'StockSheetCreate',
]
