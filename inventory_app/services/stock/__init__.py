"""
Stock Control Services
"""
from .stock_inquiry import StockInquiryService
from .stock_poster import StockPoster

__all__ = ["StockInquiryService", "StockPoster"]
