"""Inventory management API - purchasing core"""

__version__ = "1.0.0"
