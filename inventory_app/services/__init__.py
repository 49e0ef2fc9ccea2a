"""
Inventory Services
Business logic for purchasing and stock control
"""
