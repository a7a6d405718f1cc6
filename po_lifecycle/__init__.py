"""
Purchase Order Lifecycle Service
"""

__version__ = "1.0.0"
__description__ = "Purchase order status workflow, validation and metrics service"
