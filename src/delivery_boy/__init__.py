"""
Delivery Boy - collects feed entries and posts a weekly digest to chat webhooks.
"""

__version__ = "0.3.0"
