"""Delivery performance reports: on-time rates, monthly trends and route rankings."""

__version__ = "0.1.0"
