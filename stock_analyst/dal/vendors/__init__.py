"""Vendor registry and public exports."""

from .alphavantage import AlphaVantageVendor
from .base import VendorClient
from .finnhub import FinnhubVendor

__all__ = [
    "VendorClient",
    "AlphaVantageVendor",
    "FinnhubVendor",
]
