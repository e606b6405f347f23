from .market_data import MarketDataService

__all__ = ["MarketDataService"]
