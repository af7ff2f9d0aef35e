from .feed import StatusFeed

__all__ = ["StatusFeed"]
