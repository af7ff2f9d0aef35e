from .preload import Preloader, rank_by_distance

__all__ = ["Preloader", "rank_by_distance"]
