"""
Client-side caches for point records.

- BoundsCache: the last viewport fetch, reusable for nearby viewports
- DetailCache: id -> record index warmed by the preloader
"""
