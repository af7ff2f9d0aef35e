"""
Backend data sources.

A source answers bounds queries for location records and per-category zone queries.
InMemorySource serves preloaded data; DuckDBSource queries seeded DuckDB tables.
"""
