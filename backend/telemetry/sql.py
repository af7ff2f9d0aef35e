from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS events (
  ts_ms BIGINT,
  event TEXT,
  source TEXT,
  north DOUBLE,
  south DOUBLE,
  east DOUBLE,
  west DOUBLE,
  stats_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  source,
  event,
  COUNT(*) AS n,
  AVG(try_cast(json_extract(stats_json, '$.timingsMs.total') AS DOUBLE)) AS avg_total_ms,
  quantile_cont(try_cast(json_extract(stats_json, '$.timingsMs.total') AS DOUBLE), 0.95) AS p95_total_ms,
  AVG(try_cast(json_extract(stats_json, '$.recordCount') AS DOUBLE)) AS avg_records,
  AVG(CASE WHEN json_extract_string(stats_json, '$.cacheHit') = 'true' THEN 1 ELSE 0 END) AS cache_hit_rate
FROM events
{where_sql}
GROUP BY source, event
ORDER BY source, event
"""

INSERT_EVENTS_SQL = """
INSERT INTO events
  (ts_ms, event, source, north, south, east, west, stats_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

SLOWEST_SQL_TEMPLATE = """
SELECT
  ts_ms,
  source,
  event,
  json_extract_string(stats_json, '$.origin') AS origin,
  try_cast(json_extract(stats_json, '$.timingsMs.total') AS DOUBLE) AS total_ms,
  try_cast(json_extract(stats_json, '$.recordCount') AS BIGINT) AS record_count,
  north,
  south,
  east,
  west
FROM events
WHERE {where_sql}
ORDER BY total_ms DESC
LIMIT ?
"""
