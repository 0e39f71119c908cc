"""
Query-result cache.

Components:
- store.py: in-memory TTL CacheStore (lazy expiry, explicit clear on sign-out)
- keys.py: deterministic cache keys + per-user key set
- query.py: read-through cached_query
- prefetch.py: best-effort concurrent cache warming
"""
