"""
Data access.

Components:
- sqlite_service.py: local SQLite DataService (no network backend needed)
- rest_service.py: PostgREST / Supabase DataService over httpx
- queries.py: cached read path, rebuilds Task.categories from link rows
- analytics.py: completion / category usage / activity statistics
"""
