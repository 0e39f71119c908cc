"""
tasksync: client-side data-consistency layer for a personal task manager.

Subpackages:
- core: ports (data-service Protocol), domain models, error taxonomy
- cache: TTL cache store, key builder, cached query executor, prefetcher
- data: data-service adapters (SQLite, PostgREST) and the read path
- sync: write path (relationship synchronizer, plain entity writes)
"""
