"""
Write path.

Components:
- relationships.py: RelationshipSynchronizer (task <-> category links + invalidation)
- writer.py: EntityWriter (single-table writes: task fields, categories, profile)
"""
