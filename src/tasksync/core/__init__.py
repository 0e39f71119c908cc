"""
Core contracts.

Components:
- ports.py: DataService Protocol + QueryResult (the only collaborator interface)
- models.py: domain records (Task, Category, TaskCategoryLink, Profile)
- errors.py: structured error taxonomy
"""
