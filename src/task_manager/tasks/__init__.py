"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskPriority, display labels)
- errors.py: error taxonomy (validation / duplicate / capacity / storage)
- task_storage.py: whole-file JSON / XML storage adapters
- task_service.py: validated CRUD, queries, auto-save and load/save orchestration
- task_stats.py: statistics over a collection snapshot
- task_api.py: small high-level helpers used by the console (id prefixes, parsing, samples)
"""
