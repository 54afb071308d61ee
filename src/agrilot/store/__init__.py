"""
Storage subsystem.

Components:
- schema.py: schema registry (field kinds, constraints, record validation)
- entities.py: farm entity schemas and their enums
- object_store.py: SQLite-backed object store with transactions and live collections
- query.py: filter / sort / group helpers over records
"""
