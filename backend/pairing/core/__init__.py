"""Core Layer - domain types, entities, errors, protocols and pure rule checks.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, models/ or db/
    - Rule checks are pure: no IO, no async, no side effects
"""
