"""Pydantic Schemas - request validation for API endpoints.

Invariants:
    - Schemas validate at the system boundary only
    - Domain enums from core/ used for enum fields
"""
