"""Services Layer - partnership workflows, capacity coordination, rate limiting.

Invariants:
    - Workflows talk to storage only through the EntityStore protocol
    - Shared records are mutated only inside a store transaction or bounded batch write
"""
