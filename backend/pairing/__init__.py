"""Capstone Pairing Service Package - partnership matching and capacity coordination.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
