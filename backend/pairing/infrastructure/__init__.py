"""Infrastructure Layer - database, store adapter, rate limit backends, logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - Driver exceptions are mapped to PairingError subclasses before leaving this layer
"""
