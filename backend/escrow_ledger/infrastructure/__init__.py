"""Infrastructure Layer — persistence adapters and cross-cutting concerns.

Invariants:
    - Infrastructure implements core/repository_protocols.py; core never imports from here
    - All storage failures mapped to typed errors (StorageError / ContentionError)

Design Decisions:
    - Two event store adapters (SQL, in-memory) behind one Protocol: the controller
      cannot tell them apart, so core logic is testable without a database
"""
