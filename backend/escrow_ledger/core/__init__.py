"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - replay, transitions, authorization and escrow_terms are pure and deterministic
    - repository_protocols.py declares the (async) contracts the shell implements

Design Decisions:
    - Functional core separated from imperative shell (ADR: impureim sandwich)
"""
