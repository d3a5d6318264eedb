"""Services Layer — orchestrates IO around the pure core.

Invariants:
    - Services receive their collaborators (event store, lock registry) by injection
    - Every write goes through EscrowService
"""
