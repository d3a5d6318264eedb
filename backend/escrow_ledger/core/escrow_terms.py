"""Escrow Terms — pure validation of the terms an escrow is created with.

Invariants:
    - check_terms is PURE: returns an error descriptor or None, never raises
    - Accepted amounts have at most AMOUNT_DECIMAL_PLACES places, so the stored
      Numeric(18, 2) metadata and the EscrowProposed payload hold the same value
    - User existence is NOT checked here (needs IO) — the shell asks the store

Design Decisions:
    - Error descriptor dict, shell raises: same split as the rest of core/
      (ADR: functional core, imperative shell)
    - Reject extra precision instead of rounding: money is never silently changed
"""

from decimal import Decimal

from escrow_ledger.core.domain_types import Roles

AMOUNT_DECIMAL_PLACES = 2


def check_terms(amount: Decimal, roles: Roles) -> dict | None:
    """Amount must be positive with at most two decimals; parties pairwise distinct."""
    if amount is None or not amount.is_finite() or amount <= 0:
        return {
            "field": "amount",
            "message": f"Amount must be positive, got {amount}",
        }
    if -amount.normalize().as_tuple().exponent > AMOUNT_DECIMAL_PLACES:
        return {
            "field": "amount",
            "message": (
                f"Amount must have at most {AMOUNT_DECIMAL_PLACES} decimal places, "
                f"got {amount}"
            ),
        }
    parties = (roles.buyer_id, roles.seller_id, roles.arbiter_id)
    if len(set(parties)) != len(parties):
        return {
            "field": "roles",
            "message": "Buyer, seller, and arbiter must be different users",
        }
    return None
