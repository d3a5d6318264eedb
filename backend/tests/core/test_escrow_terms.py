"""Escrow Terms — tests for pure validation of creation terms."""

from decimal import Decimal

import pytest

from escrow_ledger.core.domain_types import Roles, UserId
from escrow_ledger.core.escrow_terms import check_terms

ROLES = Roles(UserId(1), UserId(2), UserId(3))


def test_valid_terms_pass():
    assert check_terms(Decimal("100"), ROLES) is None


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("-0.01")])
def test_non_positive_amount_rejected(amount):
    error = check_terms(amount, ROLES)
    assert error is not None
    assert error["field"] == "amount"


@pytest.mark.parametrize("amount", [Decimal("NaN"), Decimal("Infinity")])
def test_non_finite_amount_rejected(amount):
    assert check_terms(amount, ROLES)["field"] == "amount"


@pytest.mark.parametrize("roles", [
    Roles(UserId(1), UserId(1), UserId(3)),
    Roles(UserId(1), UserId(2), UserId(1)),
    Roles(UserId(1), UserId(2), UserId(2)),
    Roles(UserId(4), UserId(4), UserId(4)),
])
def test_coinciding_parties_rejected(roles):
    error = check_terms(Decimal("10"), roles)
    assert error["field"] == "roles"
    assert "different users" in error["message"]


def test_small_positive_amount_passes():
    assert check_terms(Decimal("0.01"), ROLES) is None


@pytest.mark.parametrize("amount", [Decimal("0.001"), Decimal("10.005"), Decimal("1E-3")])
def test_amount_beyond_cents_rejected(amount):
    error = check_terms(amount, ROLES)
    assert error["field"] == "amount"
    assert "decimal places" in error["message"]


@pytest.mark.parametrize("amount", [Decimal("10.50"), Decimal("10.500"), Decimal("1E+3")])
def test_trailing_zeros_do_not_count_as_precision(amount):
    assert check_terms(amount, ROLES) is None
