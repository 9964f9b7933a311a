"""Role names as they appear in user records and token claims.
Compared case-sensitively; add new roles here rather than inlining strings.
"""
from __future__ import annotations
from typing import FrozenSet, Tuple

ROLE_CEO = 'CEO'
ROLE_ADMIN = 'Admin'
ROLE_FINANCE = 'Finance'
ROLE_ACCOUNTANT = 'Accountant'
ROLE_CASHIER = 'Cashier'
ROLE_CFO = 'CFO'
ROLE_MANAGER = 'Manager'
ROLE_EMPLOYEE = 'Employee'

ALL_ROLES: Tuple[str, ...] = (
    ROLE_CEO, ROLE_ADMIN, ROLE_FINANCE, ROLE_ACCOUNTANT,
    ROLE_CASHIER, ROLE_CFO, ROLE_MANAGER, ROLE_EMPLOYEE,
)

# May open any cash request regardless of who submitted it
PRIVILEGED_VIEWERS: FrozenSet[str] = frozenset({
    ROLE_CEO, ROLE_ADMIN, ROLE_FINANCE, ROLE_ACCOUNTANT, ROLE_CASHIER, ROLE_CFO, ROLE_MANAGER,
})

# Finance desk: receipts and cashbook
FINANCE_DESK: FrozenSet[str] = frozenset({
    ROLE_CEO, ROLE_ADMIN, ROLE_FINANCE, ROLE_ACCOUNTANT, ROLE_CASHIER, ROLE_CFO,
})

# Manual cashbook postings
CASHBOOK_WRITERS: FrozenSet[str] = frozenset({
    ROLE_ADMIN, ROLE_FINANCE, ROLE_ACCOUNTANT, ROLE_CASHIER,
})
