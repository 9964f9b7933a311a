from __future__ import annotations
"""Authorization guard for cash requests.

All role decisions live here; routes and services ask this module instead of
comparing role strings themselves. Everything fails closed: a role that is not
explicitly listed gets nothing.
"""
from dataclasses import dataclass
from typing import List

from flask_jwt_extended import get_jwt, get_jwt_identity

from markpedia.constants.roles import ALL_ROLES, PRIVILEGED_VIEWERS
from markpedia.errors import InvalidTransition, Unauthorized
from markpedia.models.cash_request import CashRequest
from markpedia.services.approval_chain import build_transition_table
from markpedia.services.workflow import state_machine_for


@dataclass(frozen=True)
class Actor:
    id: int
    role: str
    name: str = ''


def current_actor() -> Actor:
    """Actor from the verified JWT of the current request (identity + role claim)."""
    claims = get_jwt()
    role = claims.get('role')
    return Actor(
        id=int(get_jwt_identity()),
        role=role if role in ALL_ROLES else '',
        name=claims.get('name', ''),
    )


def has_role(*roles: str) -> bool:
    return get_jwt().get('role') in roles


def is_privileged_viewer(user) -> bool:
    return getattr(user, 'role', None) in PRIVILEGED_VIEWERS


def is_owner(request: CashRequest, user) -> bool:
    user_id = getattr(user, 'id', None)
    return user_id is not None and request.requested_by == user_id


def can_view(request: CashRequest, user) -> bool:
    if user is None:
        return False
    return is_privileged_viewer(user) or is_owner(request, user)


def can_act(request: CashRequest, user) -> bool:
    if user is None:
        return False
    rule = build_transition_table(request).get(request.status)
    if rule is None or rule.role is None:
        return False
    return getattr(user, 'role', None) == rule.role


def allowed_actions(request: CashRequest, user) -> List[str]:
    """Actions the UI should offer this user right now."""
    if not (can_view(request, user) and can_act(request, user)):
        return []
    rule = build_transition_table(request)[request.status]
    return sorted(rule.actions)


def assert_can_view(request: CashRequest, user):
    if not can_view(request, user):
        # Same message for every denial: nothing about the request leaks
        raise Unauthorized('You are not authorized to view this request')


def assert_can_act(request: CashRequest, user):
    if can_act(request, user):
        return
    if state_machine_for(request).is_terminal(request.status):
        raise InvalidTransition(f"No status transitions allowed from {request.status}")
    raise Unauthorized('You are not authorized to act on this request')

