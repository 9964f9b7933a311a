from __future__ import annotations
"""Cash request status state machine.

    Pending Accountant -> Pending CFO -> [Pending CEO] -> Approved -> Paid
    any pending status -> Declined

Pure logic over a CashRequest instance: no session, no commit. The caller owns
the transaction boundary (see services.cash_requests.apply_action).
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from markpedia.errors import InvalidTransition
from markpedia.models.cash_request import CashRequest
from markpedia.services.approval_chain import build_transition_table
from markpedia.services.audit import build_audit_entry
from markpedia.utils.fsm import TransitionValidator


@dataclass(frozen=True)
class PlannedTransition:
    action: str
    from_status: str
    to_status: str
    role: str


def state_machine_for(request: CashRequest, table=None) -> TransitionValidator:
    table = table if table is not None else build_transition_table(request)
    return TransitionValidator({state: rule.actions for state, rule in table.items()})


def plan_transition(request: CashRequest, action: str, actor) -> PlannedTransition:
    """Validate action and actor role against the current status without mutating anything."""
    table = build_transition_table(request)
    target = state_machine_for(request, table).target_for(request.status, action)
    rule = table[request.status]
    if actor is None or getattr(actor, 'role', None) != rule.role:
        raise InvalidTransition(f"'{action}' on {request.status} requires role {rule.role}")
    return PlannedTransition(action=action, from_status=request.status, to_status=target, role=rule.role)


def transition(request: CashRequest, action: str, actor, notes: Optional[str] = '', now: Optional[datetime] = None) -> CashRequest:
    """Fire ``action`` on ``request`` as ``actor``.

    Either every field changes (status, approval_notes, updated_at and one new
    audit entry) or, when InvalidTransition is raised, nothing does.
    """
    plan = plan_transition(request, action, actor)
    ts = now or datetime.now(timezone.utc)
    entry = build_audit_entry(plan.from_status, plan.to_status, actor, notes, ts)
    request.status = plan.to_status
    request.approval_notes = entry.notes
    request.updated_at = ts
    request.audit_trail.append(entry)
    return request

__all__ = ['PlannedTransition', 'state_machine_for', 'plan_transition', 'transition']
