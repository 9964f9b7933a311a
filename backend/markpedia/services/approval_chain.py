from __future__ import annotations
"""Approval chain resolution for cash requests.

The chain is the ordered list of roles that must approve a request before a
cashier may disburse it. It is the single source the per-request transition
table is built from: each step's pending status is approved by that step's role
into the next step's pending status, or into Approved after the last step.
"""
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from markpedia.constants.roles import ROLE_ACCOUNTANT, ROLE_CFO, ROLE_CEO, ROLE_CASHIER
from markpedia.models.cash_request import CashRequest

ACTION_APPROVE = 'approve'
ACTION_REJECT = 'reject'
ACTION_DISBURSE = 'disburse'
ALL_ACTIONS = (ACTION_APPROVE, ACTION_REJECT, ACTION_DISBURSE)

STEP_DONE = 'done'
STEP_CURRENT = 'current'
STEP_PENDING = 'pending'
STEP_DECLINED = 'declined'

# (role, label, pending status) in approval order; the CEO step is conditional
_STEPS = (
    (ROLE_ACCOUNTANT, 'Accountant Review', CashRequest.STATUS_PENDING_ACCOUNTANT),
    (ROLE_CFO, 'CFO Approval', CashRequest.STATUS_PENDING_CFO),
    (ROLE_CEO, 'CEO Approval', CashRequest.STATUS_PENDING_CEO),
)


@dataclass(frozen=True)
class ApprovalStep:
    step: int
    role: str
    label: str
    pending_status: str
    status: str = STEP_PENDING

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StateRule:
    """Role required to act in a state and the action -> target edges it may fire."""
    role: Optional[str]
    actions: Dict[str, str]


def _declining_role(request: CashRequest) -> Optional[str]:
    for entry in reversed(list(request.audit_trail or [])):
        if entry.to_status == CashRequest.STATUS_DECLINED:
            return entry.actor_role
    return None


def _step_states(request: CashRequest, steps) -> List[str]:
    status = request.status
    if status in (CashRequest.STATUS_APPROVED, CashRequest.STATUS_PAID):
        return [STEP_DONE] * len(steps)
    pending = [s[2] for s in steps]
    if status in pending:
        idx = pending.index(status)
        return [STEP_DONE] * idx + [STEP_CURRENT] + [STEP_PENDING] * (len(steps) - idx - 1)
    if status == CashRequest.STATUS_DECLINED:
        roles = [s[0] for s in steps]
        declined_by = _declining_role(request)
        if declined_by in roles:
            idx = roles.index(declined_by)
            return [STEP_DONE] * idx + [STEP_DECLINED] + [STEP_PENDING] * (len(steps) - idx - 1)
    return [STEP_PENDING] * len(steps)


def resolve_chain(request: CashRequest) -> List[ApprovalStep]:
    """Ordered approval steps: Accountant, CFO, then CEO iff ceo_approval_required."""
    steps = _STEPS if request.ceo_approval_required else _STEPS[:2]
    states = _step_states(request, steps)
    return [
        ApprovalStep(step=i + 1, role=role, label=label, pending_status=pending, status=state)
        for i, ((role, label, pending), state) in enumerate(zip(steps, states))
    ]


def build_transition_table(request: CashRequest) -> Dict[str, StateRule]:
    chain = resolve_chain(request)
    table: Dict[str, StateRule] = {}
    for i, step in enumerate(chain):
        nxt = chain[i + 1].pending_status if i + 1 < len(chain) else CashRequest.STATUS_APPROVED
        table[step.pending_status] = StateRule(step.role, {
            ACTION_APPROVE: nxt,
            ACTION_REJECT: CashRequest.STATUS_DECLINED,
        })
    table[CashRequest.STATUS_APPROVED] = StateRule(ROLE_CASHIER, {ACTION_DISBURSE: CashRequest.STATUS_PAID})
    for terminal in CashRequest.TERMINAL_STATUSES:
        table[terminal] = StateRule(None, {})
    return table


def required_role(request: CashRequest) -> Optional[str]:
    """Role allowed to act on the request in its current status (None when nobody can)."""
    rule = build_transition_table(request).get(request.status)
    return rule.role if rule else None

__all__ = [
    'ACTION_APPROVE', 'ACTION_REJECT', 'ACTION_DISBURSE', 'ALL_ACTIONS',
    'ApprovalStep', 'StateRule', 'resolve_chain', 'build_transition_table', 'required_role',
]
