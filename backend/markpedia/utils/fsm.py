from __future__ import annotations
"""Action-driven finite state machine for enforcing allowed status transitions.

Each state maps the actions legal from it to the state they lead to.
Usage:
    from markpedia.utils.fsm import TransitionValidator
    fsm = TransitionValidator({
        'Pending CFO': {'approve': 'Approved', 'reject': 'Declined'},
        'Approved': {'disburse': 'Paid'},
        'Paid': {},
    })
    fsm.target_for('Pending CFO', 'approve')  # -> 'Approved'
    fsm.action_for('Pending CFO', 'Declined')  # -> 'reject'
    fsm.is_terminal('Paid')  # -> True

Raises InvalidTransition if the action (or target) is not reachable.
"""
from typing import Dict
from markpedia.errors import InvalidTransition


class TransitionValidator:
    def __init__(self, graph: Dict[str, Dict[str, str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def is_terminal(self, current: str) -> bool:
        return not self.graph.get(current)

    def target_for(self, current: str, action: str) -> str:
        edges = self.graph.get(current, {})
        if action not in edges:
            if not edges:
                raise InvalidTransition(f"No {self.field_name} transitions allowed from {current}")
            raise InvalidTransition(f"Action '{action}' not allowed from {self.field_name} {current}")
        return edges[action]

    def action_for(self, current: str, target: str) -> str:
        for action, dest in self.graph.get(current, {}).items():
            if dest == target:
                return action
        raise InvalidTransition(f"Invalid {self.field_name} transition {current} -> {target}")

__all__ = ['TransitionValidator']
