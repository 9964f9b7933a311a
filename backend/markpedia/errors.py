from __future__ import annotations
"""Workflow error taxonomy.

Every failure raised by the cash request services maps to one of these classes.
Each carries the HTTP status and title used by the JSON error envelope:

    {"error": {"status": 409, "title": "Invalid Transition", "detail": "..."}}

NotFound and Unauthorized also carry a ``redirect`` hint pointing the client
back at the list view; neither includes request data in its detail.
"""
from typing import Any, Dict, Optional

LIST_VIEW_PATH = '/money/cash-requests'


class WorkflowError(Exception):
    status_code = 400
    title = 'Bad Request'
    redirect: Optional[str] = None

    def __init__(self, detail: str = '', redirect: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail or self.title
        if redirect:
            self.redirect = redirect

    def to_payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            'status': self.status_code,
            'title': self.title,
            'detail': self.detail,
        }
        if self.redirect:
            body['redirect'] = self.redirect
        return {'error': body}


class ValidationFailed(WorkflowError):
    status_code = 400
    title = 'Validation Failed'


class NotFound(WorkflowError):
    status_code = 404
    title = 'Not Found'
    redirect = LIST_VIEW_PATH


class Unauthorized(WorkflowError):
    status_code = 403
    title = 'Forbidden'
    redirect = LIST_VIEW_PATH


class InvalidTransition(WorkflowError):
    status_code = 409
    title = 'Invalid Transition'


class ConcurrentModification(WorkflowError):
    status_code = 409
    title = 'Conflict'

    def __init__(self, detail: str = ''):
        super().__init__(detail or 'Request was modified concurrently; please refresh and retry')


__all__ = [
    'WorkflowError', 'ValidationFailed', 'NotFound', 'Unauthorized',
    'InvalidTransition', 'ConcurrentModification', 'LIST_VIEW_PATH',
]
