"""Reusable helpers for driving a cash request through its approval chain.

Patterns unified:
 - Creation as the requester with a 201 assertion.
 - Action calls (approve / reject / disburse) with status assertions.
 - Full happy path used by receipt, cashbook and metrics tests.
"""
from __future__ import annotations
from typing import Dict, Optional
from tests.test_utils_seed import cash_request_payload

BASE = '/money/cash-requests'


def create_cash_request(client, headers: Dict[str, str], **overrides) -> dict:
    resp = client.post(BASE, json=cash_request_payload(**overrides), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['status'] == 'Pending Accountant'
    return body


def act(client, cr_id: int, action: str, headers: Dict[str, str], expected_status: int = 200,
        expected_cr_status: Optional[str] = None, **body):
    resp = client.post(f'{BASE}/{cr_id}/{action}', json=body, headers=headers)
    assert resp.status_code == expected_status, resp.get_json()
    if expected_status < 400 and expected_cr_status is not None:
        assert resp.get_json()['status'] == expected_cr_status
    return resp


def run_to_paid(client, users_headers: Dict[str, Dict[str, str]], cr: dict, payment: Optional[dict] = None) -> dict:
    """Approve through the chain (CEO step only when required) and disburse."""
    cr_id = cr['id']
    act(client, cr_id, 'approve', users_headers['Accountant'], expected_cr_status='Pending CFO')
    nxt = 'Pending CEO' if cr['ceo_approval_required'] else 'Approved'
    act(client, cr_id, 'approve', users_headers['CFO'], expected_cr_status=nxt)
    if cr['ceo_approval_required']:
        act(client, cr_id, 'approve', users_headers['CEO'], expected_cr_status='Approved')
    resp = act(client, cr_id, 'disburse', users_headers['Cashier'], expected_cr_status='Paid',
               payment=payment or {'method': 'Cash'})
    return resp.get_json()


__all__ = ['BASE', 'create_cash_request', 'act', 'run_to_paid']
