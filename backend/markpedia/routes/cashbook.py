from __future__ import annotations
from flask import Blueprint, request
from markpedia import get_db
from markpedia.constants.roles import FINANCE_DESK, CASHBOOK_WRITERS
from markpedia.decorators.auth import require_roles
from markpedia.models.cash_receipt import CashReceipt
from markpedia.models.cashbook import CashbookEntry
from markpedia.services.cashbook import (
    ordered_entries_query, with_running_balance, opening_balance, current_balance, balance_through,
    create_cashbook_entry, get_cashbook_entry, update_cashbook_entry,
)
from markpedia.services.policy import current_actor
from markpedia.utils.filters import apply_filters
from markpedia.utils.listing import build_list_payload, apply_pagination, iso_z

cashbook_bp = Blueprint('cashbook', __name__)


@cashbook_bp.get('/receipts')
@require_roles(*FINANCE_DESK)
def list_receipts():
    q = get_db().query(CashReceipt)
    q = apply_filters(q, {
        'linked_request_id': {'op': lambda qu, v: qu.filter(CashReceipt.linked_request_id == v)},
        'payment_method': {'op': lambda qu, v: qu.filter(CashReceipt.payment_method == v), 'validate': lambda v: v in CashReceipt.METHODS},
    }, request.args)
    q = q.order_by(CashReceipt.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    return build_list_payload([_receipt_json(r) for r in paged_q.all()], total, limit, offset)


@cashbook_bp.get('/cashbook')
@require_roles(*FINANCE_DESK)
def list_cashbook():
    paged_q, total, limit, offset = apply_pagination(ordered_entries_query())
    rows = with_running_balance(paged_q.all(), opening_balance(offset))
    payload = build_list_payload([_entry_json(e, bal) for e, bal in rows], total, limit, offset)
    payload['current_balance'] = str(current_balance())
    return payload


@cashbook_bp.post('/cashbook')
@require_roles(*CASHBOOK_WRITERS)
def post_cashbook_entry():
    entry = create_cashbook_entry(request.get_json(silent=True) or {}, current_actor())
    return _entry_json(entry, None), 201


@cashbook_bp.get('/cashbook/<int:entry_id>')
@require_roles(*FINANCE_DESK)
def get_cashbook_item(entry_id: int):
    entry = get_cashbook_entry(entry_id)
    return _entry_json(entry, balance_through(entry))


@cashbook_bp.put('/cashbook/<int:entry_id>')
@require_roles(*CASHBOOK_WRITERS)
def update_cashbook_item(entry_id: int):
    entry = update_cashbook_entry(entry_id, request.get_json(silent=True) or {}, current_actor())
    return _entry_json(entry, balance_through(entry))


def _receipt_json(r: CashReceipt):
    return {
        'id': r.id,
        'receipt_id': r.receipt_id,
        'linked_request_id': r.linked_request_id,
        'date_of_receipt': r.date_of_receipt.isoformat(),
        'receiver_id': r.receiver_id,
        'department': r.department,
        'purpose_of_funds': r.purpose_of_funds,
        'amount_received': str(r.amount_received),
        'payment_method': r.payment_method,
        'payment_reference_no': r.payment_reference_no,
        'issued_by': r.issued_by,
        'approved_by': r.approved_by,
        'remarks': r.remarks,
        'status': r.status,
    }


def _entry_json(e: CashbookEntry, running_balance):
    return {
        'id': e.id,
        'ref_id': e.ref_id,
        'date': e.entry_date.isoformat(),
        'type': e.type,
        'description': e.description,
        'amount_in': str(e.amount_in),
        'amount_out': str(e.amount_out),
        'method': e.method,
        'entered_by': e.entered_by,
        'approved_by': e.approved_by,
        'linked_request_id': e.linked_request_id,
        'linked_receipt_id': e.linked_receipt_id,
        'running_balance': str(running_balance) if running_balance is not None else None,
        'created_at': iso_z(e.created_at),
    }
