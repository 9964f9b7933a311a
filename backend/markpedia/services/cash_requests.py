from __future__ import annotations
"""Cash request store: every read and write of CashRequest goes through here.

Write operations follow one shape: load a fresh snapshot, check the caller's
expected version, run the guard, validate input, mutate, commit. Any failure
rolls the session back, so the stored request is left exactly as it was.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app
from sqlalchemy import select, or_
from sqlalchemy.orm import Query
from sqlalchemy.orm.exc import StaleDataError

from markpedia import get_db
from markpedia.errors import ConcurrentModification, NotFound, Unauthorized, ValidationFailed, InvalidTransition
from markpedia.models.authz import User
from markpedia.models.cash_request import CashRequest
from markpedia.models.cash_receipt import CashReceipt
from markpedia.models.cashbook import CashbookEntry
from markpedia.services.approval_chain import ACTION_DISBURSE, ALL_ACTIONS
from markpedia.services.doc_numbers import next_document_number, PREFIX_CASH_REQUEST, PREFIX_CASH_RECEIPT
from markpedia.services.policy import assert_can_act, assert_can_view, is_owner, is_privileged_viewer
from markpedia.services.workflow import plan_transition, state_machine_for, transition
from markpedia.utils.filters import apply_filters
from markpedia.utils.sorting import apply_multi_sort
from markpedia.utils.validation import (
    validate_choice, require_fields, parse_amount, parse_date, parse_bool, parse_string_list,
)

CASH_REQUEST_FILTERS = {
    'status': {'op': lambda q, v: q.filter(CashRequest.status == v), 'validate': lambda v: v in CashRequest.ALL_STATUSES},
    'department': {'op': lambda q, v: q.filter(CashRequest.department == v)},
    'expense_category': {'op': lambda q, v: q.filter(CashRequest.expense_category == v)},
    'type_of_request': {'op': lambda q, v: q.filter(CashRequest.type_of_request == v), 'validate': lambda v: v in CashRequest.REQUEST_TYPES},
    'requested_by': {'coerce': int, 'op': lambda q, v: q.filter(CashRequest.requested_by == v)},
    'q': {'op': lambda q, v: q.filter(or_(
        CashRequest.purpose_of_request.ilike(f'%{v}%'),
        CashRequest.request_id.ilike(f'%{v}%'),
    ))},
}

SORTABLE = {
    'request_id': CashRequest.request_id,
    'amount_requested': CashRequest.amount_requested,
    'status': CashRequest.status,
    'department': CashRequest.department,
    'created_at': CashRequest.created_at,
    'updated_at': CashRequest.updated_at,
    'id': CashRequest.id,
}

_OPTIONAL_TEXT_FIELDS = (
    'description', 'budget_line', 'project_cost_center_code', 'payee_name',
    'supervisor', 'finance_officer', 'designation',
)

RECEIPT_METHOD_CASH = 'Cash'


# ---------- Reads ---------- #

def get_cash_request(request_id: int, refresh: bool = False) -> CashRequest:
    """Return the request or raise NotFound. ``refresh`` re-reads the row over the identity map."""
    session = get_db()
    stmt = select(CashRequest).where(CashRequest.id == request_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    cr = session.execute(stmt).scalar_one_or_none()
    if cr is None:
        raise NotFound(f'Cash request {request_id} not found')
    return cr


def get_visible_cash_request(request_id: int, actor) -> CashRequest:
    cr = get_cash_request(request_id, refresh=True)
    try:
        assert_can_view(cr, actor)
    except Unauthorized:
        current_app.logger.warning('View denied: request=%s actor=%s role=%s', request_id, actor.id, actor.role)
        raise
    return cr


def scoped_query(actor):
    """Requests the actor may see: everything for privileged viewers, own requests otherwise."""
    q = get_db().query(CashRequest)
    if not is_privileged_viewer(actor):
        q = q.filter(CashRequest.requested_by == actor.id)
    return q


def list_cash_requests(actor, filters: Optional[Mapping[str, Any]] = None, sort: Optional[str] = None) -> Query:
    """Visible requests matching ``filters``, newest first unless ``sort`` says otherwise."""
    q = apply_filters(scoped_query(actor), CASH_REQUEST_FILTERS, filters or {})
    return apply_multi_sort(q, sort, SORTABLE, CashRequest.id, default=[CashRequest.created_at.desc()])


# ---------- Creation ---------- #

def _payment_details(data: Mapping[str, Any], method: str) -> Dict[str, Optional[str]]:
    """Exactly one detail group, the one matching ``method``; foreign fields are rejected."""
    required, optional = CashRequest.PAYMENT_DETAIL_FIELDS[method]
    own = set(required) | set(optional)
    for other_method, (other_req, other_opt) in CashRequest.PAYMENT_DETAIL_FIELDS.items():
        for field in (*other_req, *other_opt):
            if field not in own and data.get(field) not in (None, ''):
                raise ValidationFailed(f'{field} not allowed for payment method {method}')
    require_fields(data, *required)
    details: Dict[str, Optional[str]] = {}
    for fields in CashRequest.PAYMENT_DETAIL_FIELDS.values():
        for field in (*fields[0], *fields[1]):
            value = data.get(field) if field in own else None
            details[field] = str(value).strip() if value not in (None, '') else None
    return details


def _ceo_approval_threshold() -> Decimal:
    return Decimal(str(current_app.config.get('CEO_APPROVAL_THRESHOLD', '100000')))


def create_cash_request(data: Mapping[str, Any], actor) -> CashRequest:
    session = get_db()
    require_fields(data, 'amount_requested', 'purpose_of_request', 'expense_category')
    amount = parse_amount(data.get('amount_requested'))
    method = validate_choice(data.get('payment_method_preferred') or CashRequest.METHOD_CASH,
                             CashRequest.PAYMENT_METHODS, 'payment_method_preferred')
    details = _payment_details(data, method)
    request_type = validate_choice(data.get('type_of_request') or 'Operations', CashRequest.REQUEST_TYPES, 'type_of_request')
    urgency = validate_choice(data.get('urgency_level') or 'Medium', CashRequest.URGENCY_LEVELS, 'urgency_level')
    funding = validate_choice(data.get('advance_or_reimbursement') or 'Advance', CashRequest.FUNDING_MODES, 'advance_or_reimbursement')
    expected_use = parse_date(data.get('expected_date_of_use'), 'expected_date_of_use')
    if 'ceo_approval_required' in data and data['ceo_approval_required'] is not None:
        ceo_required = parse_bool(data['ceo_approval_required'], 'ceo_approval_required')
    else:
        ceo_required = amount > _ceo_approval_threshold()
    documents: List[str] = []
    if data.get('supporting_documents'):
        documents = list(dict.fromkeys(parse_string_list(data['supporting_documents'], 'supporting_documents')))

    user = session.get(User, actor.id)
    if user is None or not user.is_active:
        raise Unauthorized('Unknown or inactive user')
    department = data.get('department') or user.department
    if not department:
        raise ValidationFailed('department required')

    now = datetime.now(timezone.utc)
    try:
        cr = CashRequest(
            request_id=next_document_number(session, PREFIX_CASH_REQUEST, now.year),
            date_of_request=now.date(),
            amount_requested=amount,
            currency=CashRequest.CURRENCY,
            expense_category=str(data['expense_category']).strip(),
            type_of_request=request_type,
            purpose_of_request=str(data['purpose_of_request']).strip(),
            urgency_level=urgency,
            expected_date_of_use=expected_use,
            advance_or_reimbursement=funding,
            status=CashRequest.STATUS_PENDING_ACCOUNTANT,
            ceo_approval_required=ceo_required,
            approval_notes='',
            requested_by=user.id,
            requested_by_name=user.name,
            department=department,
            payment_method_preferred=method,
            supporting_documents=documents,
            created_at=now,
            updated_at=now,
            **details,
        )
        for field in _OPTIONAL_TEXT_FIELDS:
            if data.get(field) not in (None, ''):
                setattr(cr, field, str(data[field]).strip())
        if cr.designation is None:
            cr.designation = user.designation
        session.add(cr)
        session.commit()
    except Exception:
        session.rollback()
        raise
    current_app.logger.info('Cash request %s created by user %s (ceo_approval_required=%s)',
                            cr.request_id, user.id, ceo_required)
    return cr


# ---------- Transitions ---------- #

def _check_version(cr: CashRequest, expected_version: Optional[int]):
    if expected_version is not None and int(expected_version) != cr.version:
        current_app.logger.warning('Version conflict on %s: expected v%s, stored v%s',
                                   cr.request_id, expected_version, cr.version)
        raise ConcurrentModification()


def _disbursement_details(payment: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    payment = payment or {}
    method = validate_choice(payment.get('method') or RECEIPT_METHOD_CASH, CashReceipt.METHODS, 'method')
    reference = (payment.get('reference') or '').strip()
    if not reference and method != RECEIPT_METHOD_CASH:
        raise ValidationFailed('reference is required for non-cash payments')
    return {
        'method': method,
        'reference': reference,
        'date': parse_date(payment.get('date'), 'date') or datetime.now(timezone.utc).date(),
        'remarks': payment.get('remarks') or '',
    }


def _record_disbursement(session, cr: CashRequest, actor, details: Mapping[str, Any]) -> CashReceipt:
    paid_on: date = details['date']
    receipt = CashReceipt(
        receipt_id=next_document_number(session, PREFIX_CASH_RECEIPT, paid_on.year),
        cash_request_id=cr.id,
        linked_request_id=cr.request_id,
        date_of_receipt=paid_on,
        receiver_id=cr.requested_by,
        department=cr.department,
        purpose_of_funds=cr.purpose_of_request,
        amount_received=cr.amount_requested,
        payment_method=details['method'],
        payment_reference_no=details['reference'] or 'CASH',
        issued_by=actor.id,
        approved_by=cr.finance_officer or 'system',
        remarks=details['remarks'],
        status=CashReceipt.STATUS_COMPLETED,
    )
    session.add(receipt)
    session.add(CashbookEntry(
        ref_id=receipt.receipt_id,
        entry_date=paid_on,
        type=CashbookEntry.TYPE_EXPENSE,
        description=cr.purpose_of_request,
        amount_in=Decimal('0'),
        amount_out=cr.amount_requested,
        method=details['method'],
        entered_by=actor.id,
        approved_by=receipt.approved_by,
        linked_request_id=cr.request_id,
        linked_receipt_id=receipt.receipt_id,
    ))
    return receipt


def _guard_action(cr: CashRequest, actor, expected_version: Optional[int], attempted: str):
    """Version check first, then the role guard."""
    _check_version(cr, expected_version)
    try:
        assert_can_act(cr, actor)
    except Unauthorized:
        current_app.logger.warning('Action denied: %s on %s by user %s (%s)', attempted, cr.request_id, actor.id, actor.role)
        raise


def _commit_action(cr: CashRequest, action: str, actor, notes: Optional[str],
                   payment: Optional[Mapping[str, Any]]) -> CashRequest:
    session = get_db()
    label = cr.request_id
    plan = plan_transition(cr, action, actor)
    details = _disbursement_details(payment) if action == ACTION_DISBURSE else None
    if action == ACTION_DISBURSE and not notes:
        notes = f"Funds disbursed via {details['method']}. Ref: {details['reference'] or 'CASH'}"
    try:
        transition(cr, action, actor, notes)
        if details is not None:
            _record_disbursement(session, cr, actor, details)
        session.commit()
    except StaleDataError:
        session.rollback()
        current_app.logger.warning('Concurrent update detected on cash request %s', label)
        raise ConcurrentModification()
    except Exception:
        session.rollback()
        raise
    current_app.logger.info('Cash request %s: %s by user %s (%s) %s -> %s',
                            label, action, actor.id, actor.role, plan.from_status, plan.to_status)
    return cr


def apply_action(request_id: int, action: str, actor, notes: Optional[str] = '',
                 expected_version: Optional[int] = None,
                 payment: Optional[Mapping[str, Any]] = None) -> CashRequest:
    """Guard, state machine, persist: one atomic status change."""
    if action not in ALL_ACTIONS:
        raise InvalidTransition(f"Unknown action '{action}'")
    cr = get_visible_cash_request(request_id, actor)
    _guard_action(cr, actor, expected_version, action)
    return _commit_action(cr, action, actor, notes, payment)


def update_cash_request_status(request_id: int, new_status: str, notes: Optional[str], actor,
                               expected_version: Optional[int] = None,
                               payment: Optional[Mapping[str, Any]] = None) -> CashRequest:
    """Status-addressed variant: resolve the action leading to ``new_status`` then apply it."""
    validate_choice(new_status, CashRequest.ALL_STATUSES, 'status')
    cr = get_visible_cash_request(request_id, actor)
    _guard_action(cr, actor, expected_version, new_status)
    action = state_machine_for(cr).action_for(cr.status, new_status)
    return _commit_action(cr, action, actor, notes, payment)


# ---------- Documents ---------- #

def add_supporting_documents(request_id: int, refs: Any, actor, expected_version: Optional[int] = None) -> CashRequest:
    session = get_db()
    cr = get_visible_cash_request(request_id, actor)
    _check_version(cr, expected_version)
    if not is_owner(cr, actor):
        raise Unauthorized('Only the requester may attach documents')
    if cr.status != CashRequest.STATUS_PENDING_ACCOUNTANT:
        raise InvalidTransition(f'Documents cannot be added once a request is {cr.status}')
    new_refs = parse_string_list(refs, 'documents')
    merged = list(dict.fromkeys([*(cr.supporting_documents or []), *new_refs]))
    try:
        cr.supporting_documents = merged
        cr.updated_at = datetime.now(timezone.utc)
        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConcurrentModification()
    except Exception:
        session.rollback()
        raise
    return cr
