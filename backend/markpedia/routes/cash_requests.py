from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from markpedia.models.cash_request import CashRequest
from markpedia.services import cash_requests as store
from markpedia.services.approval_chain import resolve_chain, required_role
from markpedia.services.audit import audit_trail_json
from markpedia.services.policy import current_actor, can_view, can_act, allowed_actions
from markpedia.utils.listing import (
    make_cached_list_response, make_cached_item_response, handle_conditional, apply_pagination,
    latest_timestamp, strip_body_for_head, iso_z,
)

cash_bp = Blueprint('cash', __name__)


@cash_bp.route('/cash-requests', methods=['GET', 'HEAD'])
@jwt_required()
def list_cash_requests():
    actor = current_actor()
    q = store.list_cash_requests(actor, request.args, request.args.get('sort'))
    latest_ts = q.order_by(None).with_entities(func.max(CashRequest.updated_at)).scalar()
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    rows_json = [_cash_request_json(r, include_audit=False) for r in rows]
    latest_ts = latest_ts or latest_timestamp(rows)
    resp, etag = make_cached_list_response(rows_json, total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        return strip_body_for_head(cond)
    return strip_body_for_head(resp)


@cash_bp.post('/cash-requests')
@jwt_required()
def create_cash_request():
    cr = store.create_cash_request(request.get_json(silent=True) or {}, current_actor())
    return _cash_request_json(cr), 201


@cash_bp.route('/cash-requests/<int:cr_id>', methods=['GET', 'HEAD'])
@jwt_required()
def get_cash_request(cr_id: int):
    cr = store.get_visible_cash_request(cr_id, current_actor())
    etag = str(cr.version)
    cond = handle_conditional(etag, cr.updated_at)
    if cond:
        return strip_body_for_head(cond)
    resp = make_cached_item_response(_cash_request_json(cr), etag, cr.updated_at)
    return strip_body_for_head(resp)


@cash_bp.get('/cash-requests/<int:cr_id>/chain')
@jwt_required()
def get_approval_chain(cr_id: int):
    cr = store.get_visible_cash_request(cr_id, current_actor())
    return {
        'request_id': cr.request_id,
        'status': cr.status,
        'ceo_approval_required': cr.ceo_approval_required,
        'submitted_at': iso_z(cr.created_at),
        'steps': [s.as_dict() for s in resolve_chain(cr)],
    }


@cash_bp.get('/cash-requests/<int:cr_id>/permissions')
@jwt_required()
def get_permissions(cr_id: int):
    actor = current_actor()
    cr = store.get_visible_cash_request(cr_id, actor)
    return {
        'can_view': can_view(cr, actor),
        'can_act': can_act(cr, actor),
        'required_role': required_role(cr),
        'allowed_actions': allowed_actions(cr, actor),
    }


@cash_bp.post('/cash-requests/<int:cr_id>/<any(approve, reject, disburse):action>')
@jwt_required()
def act_on_cash_request(cr_id: int, action: str):
    data = request.get_json(silent=True) or {}
    cr = store.apply_action(
        cr_id,
        action,
        current_actor(),
        notes=data.get('notes') or '',
        expected_version=_expected_version(data),
        payment=data.get('payment') if action == 'disburse' else None,
    )
    return _cash_request_json(cr)


@cash_bp.patch('/cash-requests/<int:cr_id>/status')
@jwt_required()
def update_status(cr_id: int):
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        abort(400, description='status required')
    cr = store.update_cash_request_status(
        cr_id,
        data['status'],
        data.get('notes') or '',
        current_actor(),
        expected_version=_expected_version(data),
        payment=data.get('payment'),
    )
    return _cash_request_json(cr)


@cash_bp.post('/cash-requests/<int:cr_id>/documents')
@jwt_required()
def add_documents(cr_id: int):
    data = request.get_json(silent=True) or {}
    cr = store.add_supporting_documents(cr_id, data.get('documents'), current_actor(), _expected_version(data))
    return _cash_request_json(cr)


def _expected_version(data: dict):
    """Version the client last read: body ``version`` wins over an If-Match header."""
    raw = data.get('version')
    if raw is None:
        header = request.headers.get('If-Match')
        if header and header.strip() != '*':
            tag = header.split(',')[0].strip()
            if tag.startswith('W/'):
                tag = tag[2:]
            raw = tag.strip('"')
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        abort(400, description='version must be int')


def _money(value):
    return str(value) if value is not None else None


def _cash_request_json(cr: CashRequest, include_audit: bool = True):
    body = {
        'id': cr.id,
        'request_id': cr.request_id,
        'date_of_request': cr.date_of_request.isoformat() if cr.date_of_request else None,
        'amount_requested': _money(cr.amount_requested),
        'currency': cr.currency,
        'expense_category': cr.expense_category,
        'budget_line': cr.budget_line,
        'type_of_request': cr.type_of_request,
        'purpose_of_request': cr.purpose_of_request,
        'description': cr.description,
        'urgency_level': cr.urgency_level,
        'expected_date_of_use': cr.expected_date_of_use.isoformat() if cr.expected_date_of_use else None,
        'advance_or_reimbursement': cr.advance_or_reimbursement,
        'project_cost_center_code': cr.project_cost_center_code,
        'payee_name': cr.payee_name,
        'status': cr.status,
        'ceo_approval_required': cr.ceo_approval_required,
        'approval_notes': cr.approval_notes,
        'requested_by': cr.requested_by,
        'requested_by_name': cr.requested_by_name,
        'designation': cr.designation,
        'department': cr.department,
        'supervisor': cr.supervisor,
        'finance_officer': cr.finance_officer,
        'payment_method_preferred': cr.payment_method_preferred,
        'payment_details': {
            field: getattr(cr, field)
            for field in (*CashRequest.PAYMENT_DETAIL_FIELDS[cr.payment_method_preferred][0],
                          *CashRequest.PAYMENT_DETAIL_FIELDS[cr.payment_method_preferred][1])
        },
        'supporting_documents': list(cr.supporting_documents or []),
        'version': cr.version,
        'created_at': iso_z(cr.created_at),
        'updated_at': iso_z(cr.updated_at),
    }
    if include_audit:
        body['audit_trail'] = audit_trail_json(cr)
    return body
