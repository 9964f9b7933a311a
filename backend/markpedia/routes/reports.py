from __future__ import annotations
from decimal import Decimal
from flask import Blueprint, request
from sqlalchemy import func
from markpedia import get_db
from markpedia.constants.roles import FINANCE_DESK, PRIVILEGED_VIEWERS
from markpedia.decorators.auth import require_roles
from markpedia.models.cash_request import CashRequest
from markpedia.models.cash_receipt import CashReceipt
from markpedia.services.cashbook import financial_stats
from markpedia.utils.validation import parse_date

rpt_bp = Blueprint('reports', __name__)

TOP_CATEGORIES = 5


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal('0.01'))


def _paid_totals_by(column, label: str, limit=None):
    """Sum of Paid request amounts grouped by ``column``, largest first."""
    session = get_db()
    rows = (
        session.query(column, func.coalesce(func.sum(CashRequest.amount_requested), 0))
        .filter(CashRequest.status == CashRequest.STATUS_PAID)
        .group_by(column)
        .all()
    )
    totals = sorted(((key, _money(total)) for key, total in rows), key=lambda kv: (-kv[1], kv[0] or ''))
    if limit:
        totals = totals[:limit]
    return [{label: key, 'amount': str(amount)} for key, amount in totals]


def gather_cash_metrics():
    session = get_db()
    counts = dict(session.query(CashRequest.status, func.count(CashRequest.id)).group_by(CashRequest.status).all())
    disbursed = session.query(func.coalesce(func.sum(CashReceipt.amount_received), 0)).scalar()
    unacknowledged = session.query(func.count(CashReceipt.id)).filter(CashReceipt.status != CashReceipt.STATUS_COMPLETED).scalar()
    return {
        'currency': CashRequest.CURRENCY,
        'total_requests': sum(counts.values()),
        'total_approved': counts.get(CashRequest.STATUS_APPROVED, 0) + counts.get(CashRequest.STATUS_PAID, 0),
        'total_amount_disbursed': str(_money(disbursed)),
        'pending_approvals': sum(counts.get(s, 0) for s in CashRequest.PENDING_STATUSES),
        'pending_acknowledgments': unacknowledged,
        'status_counts': {s: counts.get(s, 0) for s in CashRequest.ALL_STATUSES},
        'departmental_spend': _paid_totals_by(CashRequest.department, 'department'),
        'top_expense_categories': _paid_totals_by(CashRequest.expense_category, 'expense_category', TOP_CATEGORIES),
    }


@rpt_bp.get('/cash/metrics')
@require_roles(*PRIVILEGED_VIEWERS)
def cash_metrics():
    return gather_cash_metrics()


@rpt_bp.get('/cash/flow')
@require_roles(*FINANCE_DESK)
def cash_flow():
    return financial_stats(parse_date(request.args.get('as_of'), 'as_of'))
