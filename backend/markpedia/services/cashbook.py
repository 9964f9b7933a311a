from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from flask import current_app
from sqlalchemy import and_, func, or_

from markpedia import get_db
from markpedia.errors import InvalidTransition, NotFound
from markpedia.models.cash_request import CashRequest
from markpedia.models.cashbook import CashbookEntry
from markpedia.services.doc_numbers import next_document_number, PREFIX_CASHBOOK
from markpedia.utils.validation import validate_choice, require_fields, parse_amount, parse_date

CENT = Decimal('0.01')
BURN_WINDOW_DAYS = 30


def ordered_entries_query():
    return get_db().query(CashbookEntry).order_by(CashbookEntry.entry_date.asc(), CashbookEntry.id.asc())


def with_running_balance(entries: List[CashbookEntry], opening: Decimal = Decimal('0')) -> List[Tuple[CashbookEntry, Decimal]]:
    """Pair each entry (in ledger order) with the balance after it."""
    balance = opening
    out = []
    for entry in entries:
        balance += (entry.amount_in or Decimal('0')) - (entry.amount_out or Decimal('0'))
        out.append((entry, balance))
    return out


def opening_balance(offset: int) -> Decimal:
    """Balance carried into a page starting at ``offset`` in ledger order."""
    if offset <= 0:
        return Decimal('0')
    total = Decimal('0')
    for entry in ordered_entries_query().limit(offset):
        total += (entry.amount_in or Decimal('0')) - (entry.amount_out or Decimal('0'))
    return total


def current_balance() -> Decimal:
    amount_in, amount_out = get_db().query(
        func.coalesce(func.sum(CashbookEntry.amount_in), 0),
        func.coalesce(func.sum(CashbookEntry.amount_out), 0),
    ).one()
    return (Decimal(str(amount_in)) - Decimal(str(amount_out))).quantize(CENT)


def create_cashbook_entry(data: Mapping[str, Any], actor) -> CashbookEntry:
    """Manual posting (income received, petty expense) outside the request workflow."""
    session = get_db()
    require_fields(data, 'type', 'description', 'amount', 'method')
    entry_type = validate_choice(data.get('type'), CashbookEntry.ALL_TYPES, 'type')
    method = validate_choice(data.get('method'), CashbookEntry.METHODS, 'method')
    amount = parse_amount(data.get('amount'), 'amount')
    entry_date = parse_date(data.get('date'), 'date') or datetime.now(timezone.utc).date()
    try:
        entry = CashbookEntry(
            ref_id=next_document_number(session, PREFIX_CASHBOOK, entry_date.year),
            entry_date=entry_date,
            type=entry_type,
            description=str(data['description']).strip(),
            amount_in=amount if entry_type == CashbookEntry.TYPE_INCOME else Decimal('0'),
            amount_out=amount if entry_type == CashbookEntry.TYPE_EXPENSE else Decimal('0'),
            method=method,
            entered_by=actor.id,
            approved_by=data.get('approved_by'),
        )
        session.add(entry)
        session.commit()
    except Exception:
        session.rollback()
        raise
    current_app.logger.info('Cashbook %s entry %s posted by user %s', entry_type, entry.ref_id, actor.id)
    return entry


def get_cashbook_entry(entry_id: int) -> CashbookEntry:
    entry = get_db().get(CashbookEntry, entry_id)
    if entry is None:
        raise NotFound(f'Cashbook entry {entry_id} not found', redirect='/money/cashbook')
    return entry


def balance_through(entry: CashbookEntry) -> Decimal:
    """Running balance right after ``entry`` in ledger order."""
    amount_in, amount_out = get_db().query(
        func.coalesce(func.sum(CashbookEntry.amount_in), 0),
        func.coalesce(func.sum(CashbookEntry.amount_out), 0),
    ).filter(or_(
        CashbookEntry.entry_date < entry.entry_date,
        and_(CashbookEntry.entry_date == entry.entry_date, CashbookEntry.id <= entry.id),
    )).one()
    return (Decimal(str(amount_in)) - Decimal(str(amount_out))).quantize(CENT)


def update_cashbook_entry(entry_id: int, data: Mapping[str, Any], actor) -> CashbookEntry:
    """Correct a manual posting. Rows written by a disbursement belong to their receipt."""
    session = get_db()
    entry = get_cashbook_entry(entry_id)
    if entry.linked_request_id:
        raise InvalidTransition(f'Entry {entry.ref_id} was posted by disbursement of {entry.linked_request_id} and cannot be edited')
    entry_type = validate_choice(data.get('type') or entry.type, CashbookEntry.ALL_TYPES, 'type')
    current_amount = entry.amount_in if entry.type == CashbookEntry.TYPE_INCOME else entry.amount_out
    amount = parse_amount(data['amount'], 'amount') if 'amount' in data else current_amount
    try:
        if 'description' in data:
            require_fields(data, 'description')
            entry.description = str(data['description']).strip()
        if 'method' in data:
            entry.method = validate_choice(data['method'], CashbookEntry.METHODS, 'method')
        if 'date' in data:
            entry.entry_date = parse_date(data['date'], 'date') or entry.entry_date
        if 'approved_by' in data:
            entry.approved_by = data['approved_by']
        entry.type = entry_type
        entry.amount_in = amount if entry_type == CashbookEntry.TYPE_INCOME else Decimal('0')
        entry.amount_out = amount if entry_type == CashbookEntry.TYPE_EXPENSE else Decimal('0')
        session.commit()
    except Exception:
        session.rollback()
        raise
    current_app.logger.info('Cashbook entry %s updated by user %s', entry.ref_id, actor.id)
    return entry


def _sums_between(start: date, end: date) -> Tuple[Decimal, Decimal]:
    amount_in, amount_out = get_db().query(
        func.coalesce(func.sum(CashbookEntry.amount_in), 0),
        func.coalesce(func.sum(CashbookEntry.amount_out), 0),
    ).filter(CashbookEntry.entry_date >= start, CashbookEntry.entry_date <= end).one()
    return Decimal(str(amount_in)), Decimal(str(amount_out))


def financial_stats(as_of: Optional[date] = None) -> Dict[str, Any]:
    """Cash position for the month containing ``as_of``.

    Burn rate is the average daily outflow over the 30 days ending ``as_of``;
    runway is how many 30-day months the current balance covers at that rate.
    """
    as_of = as_of or datetime.now(timezone.utc).date()
    month_start = as_of.replace(day=1)
    next_month = (month_start + timedelta(days=32)).replace(day=1)
    income, expenses = _sums_between(month_start, next_month - timedelta(days=1))
    _, outflow = _sums_between(as_of - timedelta(days=BURN_WINDOW_DAYS), as_of)
    burn = (outflow / BURN_WINDOW_DAYS).quantize(CENT)
    balance = current_balance()
    runway = (balance / (burn * BURN_WINDOW_DAYS)).quantize(Decimal('0.1')) if burn > 0 else Decimal('0.0')
    pending = get_db().query(func.count(CashRequest.id)).filter(
        CashRequest.status.in_(CashRequest.PENDING_STATUSES)).scalar()
    return {
        'currency': CashRequest.CURRENCY,
        'as_of': as_of.isoformat(),
        'monthly_income': str(income.quantize(CENT)),
        'monthly_expenses': str(expenses.quantize(CENT)),
        'net_cash_flow': str((income - expenses).quantize(CENT)),
        'current_balance': str(balance),
        'cash_burn_rate': str(burn),
        'runway_months': str(runway),
        'pending_approvals': pending,
    }
