import re
from decimal import Decimal
from flask import Flask
from tests.test_utils_seed import seed_workflow_users, auth_headers
from tests.test_lifecycle_helpers import BASE, create_cash_request, act, run_to_paid

RECEIPT_ID = re.compile(r'^CRV-\d{4}-\d{5}$')


def _setup(app_context, tag):
    users = seed_workflow_users(tag)
    return app_context.test_client(), users, {role: auth_headers(u) for role, u in users.items()}


def test_disbursement_issues_receipt_and_cashbook_entry(app_context: Flask):
    client, users, h = _setup(app_context, 'cb_disburse')
    cr = create_cash_request(client, h['Employee'], amount_requested=42000, purpose_of_request='Generator repair')
    paid = run_to_paid(client, h, cr, payment={'method': 'Mobile Money', 'reference': 'MM-7781', 'remarks': 'sent'})
    assert paid['audit_trail'][-1]['notes'] == 'Funds disbursed via Mobile Money. Ref: MM-7781'

    receipts = client.get(f"/money/receipts?linked_request_id={cr['request_id']}", headers=h['Cashier']).get_json()
    assert receipts['pagination']['total'] == 1
    receipt = receipts['data'][0]
    assert RECEIPT_ID.match(receipt['receipt_id'])
    assert receipt['amount_received'] == '42000.00'
    assert receipt['payment_method'] == 'Mobile Money'
    assert receipt['payment_reference_no'] == 'MM-7781'
    assert receipt['receiver_id'] == users['Employee'].id
    assert receipt['issued_by'] == users['Cashier'].id
    assert receipt['status'] == 'Completed'

    ledger = client.get('/money/cashbook?limit=200', headers=h['Accountant']).get_json()
    entries = [e for e in ledger['data'] if e['linked_request_id'] == cr['request_id']]
    assert len(entries) == 1
    entry = entries[0]
    assert entry['type'] == 'Expense'
    assert entry['amount_out'] == '42000.00' and entry['amount_in'] == '0.00'
    assert entry['linked_receipt_id'] == receipt['receipt_id']


def test_cash_disbursement_defaults(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_cash')
    cr = create_cash_request(client, h['Employee'], amount_requested=800)
    act(client, cr['id'], 'approve', h['Accountant'])
    act(client, cr['id'], 'approve', h['CFO'])
    body = act(client, cr['id'], 'disburse', h['Cashier'], expected_cr_status='Paid').get_json()
    assert body['audit_trail'][-1]['notes'] == 'Funds disbursed via Cash. Ref: CASH'


def test_non_cash_disbursement_requires_reference(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_ref')
    cr = create_cash_request(client, h['Employee'], amount_requested=900)
    act(client, cr['id'], 'approve', h['Accountant'])
    act(client, cr['id'], 'approve', h['CFO'])
    resp = act(client, cr['id'], 'disburse', h['Cashier'], expected_status=400, payment={'method': 'Bank'})
    assert resp.get_json()['error']['title'] == 'Validation Failed'
    bad_method = act(client, cr['id'], 'disburse', h['Cashier'], expected_status=400, payment={'method': 'Cheque', 'reference': 'x'})
    assert bad_method.status_code == 400
    body = client.get(f"{BASE}/{cr['id']}", headers=h['Cashier']).get_json()
    assert body['status'] == 'Approved'
    assert len(body['audit_trail']) == 2
    receipts = client.get(f"/money/receipts?linked_request_id={cr['request_id']}", headers=h['Cashier']).get_json()
    assert receipts['pagination']['total'] == 0


def test_manual_postings_and_running_balance(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_manual')
    before = Decimal(client.get('/money/cashbook?limit=1', headers=h['Cashier']).get_json()['current_balance'])
    income = client.post('/money/cashbook', json={'type': 'Income', 'description': 'Petty cash top-up',
                                                 'amount': 10000, 'method': 'Bank'}, headers=h['Cashier'])
    assert income.status_code == 201, income.get_json()
    assert income.get_json()['ref_id'].startswith('MKP-CASH-')
    expense = client.post('/money/cashbook', json={'type': 'Expense', 'description': 'Stationery',
                                                  'amount': '2500.50', 'method': 'Cash'}, headers=h['Accountant'])
    assert expense.status_code == 201
    ledger = client.get('/money/cashbook?limit=1', headers=h['Cashier']).get_json()
    after = Decimal(ledger['current_balance'])
    assert after - before == Decimal('7499.50')
    # The last row's running balance equals the ledger balance
    total = ledger['pagination']['total']
    last = client.get(f'/money/cashbook?limit=1&offset={total - 1}', headers=h['Cashier']).get_json()
    assert Decimal(last['data'][0]['running_balance']) == after


def test_cashbook_access_and_validation(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_access')
    assert client.get('/money/cashbook', headers=h['Employee']).status_code == 403
    assert client.get('/money/receipts', headers=h['Manager']).status_code == 403
    assert client.post('/money/cashbook', json={}, headers=h['CFO']).status_code == 403
    bad = client.post('/money/cashbook', json={'type': 'Transfer', 'description': 'x', 'amount': 5, 'method': 'Cash'},
                      headers=h['Cashier'])
    assert bad.status_code == 400
    negative = client.post('/money/cashbook', json={'type': 'Income', 'description': 'x', 'amount': -5, 'method': 'Cash'},
                           headers=h['Cashier'])
    assert negative.status_code == 400


def _post(client, headers, **body):
    resp = client.post('/money/cashbook', json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_cashbook_entry_view_matches_ledger_balance(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_view')
    entry = _post(client, h['Cashier'], type='Income', description='Client deposit', amount=3200, method='Bank')
    resp = client.get(f"/money/cashbook/{entry['id']}", headers=h['CFO'])
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['ref_id'] == entry['ref_id']
    assert body['amount_in'] == '3200.00'
    ledger = client.get('/money/cashbook?limit=1', headers=h['Cashier']).get_json()
    total = ledger['pagination']['total']
    last = client.get(f'/money/cashbook?limit=1&offset={total - 1}', headers=h['Cashier']).get_json()['data'][0]
    viewed = client.get(f"/money/cashbook/{last['id']}", headers=h['Cashier']).get_json()
    assert viewed['running_balance'] == last['running_balance']

    missing = client.get('/money/cashbook/999999', headers=h['Cashier'])
    assert missing.status_code == 404
    assert missing.get_json()['error']['redirect'] == '/money/cashbook'
    assert client.get(f"/money/cashbook/{entry['id']}", headers=h['Employee']).status_code == 403


def test_manual_entry_update(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_update')
    entry = _post(client, h['Accountant'], type='Income', description='Top-up', amount=5000, method='Cash')
    before = Decimal(client.get('/money/cashbook?limit=1', headers=h['Cashier']).get_json()['current_balance'])

    resp = client.put(f"/money/cashbook/{entry['id']}", json={'amount': '4500', 'description': 'Top-up (corrected)'},
                      headers=h['Cashier'])
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['amount_in'] == '4500.00' and body['amount_out'] == '0.00'
    assert body['description'] == 'Top-up (corrected)'
    assert body['ref_id'] == entry['ref_id']

    flipped = client.put(f"/money/cashbook/{entry['id']}", json={'type': 'Expense', 'method': 'Bank'},
                         headers=h['Cashier']).get_json()
    assert flipped['type'] == 'Expense' and flipped['method'] == 'Bank'
    assert flipped['amount_in'] == '0.00' and flipped['amount_out'] == '4500.00'
    after = Decimal(client.get('/money/cashbook?limit=1', headers=h['Cashier']).get_json()['current_balance'])
    assert before - after == Decimal('9500.00')

    bad = client.put(f"/money/cashbook/{entry['id']}", json={'amount': 0}, headers=h['Cashier'])
    assert bad.status_code == 400
    assert client.put(f"/money/cashbook/{entry['id']}", json={'description': 'x'}, headers=h['CFO']).status_code == 403
    assert client.put('/money/cashbook/999999', json={'amount': 1}, headers=h['Cashier']).status_code == 404


def test_disbursement_entry_cannot_be_edited(app_context: Flask):
    client, _, h = _setup(app_context, 'cb_locked')
    cr = create_cash_request(client, h['Employee'], amount_requested=1500)
    run_to_paid(client, h, cr)
    ledger = client.get('/money/cashbook?limit=200', headers=h['Accountant']).get_json()
    total = ledger['pagination']['total']
    tail = client.get(f'/money/cashbook?limit=200&offset={max(total - 200, 0)}', headers=h['Accountant']).get_json()
    entry = next(e for e in tail['data'] if e['linked_request_id'] == cr['request_id'])
    resp = client.put(f"/money/cashbook/{entry['id']}", json={'amount': 1}, headers=h['Cashier'])
    assert resp.status_code == 409
    assert cr['request_id'] in resp.get_json()['error']['detail']
    unchanged = client.get(f"/money/cashbook/{entry['id']}", headers=h['Cashier']).get_json()
    assert unchanged['amount_out'] == '1500.00'
