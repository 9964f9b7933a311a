import pytest
from flask import Flask
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from markpedia import get_db
from markpedia.models.cash_receipt import CashReceipt
from markpedia.models.cash_request import CashRequest
from tests.test_utils_seed import seed_workflow_users, auth_headers, ensure_user
from tests.test_lifecycle_helpers import BASE, create_cash_request, act


@pytest.fixture()
def workflow(app_context: Flask):
    users = seed_workflow_users('concurrency')
    return app_context.test_client(), {role: auth_headers(u) for role, u in users.items()}


def test_stale_version_in_body_is_rejected(workflow):
    client, h = workflow
    cr = create_cash_request(client, h['Employee'])
    act(client, cr['id'], 'approve', h['Accountant'], version=1)
    # CFO acts on the snapshot taken before the accountant approved
    resp = act(client, cr['id'], 'approve', h['CFO'], expected_status=409, version=1)
    err = resp.get_json()['error']
    assert err['title'] == 'Conflict'
    assert 'refresh' in err['detail']
    body = client.get(f"{BASE}/{cr['id']}", headers=h['CFO']).get_json()
    assert body['status'] == 'Pending CFO' and len(body['audit_trail']) == 1


def test_if_match_header(workflow):
    client, h = workflow
    cr = create_cash_request(client, h['Employee'])
    first = client.get(f"{BASE}/{cr['id']}", headers=h['Accountant'])
    etag = first.headers['ETag']
    ok = client.post(f"{BASE}/{cr['id']}/approve", json={}, headers={**h['Accountant'], 'If-Match': f'"{etag}"'})
    assert ok.status_code == 200, ok.get_json()
    stale = client.post(f"{BASE}/{cr['id']}/reject", json={}, headers={**h['CFO'], 'If-Match': f'"{etag}"'})
    assert stale.status_code == 409
    bad = client.post(f"{BASE}/{cr['id']}/reject", json={'version': 'two'}, headers=h['CFO'])
    assert bad.status_code == 400


def test_same_step_twice_only_first_wins(workflow):
    client, h = workflow
    second_accountant = auth_headers(ensure_user('concurrency_accountant_two@example.com', role='Accountant'))
    cr = create_cash_request(client, h['Employee'])
    # Both accountants opened the request at version 1
    act(client, cr['id'], 'approve', h['Accountant'], version=1)
    resp = act(client, cr['id'], 'reject', second_accountant, expected_status=409, version=1)
    assert resp.get_json()['error']['title'] == 'Conflict'
    # Without a version the late click meets the role guard instead
    resp = act(client, cr['id'], 'approve', second_accountant, expected_status=403)
    assert resp.get_json()['error']['title'] == 'Forbidden'
    stored = client.get(f"{BASE}/{cr['id']}", headers=h['Accountant']).get_json()
    assert stored['status'] == 'Pending CFO'
    assert len(stored['audit_trail']) == 1


def test_stale_version_on_closed_request_is_conflict(workflow):
    client, h = workflow
    cr = create_cash_request(client, h['Employee'])
    act(client, cr['id'], 'reject', h['Accountant'], version=1)
    resp = act(client, cr['id'], 'approve', h['Accountant'], expected_status=409, version=1)
    assert resp.get_json()['error']['title'] == 'Conflict'
    resp = client.patch(f"{BASE}/{cr['id']}/status", json={'status': 'Pending CFO', 'version': 1},
                        headers=h['Accountant'])
    assert resp.status_code == 409
    assert resp.get_json()['error']['title'] == 'Conflict'


def test_interleaved_commit_from_another_session_loses(workflow, monkeypatch):
    import markpedia
    from markpedia.services import cash_requests as store
    from markpedia.services.policy import Actor
    from markpedia.services.workflow import transition
    client, h = workflow
    accountant = seed_workflow_users('concurrency')['Accountant']
    cr = create_cash_request(client, h['Employee'])
    check_version = store._check_version

    def rival_commits_first(loaded, expected_version):
        # Another worker rejects between our snapshot read and our commit
        other = sessionmaker(bind=markpedia.db_engine, expire_on_commit=False)()
        try:
            row = other.get(CashRequest, loaded.id)
            transition(row, 'reject', Actor(accountant.id, 'Accountant', accountant.name), 'duplicate request')
            other.commit()
        finally:
            other.close()
        check_version(loaded, expected_version)

    monkeypatch.setattr(store, '_check_version', rival_commits_first)
    resp = act(client, cr['id'], 'approve', h['Accountant'], expected_status=409)
    monkeypatch.undo()
    assert resp.get_json()['error']['title'] == 'Conflict'

    stored = client.get(f"{BASE}/{cr['id']}", headers=h['Accountant']).get_json()
    assert stored['status'] == 'Declined'
    assert [e['action'] for e in stored['audit_trail']] == ['Declined by Accountant']
    assert stored['audit_trail'][0]['notes'] == 'duplicate request'
    assert stored['version'] == 2


def test_unknown_action_is_invalid_transition(app_context: Flask):
    from markpedia.errors import InvalidTransition
    from markpedia.services.cash_requests import apply_action
    from markpedia.services.policy import Actor
    users = seed_workflow_users('concurrency')
    client = app_context.test_client()
    cr = create_cash_request(client, auth_headers(users['Employee']))
    with pytest.raises(InvalidTransition) as exc:
        apply_action(cr['id'], 'archive', Actor(users['Accountant'].id, 'Accountant'))
    assert exc.value.status_code == 409
    assert "Unknown action 'archive'" in str(exc.value)


def test_stale_write_at_commit_rolls_back(workflow, monkeypatch):
    client, h = workflow
    cr = create_cash_request(client, h['Employee'])
    act(client, cr['id'], 'approve', h['Accountant'])
    act(client, cr['id'], 'approve', h['CFO'])
    session = get_db()
    receipts_before = session.query(CashReceipt).count()

    def stale_commit():
        raise StaleDataError('UPDATE statement on table cash_requests expected to update 1 row(s); 0 were matched.')
    monkeypatch.setattr(session, 'commit', stale_commit)
    resp = act(client, cr['id'], 'disburse', h['Cashier'], expected_status=409, payment={'method': 'Cash'})
    monkeypatch.undo()
    assert resp.get_json()['error']['title'] == 'Conflict'

    stored = session.get(CashRequest, cr['id'], populate_existing=True)
    assert stored.status == 'Approved'
    assert len(stored.audit_trail) == 2
    assert session.query(CashReceipt).count() == receipts_before
    # Retry with fresh state succeeds
    act(client, cr['id'], 'disburse', h['Cashier'], expected_cr_status='Paid', payment={'method': 'Cash'})
