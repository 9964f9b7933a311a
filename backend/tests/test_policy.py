import pytest
from markpedia.errors import InvalidTransition, Unauthorized
from markpedia.models.cash_request import CashRequest
from markpedia.services.policy import (
    Actor, can_view, can_act, allowed_actions, assert_can_act, assert_can_view,
)

OWNER = Actor(1, 'Employee')
STRANGER = Actor(2, 'Employee')


def _request(status='Pending Accountant', ceo=False):
    return CashRequest(status=status, ceo_approval_required=ceo, requested_by=OWNER.id)


def test_view_rules():
    cr = _request()
    assert can_view(cr, OWNER)
    assert not can_view(cr, STRANGER)
    for role in ('CEO', 'Admin', 'Finance', 'Accountant', 'Cashier', 'CFO', 'Manager'):
        assert can_view(cr, Actor(99, role))
    assert not can_view(cr, None)
    assert not can_view(cr, Actor(99, ''))


def test_view_denial_message_is_generic():
    with pytest.raises(Unauthorized) as exc:
        assert_can_view(_request(), STRANGER)
    assert exc.value.redirect == '/money/cash-requests'
    assert exc.value.status_code == 403


@pytest.mark.parametrize('status,role,ceo', [
    ('Pending Accountant', 'Accountant', False),
    ('Pending CFO', 'CFO', False),
    ('Pending CEO', 'CEO', True),
    ('Approved', 'Cashier', False),
])
def test_only_current_role_may_act(status, role, ceo):
    cr = _request(status, ceo)
    assert can_act(cr, Actor(50, role))
    others = {'CEO', 'Admin', 'Finance', 'Accountant', 'Cashier', 'CFO', 'Manager', 'Employee'} - {role}
    for other in others:
        assert not can_act(cr, Actor(50, other))
        with pytest.raises(Unauthorized):
            assert_can_act(cr, Actor(50, other))


def test_terminal_states_raise_invalid_transition():
    for status in ('Paid', 'Declined'):
        cr = _request(status)
        assert not can_act(cr, Actor(50, 'Accountant'))
        with pytest.raises(InvalidTransition):
            assert_can_act(cr, Actor(50, 'Accountant'))


def test_allowed_actions():
    assert allowed_actions(_request('Pending CFO'), Actor(7, 'CFO')) == ['approve', 'reject']
    assert allowed_actions(_request('Approved'), Actor(7, 'Cashier')) == ['disburse']
    assert allowed_actions(_request('Pending CFO'), Actor(7, 'Cashier')) == []
    assert allowed_actions(_request('Paid'), Actor(7, 'Cashier')) == []
