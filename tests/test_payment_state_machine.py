import pytest

from app.payments.state_machine import InvalidTransition, assert_transition, is_terminal


def test_valid_transitions():
    assert_transition("pending", "pending")
    assert_transition("pending", "confirmed")
    assert_transition("pending", "cancelled")
    assert_transition("confirmed", "confirmed")
    assert_transition("cancelled", "cancelled")


def test_missing_status_counts_as_pending():
    assert_transition(None, "confirmed")


def test_terminal_states_cannot_transition():
    with pytest.raises(InvalidTransition):
        assert_transition("confirmed", "pending")
    with pytest.raises(InvalidTransition):
        assert_transition("confirmed", "cancelled")
    with pytest.raises(InvalidTransition):
        assert_transition("cancelled", "pending")
    with pytest.raises(InvalidTransition):
        assert_transition("cancelled", "confirmed")


def test_is_terminal():
    assert is_terminal("confirmed")
    assert is_terminal("cancelled")
    assert not is_terminal("pending")
