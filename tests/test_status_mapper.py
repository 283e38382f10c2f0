import pytest

from app.payments.status_mapper import CANCELLED, CONFIRMED, INITIAL_STATE, PENDING, PaymentState, map_provider_status


@pytest.mark.parametrize("provider_status", ["capture", "settlement"])
def test_paid_statuses_confirm(provider_status):
    state = map_provider_status(provider_status)
    assert state == CONFIRMED
    assert state.as_fields() == {"status": "confirmed", "payment_status": "success", "billing_status": "success"}


@pytest.mark.parametrize("provider_status", ["cancel", "deny", "expire"])
def test_failed_statuses_cancel(provider_status):
    assert map_provider_status(provider_status) == CANCELLED


def test_pending_maps_to_initial_state():
    assert map_provider_status("pending") == PENDING
    assert INITIAL_STATE == PENDING


def test_mapping_ignores_case_and_whitespace():
    assert map_provider_status("  Settlement ") == CONFIRMED


@pytest.mark.parametrize("provider_status", ["refund", "authorize", "partial_refund", "", None])
def test_unknown_statuses_map_to_none(provider_status):
    assert map_provider_status(provider_status) is None


def test_state_from_record_requires_full_triple():
    assert PaymentState.from_record({"status": "pending", "payment_status": "unpaid", "billing_status": "unpaid"}) == PENDING
    assert PaymentState.from_record({"status": "pending", "payment_status": "unpaid"}) is None
