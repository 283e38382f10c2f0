# app/payments/state_machine.py

class InvalidTransition(Exception):
    pass


ALLOWED = {
    "pending": {"pending", "confirmed", "cancelled"},
    "confirmed": {"confirmed"},
    "cancelled": {"cancelled"},
}

TERMINAL_STATUSES = ("confirmed", "cancelled")


def is_terminal(status: str | None) -> bool:
    return status in TERMINAL_STATUSES


def assert_transition(old: str | None, new: str) -> None:
    # records created before the triple existed carry no status yet
    if old is None:
        old = "pending"
    if new not in ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal payment transition: {old} -> {new}")
