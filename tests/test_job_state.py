import pytest

from jobrow import JobState, TransitionError, ValidationError
from jobrow.models.job_state import (
    TERMINAL_STATES,
    TRANSITIONS,
    can_transition,
    check_transition,
)


LEGAL = {
    ("scheduled", "available"),
    ("available", "running"),
    ("running", "completed"),
    ("running", "retryable"),
    ("running", "discarded"),
    ("retryable", "scheduled"),
    ("available", "cancelled"),
    ("scheduled", "cancelled"),
    ("retryable", "cancelled"),
    ("running", "cancelled"),
}


def test_states():
    assert [state.value for state in JobState] == [
        "available",
        "scheduled",
        "running",
        "retryable",
        "completed",
        "cancelled",
        "discarded",
    ]


def test_terminal_states():
    assert TERMINAL_STATES == {
        JobState.COMPLETED,
        JobState.CANCELLED,
        JobState.DISCARDED,
    }
    assert JobState.COMPLETED.is_terminal
    assert not JobState.RUNNING.is_terminal


def test_transition_table():
    table = {
        (from_state.value, to_state.value)
        for from_state, targets in TRANSITIONS.items()
        for to_state in targets
    }
    assert table == LEGAL


@pytest.mark.parametrize("from_state", list(JobState))
@pytest.mark.parametrize("to_state", list(JobState))
def test_check_transition(from_state, to_state):
    if (from_state.value, to_state.value) in LEGAL:
        assert can_transition(from_state, to_state)
        check_transition(from_state, to_state)
        return

    assert not can_transition(from_state, to_state)
    with pytest.raises(TransitionError) as exc_info:
        check_transition(from_state, to_state)
    assert exc_info.value.from_state == from_state.value
    assert exc_info.value.to_state == to_state.value
    assert f"'{from_state.value}'" in str(exc_info.value)
    assert f"'{to_state.value}'" in str(exc_info.value)


def test_terminal_states_have_no_exits():
    for state in TERMINAL_STATES:
        assert not TRANSITIONS[state]


def test_parse():
    assert JobState.parse("running") is JobState.RUNNING
    assert JobState.parse(JobState.RUNNING) is JobState.RUNNING
    assert str(JobState.RUNNING) == "running"


@pytest.mark.parametrize("value", ["queued", "", None, 3])
def test_parse_unknown(value):
    with pytest.raises(ValidationError) as exc_info:
        JobState.parse(value)
    assert exc_info.value.field == "state"
