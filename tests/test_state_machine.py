import pytest

from agent_helper.core import StateMachine
from agent_helper.enums import SessionEvent, SessionState
from agent_helper.transition import LIFECYCLE_TRANSITIONS, Transition


def _lifecycle(entered=None):
    hooks = {}
    if entered is not None:
        hooks = {state: entered.append for state in SessionState}
    return StateMachine(
        initial_state=SessionState.CREATED,
        transitions=LIFECYCLE_TRANSITIONS,
        name="test",
        on_enter=hooks,
    )


def test_normal_lifecycle():
    entered = []
    fsm = _lifecycle(entered)

    for event in (SessionEvent.START, SessionEvent.STARTED, SessionEvent.SHUTDOWN, SessionEvent.CLOSED):
        assert fsm.handle_event(event)

    assert entered == [
        SessionState.STARTING,
        SessionState.RUNNING,
        SessionState.SHUTTING_DOWN,
        SessionState.CLOSED,
    ]


@pytest.mark.parametrize("events", [
    (SessionEvent.START, SessionEvent.FAIL),
    (SessionEvent.START, SessionEvent.STARTED, SessionEvent.FAIL),
])
def test_error_only_leaves_through_shutting_down(events):
    fsm = _lifecycle()
    for event in events:
        fsm.handle_event(event)
    assert fsm.state is SessionState.ERROR

    assert not fsm.can_handle(SessionEvent.STARTED)
    assert not fsm.can_handle(SessionEvent.CLOSED)
    assert fsm.handle_event(SessionEvent.SHUTDOWN)
    assert fsm.state is SessionState.SHUTTING_DOWN


def test_unknown_event_is_ignored():
    fsm = _lifecycle()

    assert fsm.handle_event(SessionEvent.STARTED) is False
    assert fsm.state is SessionState.CREATED


def test_closed_is_terminal():
    fsm = _lifecycle()
    fsm.handle_event(SessionEvent.SHUTDOWN)
    fsm.handle_event(SessionEvent.CLOSED)

    for event in SessionEvent:
        assert not fsm.can_handle(event)


def test_duplicate_transition_is_rejected():
    with pytest.raises(ValueError):
        StateMachine(
            initial_state="a",
            transitions=[Transition("a", "go", "b"), Transition("a", "go", "c")],
        )
