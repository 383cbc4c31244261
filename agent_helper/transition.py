from dataclasses import dataclass
from typing import Any

from agent_helper.enums import SessionEvent, SessionState


@dataclass(frozen=True)
class Transition:
    source: Any
    event: Any
    target: Any


LIFECYCLE_TRANSITIONS = (
    Transition(SessionState.CREATED, SessionEvent.START, SessionState.STARTING),
    Transition(SessionState.STARTING, SessionEvent.STARTED, SessionState.RUNNING),
    Transition(SessionState.STARTING, SessionEvent.FAIL, SessionState.ERROR),
    Transition(SessionState.RUNNING, SessionEvent.FAIL, SessionState.ERROR),
    # cancellation before anything was provisioned
    Transition(SessionState.CREATED, SessionEvent.SHUTDOWN, SessionState.SHUTTING_DOWN),
    Transition(SessionState.STARTING, SessionEvent.SHUTDOWN, SessionState.SHUTTING_DOWN),
    Transition(SessionState.RUNNING, SessionEvent.SHUTDOWN, SessionState.SHUTTING_DOWN),
    Transition(SessionState.ERROR, SessionEvent.SHUTDOWN, SessionState.SHUTTING_DOWN),
    Transition(SessionState.SHUTTING_DOWN, SessionEvent.CLOSED, SessionState.CLOSED),
)
