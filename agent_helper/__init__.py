from agent_helper.core import StateMachine
from agent_helper.enums import CleanupState, SessionEvent, SessionState
from agent_helper.transition import LIFECYCLE_TRANSITIONS, Transition

__all__ = [
    'StateMachine',
    'CleanupState',
    'SessionEvent',
    'SessionState',
    'LIFECYCLE_TRANSITIONS',
    'Transition',
]
