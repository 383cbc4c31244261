import logging
from typing import Any, Callable, Dict, Iterable, Optional

from agent_helper.transition import Transition

logger = logging.getLogger("state_machine")


class StateMachine:
    """Deterministic table-driven state machine.

    Transitions are synchronous so that a state change never spans a
    suspension point; callers on the same event loop always observe a
    consistent state.
    """

    def __init__(
        self,
        *,
        initial_state: Any,
        transitions: Iterable[Transition],
        name: str = "FSM",
        on_enter: Optional[Dict[Any, Callable[[Any], None]]] = None,
    ):
        self._state = initial_state
        self._name = name
        self._on_enter = on_enter or {}

        self._transitions: Dict[tuple, Any] = {}
        for t in transitions:
            key = (t.source, t.event)
            if key in self._transitions:
                raise ValueError(f"[{name}] duplicate transition for {t.source} + {t.event}")
            self._transitions[key] = t.target

        logger.info("[%s] Initialized in state %s", self._name, self._state)

    @property
    def state(self) -> Any:
        return self._state

    def can_handle(self, event: Any) -> bool:
        return (self._state, event) in self._transitions

    def handle_event(self, event: Any) -> bool:
        """Apply `event` to the current state. Returns False if it was ignored."""
        target = self._transitions.get((self._state, event))

        if target is None:
            logger.warning(
                "[%s] Ignored event %s in state %s",
                self._name, event, self._state
            )
            return False

        logger.info(
            "[%s] %s --(%s)--> %s",
            self._name,
            self._state,
            event,
            target,
        )
        self._state = target

        on_enter = self._on_enter.get(target)
        if on_enter:
            on_enter(target)
        return True
