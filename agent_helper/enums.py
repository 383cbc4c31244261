from enum import Enum


class SessionState(Enum):
    CREATED = "created"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class SessionEvent(Enum):
    START = "start"
    STARTED = "started"
    FAIL = "fail"
    SHUTDOWN = "shutdown"
    CLOSED = "closed"


class CleanupState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"
