import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

logger = logging.getLogger("session-controller")

EVENT = "event"
STATE = "state"
STEP = "step"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    kind: str
    message: str
    error: Optional[str] = None

    def __str__(self) -> str:
        line = f"[{self.timestamp.isoformat()}] {self.kind:<5} {self.message}"
        if self.error is not None:
            line += f" FAILED: {self.error}"
        return line


class SessionLog:
    """Timeline of one job's session: lifecycle states, teardown steps and
    notable events, dumped in one block when the session closes."""

    def __init__(self, job_id: Optional[str] = None):
        self.job_id = job_id
        self.entries: List[LogEntry] = []

    def _append(self, kind: str, message: str, error: Optional[str] = None) -> None:
        entry = LogEntry(datetime.now(), kind, message, error)
        self.entries.append(entry)
        logger.debug("[%s] %s", self.job_id or "-", entry)

    def add_event(self, message: str) -> None:
        self._append(EVENT, message)

    def add_state(self, state: str) -> None:
        self._append(STATE, state)

    def add_step(self, step: str, error: Optional[BaseException] = None) -> None:
        self._append(STEP, step, None if error is None else repr(error))

    def states(self) -> List[str]:
        return [e.message for e in self.entries if e.kind == STATE]

    def steps(self) -> List[str]:
        """Teardown steps in the order they ran, failed ones included"""
        return [e.message for e in self.entries if e.kind == STEP]

    def failed_steps(self) -> List[str]:
        return [e.message for e in self.entries if e.kind == STEP and e.error is not None]

    def get_log(self) -> str:
        lines = [f"job={self.job_id or '-'}"]
        lines.extend(str(e) for e in self.entries)
        return "\n".join(lines)
