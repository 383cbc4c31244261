from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class Subscription:
    """Event name and the exact callable registered for it"""
    event: str
    handler: Callable[..., Any]


@dataclass
class SessionRecord:
    """The one pipeline session owned by a controller"""
    job_id: str
    room_name: str
    pipeline: Optional[Any]
    metrics_subscription: Optional[Subscription] = None
    error_subscription: Optional[Subscription] = None
    noise_cancellation: bool = False

    def release(self) -> None:
        self.pipeline = None
        self.metrics_subscription = None
        self.error_subscription = None

    def __repr__(self) -> str:
        return f"SessionRecord(job_id={self.job_id}, room='{self.room_name}', active={self.pipeline is not None})"
