"""Session lifecycle: provisioning, observation and teardown of one job's pipeline"""
from .errors import (
    ConfigurationError,
    ProvisioningError,
    SessionError,
    SessionRuntimeError,
    TeardownError,
)
from .session_log import LogEntry, SessionLog
from .session_record import SessionRecord, Subscription

__all__ = [
    'ConfigurationError',
    'ProvisioningError',
    'SessionError',
    'SessionRuntimeError',
    'TeardownError',
    'LogEntry',
    'SessionLog',
    'SessionRecord',
    'Subscription',
]
